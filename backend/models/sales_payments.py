from sqlalchemy import Column, Integer, Numeric, Date, String, ForeignKey, Text
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin

class SalesPayment(Base, AuditMixin):
    """Customer receipt. May settle a specific order or old debt in general."""
    __tablename__ = "sales_payments"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=True)
    payment_date = Column(Date, nullable=False, index=True)
    amount_paid = Column(Numeric(18, 3), nullable=False)
    payment_mode = Column(String, nullable=True)
    reference_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    tenant_id = Column(String, index=True)

    # Relationships
    sales_order = relationship("SalesOrder", back_populates="payments")
