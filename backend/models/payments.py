from sqlalchemy import Column, Integer, Numeric, Date, String, ForeignKey, Text
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin

class Payment(Base, AuditMixin):
    """Supplier payment voucher."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("business_partners.id"), nullable=False, index=True)
    purchase_order_id = Column(Integer, ForeignKey("purchase_orders.id"), nullable=True)
    payment_date = Column(Date, nullable=False, index=True)
    amount_paid = Column(Numeric(18, 3), nullable=False)
    payment_mode = Column(String, nullable=True) # e.g., "Cash", "Bank Transfer", "Cheque"
    reference_number = Column(String, nullable=True) # Cheque number, transaction ID etc.
    notes = Column(Text, nullable=True)
    tenant_id = Column(String, index=True)

    # Relationships
    purchase_order = relationship("PurchaseOrder", back_populates="payments")
