from sqlalchemy import Column, Integer, Numeric, Date, String, Text, Enum, Index
from database import Base
import enum
from models.audit_mixin import AuditMixin

class StockTransactionType(enum.Enum):
    IMPORT = "Import"
    EXPORT = "Export"
    TRANSFER = "Transfer"
    STOCKTAKE = "Stocktake"
    RETURN = "Return"

class StockReferenceType(enum.Enum):
    SALES_ORDER = "Sales Order"
    PURCHASE_ORDER = "Purchase Order"
    PRODUCTION_ORDER = "Production Order"

class StockTransaction(Base, AuditMixin):
    """Warehouse movement document.

    Stock returns do not carry the partner: the owning account is found
    through `reference_type`/`reference_id`, i.e. the returned order.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (Index('ix_stock_transactions_reference', 'reference_type', 'reference_id'),)

    id = Column(Integer, primary_key=True, index=True)
    transaction_type = Column(Enum(StockTransactionType), nullable=False)
    reference_type = Column(Enum(StockReferenceType), nullable=True)
    reference_id = Column(Integer, nullable=True)
    transaction_date = Column(Date, nullable=False, index=True)
    total_value = Column(Numeric(18, 3), default=0, nullable=False)
    reason = Column(Text, nullable=True)
    tenant_id = Column(String, index=True)
