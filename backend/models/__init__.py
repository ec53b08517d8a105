from models.audit_log import AuditLog
from models.business_partners import BusinessPartner, PartnerStatus
from models.sales_orders import SalesOrder, SalesOrderStatus
from models.purchase_orders import PurchaseOrder, PurchaseOrderStatus
from models.sales_payments import SalesPayment
from models.payments import Payment
from models.stock_transactions import StockTransaction, StockTransactionType, StockReferenceType
from models.ledgers import AccountRef, AccountType, LedgerPeriod, PartnerLedger, SyncMethod

__all__ = ['AccountRef', 'AccountType', 'AuditLog', 'BusinessPartner', 'LedgerPeriod', 'PartnerLedger', 'PartnerStatus', 'Payment', 'PurchaseOrder', 'PurchaseOrderStatus', 'SalesOrder', 'SalesOrderStatus', 'SalesPayment', 'StockReferenceType', 'StockTransaction', 'StockTransactionType', 'SyncMethod',]
