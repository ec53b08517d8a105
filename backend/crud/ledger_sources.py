"""
Read-only access to the transactions that move a partner's balance.

Four buckets per account:
- increase: non-cancelled sales orders (customer) / purchase orders (supplier)
- payment:  customer receipts / supplier vouchers
- return:   RETURN stock transactions referencing one of the account's orders
- adjustment: no source, entered manually on the period row

Stock returns do not carry the partner id, so they are always resolved in two
phases: first the order ids, then the returns referencing those ids.
"""
from collections import namedtuple
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.ledgers import AccountRef, AccountType
from models.payments import Payment
from models.purchase_orders import PurchaseOrder, PurchaseOrderStatus
from models.sales_orders import SalesOrder, SalesOrderStatus
from models.sales_payments import SalesPayment
from models.stock_transactions import StockTransaction, StockTransactionType, StockReferenceType
from utils.ledger_math import to_decimal

PeriodMovements = namedtuple("PeriodMovements", ["increase", "payment", "returns"])

# Keeps IN (...) lists well below driver/bind-parameter limits
ID_CHUNK_SIZE = 1000


def year_bounds(year: int):
    return date(year, 1, 1), date(year, 12, 31)


def _order_source(account_type: AccountType):
    if account_type == AccountType.CUSTOMER:
        return SalesOrder, SalesOrder.customer_id, SalesOrderStatus.CANCELLED, StockReferenceType.SALES_ORDER
    return PurchaseOrder, PurchaseOrder.vendor_id, PurchaseOrderStatus.CANCELLED, StockReferenceType.PURCHASE_ORDER


def _payment_source(account_type: AccountType):
    if account_type == AccountType.CUSTOMER:
        return SalesPayment, SalesPayment.customer_id
    return Payment, Payment.vendor_id


def _chunks(ids: List[int]) -> Iterable[List[int]]:
    for i in range(0, len(ids), ID_CHUNK_SIZE):
        yield ids[i:i + ID_CHUNK_SIZE]


def _date_filters(column, date_from: Optional[date], date_to: Optional[date]):
    filters = []
    if date_from is not None:
        filters.append(column >= date_from)
    if date_to is not None:
        filters.append(column <= date_to)
    return filters


def sum_increase(db: Session, tenant_id: str, account: AccountRef,
                 date_from: Optional[date] = None, date_to: Optional[date] = None) -> Decimal:
    model, partner_col, cancelled, _ = _order_source(account.account_type)
    total = db.query(func.sum(model.total_amount)).filter(
        model.tenant_id == tenant_id,
        partner_col == account.partner_id,
        model.status != cancelled,
        model.deleted_at.is_(None),
        *_date_filters(model.order_date, date_from, date_to)
    ).scalar()
    return to_decimal(total)


def sum_payments(db: Session, tenant_id: str, account: AccountRef,
                 date_from: Optional[date] = None, date_to: Optional[date] = None) -> Decimal:
    model, partner_col = _payment_source(account.account_type)
    total = db.query(func.sum(model.amount_paid)).filter(
        model.tenant_id == tenant_id,
        partner_col == account.partner_id,
        model.deleted_at.is_(None),
        *_date_filters(model.payment_date, date_from, date_to)
    ).scalar()
    return to_decimal(total)


def get_order_ids(db: Session, tenant_id: str, account: AccountRef, date_to: Optional[date] = None) -> List[int]:
    """Phase one of the return lookup: the account's non-cancelled orders up to `date_to`."""
    model, partner_col, cancelled, _ = _order_source(account.account_type)
    rows = db.query(model.id).filter(
        model.tenant_id == tenant_id,
        partner_col == account.partner_id,
        model.status != cancelled,
        model.deleted_at.is_(None),
        *_date_filters(model.order_date, None, date_to)
    ).all()
    return [row.id for row in rows]


def sum_returns(db: Session, tenant_id: str, reference_type: StockReferenceType, order_ids: List[int],
                date_from: Optional[date] = None, date_to: Optional[date] = None) -> Decimal:
    """Phase two of the return lookup: value of returns against `order_ids`."""
    total = Decimal(0)
    for chunk in _chunks(order_ids):
        value = db.query(func.sum(StockTransaction.total_value)).filter(
            StockTransaction.tenant_id == tenant_id,
            StockTransaction.transaction_type == StockTransactionType.RETURN,
            StockTransaction.reference_type == reference_type,
            StockTransaction.reference_id.in_(chunk),
            StockTransaction.deleted_at.is_(None),
            *_date_filters(StockTransaction.transaction_date, date_from, date_to)
        ).scalar()
        total += to_decimal(value)
    return total


def sum_account_returns(db: Session, tenant_id: str, account: AccountRef,
                        date_from: Optional[date] = None, date_to: Optional[date] = None) -> Decimal:
    # A return can never predate its order, so orders up to date_to cover every return in range
    order_ids = get_order_ids(db, tenant_id, account, date_to)
    if not order_ids:
        return Decimal(0)
    _, _, _, reference_type = _order_source(account.account_type)
    return sum_returns(db, tenant_id, reference_type, order_ids, date_from, date_to)


def get_period_movements(db: Session, tenant_id: str, account: AccountRef, year: int) -> PeriodMovements:
    start, end = year_bounds(year)
    return PeriodMovements(
        increase=sum_increase(db, tenant_id, account, start, end),
        payment=sum_payments(db, tenant_id, account, start, end),
        returns=sum_account_returns(db, tenant_id, account, start, end),
    )


def get_balance_before(db: Session, tenant_id: str, account: AccountRef, cutoff: date) -> Decimal:
    """Outstanding balance from every movement strictly before `cutoff`."""
    last_day = cutoff - timedelta(days=1)
    increase = sum_increase(db, tenant_id, account, None, last_day)
    payment = sum_payments(db, tenant_id, account, None, last_day)
    returns = sum_account_returns(db, tenant_id, account, None, last_day)
    return increase - payment - returns


def get_first_activity_date(db: Session, tenant_id: str, account: AccountRef) -> Optional[date]:
    order_model, order_partner_col, cancelled, reference_type = _order_source(account.account_type)
    payment_model, payment_partner_col = _payment_source(account.account_type)

    first_order = db.query(func.min(order_model.order_date)).filter(
        order_model.tenant_id == tenant_id,
        order_partner_col == account.partner_id,
        order_model.status != cancelled,
        order_model.deleted_at.is_(None)
    ).scalar()
    first_payment = db.query(func.min(payment_model.payment_date)).filter(
        payment_model.tenant_id == tenant_id,
        payment_partner_col == account.partner_id,
        payment_model.deleted_at.is_(None)
    ).scalar()

    candidates = [d for d in (first_order, first_payment) if d is not None]

    order_ids = get_order_ids(db, tenant_id, account)
    for chunk in _chunks(order_ids):
        first_return = db.query(func.min(StockTransaction.transaction_date)).filter(
            StockTransaction.tenant_id == tenant_id,
            StockTransaction.transaction_type == StockTransactionType.RETURN,
            StockTransaction.reference_type == reference_type,
            StockTransaction.reference_id.in_(chunk),
            StockTransaction.deleted_at.is_(None)
        ).scalar()
        if first_return is not None:
            candidates.append(first_return)

    return min(candidates) if candidates else None


def _distinct_partner_ids(db: Session, tenant_id: str, model, partner_col, date_col, start: date, end: date, *extra) -> set:
    rows = db.query(partner_col).filter(
        model.tenant_id == tenant_id,
        model.deleted_at.is_(None),
        date_col >= start,
        date_col <= end,
        *extra
    ).distinct().all()
    return {row[0] for row in rows if row[0] is not None}


def _returning_partner_ids(db: Session, tenant_id: str, account_type: AccountType, start: date, end: date) -> set:
    order_model, order_partner_col, cancelled, reference_type = _order_source(account_type)

    # Phase one: which orders had something returned this year
    rows = db.query(StockTransaction.reference_id).filter(
        StockTransaction.tenant_id == tenant_id,
        StockTransaction.transaction_type == StockTransactionType.RETURN,
        StockTransaction.reference_type == reference_type,
        StockTransaction.reference_id.isnot(None),
        StockTransaction.deleted_at.is_(None),
        StockTransaction.transaction_date >= start,
        StockTransaction.transaction_date <= end
    ).distinct().all()
    order_ids = [row[0] for row in rows]

    # Phase two: who owns those orders
    partner_ids = set()
    for chunk in _chunks(order_ids):
        owners = db.query(order_partner_col).filter(
            order_model.tenant_id == tenant_id,
            order_model.id.in_(chunk),
            order_model.status != cancelled,
            order_model.deleted_at.is_(None)
        ).distinct().all()
        partner_ids.update(row[0] for row in owners)
    return partner_ids


def get_active_accounts(db: Session, tenant_id: str, year: int) -> List[AccountRef]:
    """Accounts with at least one qualifying movement in `year`, customers first."""
    start, end = year_bounds(year)

    customer_ids = _distinct_partner_ids(
        db, tenant_id, SalesOrder, SalesOrder.customer_id, SalesOrder.order_date, start, end,
        SalesOrder.status != SalesOrderStatus.CANCELLED
    )
    customer_ids |= _distinct_partner_ids(
        db, tenant_id, SalesPayment, SalesPayment.customer_id, SalesPayment.payment_date, start, end
    )
    customer_ids |= _returning_partner_ids(db, tenant_id, AccountType.CUSTOMER, start, end)

    supplier_ids = _distinct_partner_ids(
        db, tenant_id, PurchaseOrder, PurchaseOrder.vendor_id, PurchaseOrder.order_date, start, end,
        PurchaseOrder.status != PurchaseOrderStatus.CANCELLED
    )
    supplier_ids |= _distinct_partner_ids(
        db, tenant_id, Payment, Payment.vendor_id, Payment.payment_date, start, end
    )
    supplier_ids |= _returning_partner_ids(db, tenant_id, AccountType.SUPPLIER, start, end)

    return (
        [AccountRef(AccountType.CUSTOMER, pid) for pid in sorted(customer_ids)]
        + [AccountRef(AccountType.SUPPLIER, pid) for pid in sorted(supplier_ids)]
    )


def list_account_returns(db: Session, tenant_id: str, account: AccountRef,
                         date_from: Optional[date] = None, date_to: Optional[date] = None) -> List[StockTransaction]:
    """Return documents of the account in range, oldest first (same two-phase lookup as the sums)."""
    order_ids = get_order_ids(db, tenant_id, account, date_to)
    _, _, _, reference_type = _order_source(account.account_type)
    returns = []
    for chunk in _chunks(order_ids):
        returns.extend(db.query(StockTransaction).filter(
            StockTransaction.tenant_id == tenant_id,
            StockTransaction.transaction_type == StockTransactionType.RETURN,
            StockTransaction.reference_type == reference_type,
            StockTransaction.reference_id.in_(chunk),
            *_date_filters(StockTransaction.transaction_date, date_from, date_to)
        ).all())
    return sorted(returns, key=lambda r: (r.transaction_date, r.id))
