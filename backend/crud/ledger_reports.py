"""
Read views over the ledger: the yearly list with totals, and one account's detail.

Both are read-through cached per tenant; every ledger write invalidates the
tenant's entries.
"""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

import ledger_settings
from crud.ledger_sources import list_account_returns, year_bounds
from crud.ledger_store import get_master, get_partner, get_period, validate_year
from models.business_partners import BusinessPartner
from models.ledgers import AccountRef, AccountType, LedgerPeriod, PartnerLedger
from models.payments import Payment
from models.purchase_orders import PurchaseOrder, PurchaseOrderStatus
from models.sales_orders import SalesOrder, SalesOrderStatus
from models.sales_payments import SalesPayment
from schemas.ledgers import (
    LedgerDetail,
    LedgerFinancials,
    LedgerHistory,
    LedgerList,
    LedgerListItem,
    LedgerSummary,
    MovementEntry,
    PartnerInfo,
    PartnerLedger as PartnerLedgerSchema,
    LedgerPeriod as LedgerPeriodSchema,
)
from utils.cache import ledger_cache, ledger_detail_key, ledger_list_key
from utils.errors import LedgerValidationError
from utils.ledger_math import PAID, UNPAID, classify_status, to_decimal

logger = logging.getLogger(__name__)


def _ledger_query(db: Session, tenant_id: str, year: int):
    master_match = or_(
        and_(LedgerPeriod.customer_id.isnot(None), PartnerLedger.customer_id == LedgerPeriod.customer_id),
        and_(LedgerPeriod.supplier_id.isnot(None), PartnerLedger.supplier_id == LedgerPeriod.supplier_id),
    )
    return db.query(LedgerPeriod, BusinessPartner, PartnerLedger).join(
        BusinessPartner, BusinessPartner.id == func.coalesce(LedgerPeriod.customer_id, LedgerPeriod.supplier_id)
    ).outerjoin(
        PartnerLedger, and_(PartnerLedger.tenant_id == LedgerPeriod.tenant_id, master_match)
    ).filter(
        LedgerPeriod.tenant_id == tenant_id,
        LedgerPeriod.year == year,
        BusinessPartner.deleted_at.is_(None)
    )


def list_ledgers(
    db: Session,
    tenant_id: str,
    year: Optional[int] = None,
    account_type: Optional[AccountType] = None,
    status: Optional[str] = None,
    assigned_user_id: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> LedgerList:
    """Paginated ledger rows of `year` with totals over every matching row (not just the page)."""
    year = validate_year(year if year is not None else ledger_settings.current_year())
    if status is not None and status not in (PAID, UNPAID):
        raise LedgerValidationError(f"Invalid status filter: {status}")

    cache_key = ledger_list_key(
        tenant_id, year=year, account_type=account_type.value if account_type else None, status=status,
        assigned_user_id=assigned_user_id, search=search, skip=skip, limit=limit,
    )
    cached = ledger_cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Ledger list served from cache for tenant {tenant_id}")
        return cached

    query = _ledger_query(db, tenant_id, year)
    if account_type == AccountType.CUSTOMER:
        query = query.filter(LedgerPeriod.customer_id.isnot(None))
    elif account_type == AccountType.SUPPLIER:
        query = query.filter(LedgerPeriod.supplier_id.isnot(None))
    if status == PAID:
        query = query.filter(LedgerPeriod.closing_balance <= ledger_settings.PAID_THRESHOLD)
    elif status == UNPAID:
        query = query.filter(LedgerPeriod.closing_balance > ledger_settings.PAID_THRESHOLD)
    if assigned_user_id:
        query = query.filter(PartnerLedger.assigned_user_id == assigned_user_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            BusinessPartner.name.ilike(pattern),
            BusinessPartner.code.ilike(pattern),
            BusinessPartner.phone.ilike(pattern)
        ))

    totals = query.with_entities(
        func.sum(LedgerPeriod.opening_balance),
        func.sum(LedgerPeriod.increase_amount),
        func.sum(LedgerPeriod.payment_amount),
        func.sum(LedgerPeriod.return_amount),
        func.sum(LedgerPeriod.adjustment_amount),
        func.sum(LedgerPeriod.closing_balance),
    ).one()
    summary = LedgerSummary(
        opening=to_decimal(totals[0]),
        increase=to_decimal(totals[1]),
        payment=to_decimal(totals[2]),
        returns=to_decimal(totals[3]),
        adjustment=to_decimal(totals[4]),
        closing=to_decimal(totals[5]),
    )

    total = query.count()
    rows = query.order_by(LedgerPeriod.closing_balance.desc(), LedgerPeriod.id).offset(skip).limit(limit).all()

    items = []
    for period, partner, master in rows:
        account = period.account_ref
        items.append(LedgerListItem(
            period_id=period.id,
            account_type=account.account_type,
            account_id=account.partner_id,
            code=partner.code,
            name=partner.name,
            phone=partner.phone,
            assigned_user_id=master.assigned_user_id if master is not None else None,
            year=period.year,
            opening_balance=period.opening_balance,
            increase_amount=period.increase_amount,
            payment_amount=period.payment_amount,
            return_amount=period.return_amount,
            adjustment_amount=period.adjustment_amount,
            closing_balance=period.closing_balance,
            status=classify_status(period.closing_balance),
            is_locked=period.is_locked,
            notes=period.notes,
            updated_at=period.updated_at,
        ))

    result = LedgerList(year=year, total=total, skip=skip, limit=limit, summary=summary, items=items)
    ledger_cache.set(cache_key, result)
    return result


def _history(db: Session, tenant_id: str, account: AccountRef, year: int) -> LedgerHistory:
    start, end = year_bounds(year)
    if account.account_type == AccountType.CUSTOMER:
        orders = db.query(SalesOrder).filter(
            SalesOrder.tenant_id == tenant_id,
            SalesOrder.customer_id == account.partner_id,
            SalesOrder.status != SalesOrderStatus.CANCELLED,
            SalesOrder.order_date >= start,
            SalesOrder.order_date <= end
        ).order_by(SalesOrder.order_date, SalesOrder.id).all()
        order_entries = [
            MovementEntry(id=o.id, date=o.order_date, reference=o.bill_no or f"SO-{o.so_number}",
                          amount=o.total_amount, notes=o.notes)
            for o in orders
        ]
        payments = db.query(SalesPayment).filter(
            SalesPayment.tenant_id == tenant_id,
            SalesPayment.customer_id == account.partner_id,
            SalesPayment.payment_date >= start,
            SalesPayment.payment_date <= end
        ).order_by(SalesPayment.payment_date, SalesPayment.id).all()
    else:
        orders = db.query(PurchaseOrder).filter(
            PurchaseOrder.tenant_id == tenant_id,
            PurchaseOrder.vendor_id == account.partner_id,
            PurchaseOrder.status != PurchaseOrderStatus.CANCELLED,
            PurchaseOrder.order_date >= start,
            PurchaseOrder.order_date <= end
        ).order_by(PurchaseOrder.order_date, PurchaseOrder.id).all()
        order_entries = [
            MovementEntry(id=o.id, date=o.order_date, reference=o.bill_no or f"PO-{o.po_number}",
                          amount=o.total_amount, notes=o.notes)
            for o in orders
        ]
        payments = db.query(Payment).filter(
            Payment.tenant_id == tenant_id,
            Payment.vendor_id == account.partner_id,
            Payment.payment_date >= start,
            Payment.payment_date <= end
        ).order_by(Payment.payment_date, Payment.id).all()

    payment_entries = [
        MovementEntry(id=p.id, date=p.payment_date, reference=p.reference_number, amount=p.amount_paid, notes=p.notes)
        for p in payments
    ]
    return_entries = [
        MovementEntry(id=r.id, date=r.transaction_date, reference=f"Order #{r.reference_id}",
                      amount=r.total_value, notes=r.reason)
        for r in list_account_returns(db, tenant_id, account, start, end)
    ]
    return LedgerHistory(orders=order_entries, payments=payment_entries, returns=return_entries)


def get_ledger_detail(db: Session, tenant_id: str, account_type: AccountType, partner_id: int,
                      year: Optional[int] = None) -> LedgerDetail:
    year = validate_year(year if year is not None else ledger_settings.current_year())
    cache_key = ledger_detail_key(tenant_id, account_type.value, partner_id, year)
    cached = ledger_cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Ledger detail {account_type.value} {partner_id} served from cache for tenant {tenant_id}")
        return cached

    account = AccountRef(account_type, partner_id)
    partner = get_partner(db, tenant_id, account)
    master = get_master(db, tenant_id, account)
    period = get_period(db, tenant_id, account, year)

    if period is not None:
        financials = LedgerFinancials(
            opening=period.opening_balance,
            increase=period.increase_amount,
            payment=period.payment_amount,
            returns=period.return_amount,
            adjustment=period.adjustment_amount,
            closing=period.closing_balance,
            status=classify_status(period.closing_balance),
        )
    else:
        zero = Decimal(0)
        financials = LedgerFinancials(opening=zero, increase=zero, payment=zero, returns=zero,
                                      adjustment=zero, closing=zero, status=classify_status(zero))

    result = LedgerDetail(
        account_type=account_type,
        year=year,
        info=PartnerInfo.model_validate(partner),
        ledger=PartnerLedgerSchema.model_validate(master) if master is not None else None,
        period=LedgerPeriodSchema.model_validate(period) if period is not None else None,
        has_data=period is not None,
        financials=financials,
        history=_history(db, tenant_id, account, year),
    )
    ledger_cache.set(cache_key, result)
    return result
