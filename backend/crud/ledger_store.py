import logging
import zlib
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, joinedload

import ledger_settings
from models.business_partners import BusinessPartner
from models.ledgers import AccountRef, AccountType, LedgerPeriod, PartnerLedger
from utils.errors import AccountNotFoundError, LedgerValidationError, PeriodNotFoundError

logger = logging.getLogger(__name__)

AMOUNT_FIELDS = ("opening_balance", "increase_amount", "payment_amount", "return_amount", "adjustment_amount", "closing_balance")


def resolve_account_ref(customer_id: Optional[int] = None, supplier_id: Optional[int] = None) -> AccountRef:
    if (customer_id is None) == (supplier_id is None):
        raise LedgerValidationError("Exactly one of customer_id or supplier_id must be provided")
    if customer_id is not None:
        return AccountRef(AccountType.CUSTOMER, int(customer_id))
    return AccountRef(AccountType.SUPPLIER, int(supplier_id))


def validate_year(year: int) -> int:
    if year is None or int(year) < 1900 or int(year) > 9999:
        raise LedgerValidationError(f"Invalid ledger year: {year}")
    return int(year)


def _account_filters(model, tenant_id: str, account: AccountRef):
    partner_col = model.customer_id if account.account_type == AccountType.CUSTOMER else model.supplier_id
    return [model.tenant_id == tenant_id, partner_col == account.partner_id]


def get_partner(db: Session, tenant_id: str, account: AccountRef) -> BusinessPartner:
    """The partner behind `account`; it must exist in the tenant and carry the matching role."""
    role_flag = BusinessPartner.is_customer if account.account_type == AccountType.CUSTOMER else BusinessPartner.is_vendor
    partner = db.query(BusinessPartner).filter(
        BusinessPartner.id == account.partner_id,
        BusinessPartner.tenant_id == tenant_id,
        role_flag
    ).first()
    if partner is None:
        raise AccountNotFoundError(account.account_type.value, account.partner_id)
    return partner


def acquire_account_lock(db: Session, tenant_id: str, account: AccountRef) -> None:
    """Serialize syncs of the same account until the current transaction ends."""
    if db.get_bind().dialect.name == "postgresql":
        key = zlib.crc32(f"{tenant_id}:{account.key}".encode("utf-8"))
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


def apply_statement_timeout(db: Session, timeout_ms: int) -> None:
    """Per-statement cap for the rest of the transaction; not a budget for the transaction as a whole."""
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def get_period(db: Session, tenant_id: str, account: AccountRef, year: int) -> Optional[LedgerPeriod]:
    return db.query(LedgerPeriod).filter(
        *_account_filters(LedgerPeriod, tenant_id, account),
        LedgerPeriod.year == year
    ).first()


def get_period_by_id(db: Session, tenant_id: str, period_id: int) -> LedgerPeriod:
    period = db.query(LedgerPeriod).filter(
        LedgerPeriod.id == period_id,
        LedgerPeriod.tenant_id == tenant_id
    ).first()
    if period is None:
        raise PeriodNotFoundError(period_id)
    return period


def get_periods_for_year(db: Session, tenant_id: str, year: int) -> List[LedgerPeriod]:
    return db.query(LedgerPeriod).options(
        joinedload(LedgerPeriod.customer),
        joinedload(LedgerPeriod.supplier)
    ).filter(
        LedgerPeriod.tenant_id == tenant_id,
        LedgerPeriod.year == year
    ).order_by(LedgerPeriod.id).all()


def upsert_period(db: Session, tenant_id: str, account: AccountRef, year: int,
                  amounts: dict, notes: Optional[str] = None) -> LedgerPeriod:
    """Insert or update the (account, year) row. Existing notes are kept when `notes` is None."""
    period = get_period(db, tenant_id, account, year)
    if period is None:
        start, end = date(year, 1, 1), date(year, 12, 31)
        period = LedgerPeriod(
            customer_id=account.customer_id,
            supplier_id=account.supplier_id,
            year=year,
            start_date=start,
            end_date=end,
            notes=notes or "",
            is_locked=False,
            tenant_id=tenant_id,
            **{field: amounts.get(field, Decimal(0)) for field in AMOUNT_FIELDS}
        )
        db.add(period)
    else:
        for field in AMOUNT_FIELDS:
            setattr(period, field, amounts.get(field, Decimal(0)))
        if notes is not None:
            period.notes = notes
        period.updated_at = ledger_settings.now()
    db.flush()
    return period


def get_master(db: Session, tenant_id: str, account: AccountRef, for_update: bool = False) -> Optional[PartnerLedger]:
    query = db.query(PartnerLedger).filter(*_account_filters(PartnerLedger, tenant_id, account))
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_or_create_master(db: Session, tenant_id: str, account: AccountRef, for_update: bool = False) -> PartnerLedger:
    master = get_master(db, tenant_id, account, for_update)
    if master is None:
        master = PartnerLedger(
            customer_id=account.customer_id,
            supplier_id=account.supplier_id,
            current_balance=Decimal(0),
            tenant_id=tenant_id,
        )
        db.add(master)
        db.flush()
        logger.info(f"Created ledger master for {account} (tenant {tenant_id})")
    return master


def refresh_master_balance(master: PartnerLedger, period: LedgerPeriod) -> None:
    """Copy a period's closing balance into the master snapshot (sync paths only)."""
    master.current_balance = period.closing_balance
    master.balance_updated_at = ledger_settings.now()
