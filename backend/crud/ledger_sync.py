"""
Single-account ledger synchronization.

Two modes:
- full: recompute every year from the account's first activity up to the
  target year, carrying each closing balance into the next opening balance.
- snapshot: recompute only the target year, opening from the stored prior
  period (or from the transaction history when that period does not exist).

Each call is one transaction. The audit-log append and the read-cache
invalidation happen only after the commit.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

import ledger_settings
from crud.audit_log import log_activity
from crud.ledger_sources import get_balance_before, get_first_activity_date, get_period_movements
from crud.ledger_store import (
    acquire_account_lock,
    apply_statement_timeout,
    get_or_create_master,
    get_partner,
    get_period,
    get_period_by_id,
    refresh_master_balance,
    resolve_account_ref,
    upsert_period,
    validate_year,
)
from models.ledgers import AccountRef, LedgerPeriod, PartnerLedger, SyncMethod
from schemas.audit_log import AuditLogCreate
from schemas.ledgers import FullSyncResult, LedgerPeriod as LedgerPeriodSchema, SnapshotSyncResult
from utils import sqlalchemy_to_dict
from utils.cache import invalidate_ledger_cache
from utils.errors import PeriodLockedError
from utils.ledger_math import classify_status, compute_closing_balance, to_decimal

logger = logging.getLogger(__name__)

HISTORY_NOTE = "Automatic history sync for {year}"
FALLBACK_NOTE = "(Opening balance recomputed from transaction history: no ledger period for {prev_year})"
FALLBACK_NOTE_PATTERN = re.compile(
    r"\s*" + re.escape(FALLBACK_NOTE).replace(re.escape("{prev_year}"), r"\d+")
)


def _open_account(db: Session, tenant_id: str, account: AccountRef, statement_timeout_ms: int,
                  assigned_user_id: Optional[str]) -> PartnerLedger:
    get_partner(db, tenant_id, account)
    apply_statement_timeout(db, statement_timeout_ms)
    acquire_account_lock(db, tenant_id, account)
    # The row lock covers backends without advisory locks
    master = get_or_create_master(db, tenant_id, account, for_update=True)
    if assigned_user_id is not None:
        master.assigned_user_id = assigned_user_id
    return master


def _period_notes(existing: Optional[LedgerPeriod], notes: Optional[str],
                  fallback_prev_year: Optional[int]) -> str:
    """
    Notes to store on a recomputed period.

    Without new `notes` the stored ones are kept. The fallback flag is dropped
    from them either way and only re-added when this run used the fallback.
    """
    base = notes if notes is not None else (existing.notes if existing is not None else None)
    base = FALLBACK_NOTE_PATTERN.sub("", base or "").strip()
    if fallback_prev_year is None:
        return base
    auto_note = FALLBACK_NOTE.format(prev_year=fallback_prev_year)
    return f"{base} {auto_note}" if base else auto_note


def _sync_period(db: Session, tenant_id: str, account: AccountRef, master: PartnerLedger, year: int,
                 opening_balance: Decimal, adjustment_amount: Optional[Decimal], notes: Optional[str],
                 this_year: int, fallback_prev_year: Optional[int] = None):
    """Recompute and store one period. Returns (period, was_locked); a locked period is left as stored."""
    existing = get_period(db, tenant_id, account, year)
    if existing is not None and existing.is_locked:
        if adjustment_amount is not None:
            raise PeriodLockedError(existing.id, year)
        if year >= this_year:
            refresh_master_balance(master, existing)
        return existing, True

    if adjustment_amount is None:
        # Adjustments have no transaction source: keep what was entered before
        adjustment_amount = existing.adjustment_amount if existing is not None else Decimal(0)
    adjustment_amount = to_decimal(adjustment_amount)

    movements = get_period_movements(db, tenant_id, account, year)
    closing_balance = compute_closing_balance(
        opening_balance, movements.increase, movements.payment, movements.returns, adjustment_amount
    )
    period = upsert_period(db, tenant_id, account, year, {
        "opening_balance": opening_balance,
        "increase_amount": movements.increase,
        "payment_amount": movements.payment,
        "return_amount": movements.returns,
        "adjustment_amount": adjustment_amount,
        "closing_balance": closing_balance,
    }, _period_notes(existing, notes, fallback_prev_year))

    if year >= this_year:
        refresh_master_balance(master, period)

    logger.debug(f"{account} {year}: opening={opening_balance} +{movements.increase} -{movements.payment} "
                 f"-{movements.returns} -{adjustment_amount} = {closing_balance}")
    return period, False


def _after_commit(db: Session, tenant_id: str, log_entry: AuditLogCreate, invalidate_cache: bool) -> None:
    log_activity(db, log_entry)
    if invalidate_cache:
        invalidate_ledger_cache(tenant_id)


def sync_account_full(
    db: Session,
    tenant_id: str,
    customer_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    year: Optional[int] = None,
    notes: Optional[str] = None,
    adjustment_amount: Optional[Decimal] = None,
    assigned_user_id: Optional[str] = None,
    changed_by: str = "system",
    invalidate_cache: bool = True,
) -> FullSyncResult:
    """
    Authoritative recomputation of one account from its complete history.

    Years are folded strictly in ascending order; each year's closing balance
    is the next year's opening balance. Locked periods are left as stored and
    their closing balance is what gets carried forward. `adjustment_amount`
    and `notes` apply to the target year only.
    """
    account = resolve_account_ref(customer_id, supplier_id)
    this_year = ledger_settings.current_year()
    target_year = validate_year(year if year is not None else this_year)

    try:
        master = _open_account(db, tenant_id, account, ledger_settings.FULL_SYNC_STATEMENT_TIMEOUT_MS, assigned_user_id)

        first_activity = get_first_activity_date(db, tenant_id, account)
        start_year = min(first_activity.year, target_year) if first_activity else target_year
        logger.info(f"[SyncFull] {account} (tenant {tenant_id}): syncing {start_year}..{target_year}")

        balance = get_balance_before(db, tenant_id, account, date(start_year, 1, 1))
        years_synced, locked_years = [], []
        for y in range(start_year, target_year + 1):
            is_target = y == target_year
            period, locked = _sync_period(
                db, tenant_id, account, master, y, balance,
                adjustment_amount=adjustment_amount if is_target else None,
                notes=notes if is_target else HISTORY_NOTE.format(year=y),
                this_year=this_year,
            )
            (locked_years if locked else years_synced).append(y)
            balance = to_decimal(period.closing_balance)

        master_id = master.id
        db.commit()
    except Exception:
        db.rollback()
        raise

    result = FullSyncResult(
        account_type=account.account_type,
        account_id=account.partner_id,
        year=target_year,
        start_year=start_year,
        end_year=target_year,
        final_balance=balance,
        years_synced=years_synced,
        locked_years=locked_years,
    )
    logger.info(f"[SyncFull] {account} (tenant {tenant_id}) done: final balance {balance}")
    _after_commit(db, tenant_id, AuditLogCreate(
        tenant_id=tenant_id,
        table_name='partner_ledgers',
        record_id=master_id,
        changed_by=changed_by,
        action='SYNC_FULL',
        new_values=result.model_dump(mode="json"),
    ), invalidate_cache)
    return result


def sync_account_snapshot(
    db: Session,
    tenant_id: str,
    customer_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    year: Optional[int] = None,
    notes: Optional[str] = None,
    adjustment_amount: Optional[Decimal] = None,
    assigned_user_id: Optional[str] = None,
    changed_by: str = "system",
    invalidate_cache: bool = True,
) -> SnapshotSyncResult:
    """
    Recompute only `year` (default: current year) for one account.

    The opening balance is the stored closing balance of `year - 1`
    (method SNAPSHOT). Without that row it is rebuilt from every movement
    before the year, returns included (method AGGREGATE_FALLBACK), and a note
    is appended: manual adjustments of earlier years are not part of that
    estimate. A locked period is returned untouched (method LOCKED).
    """
    account = resolve_account_ref(customer_id, supplier_id)
    this_year = ledger_settings.current_year()
    target_year = validate_year(year if year is not None else this_year)

    try:
        master = _open_account(db, tenant_id, account, ledger_settings.SNAPSHOT_STATEMENT_TIMEOUT_MS, assigned_user_id)

        prior = get_period(db, tenant_id, account, target_year - 1)
        if prior is not None:
            opening_balance = to_decimal(prior.closing_balance)
            method, fallback_prev_year = SyncMethod.SNAPSHOT, None
        else:
            opening_balance = get_balance_before(db, tenant_id, account, date(target_year, 1, 1))
            method, fallback_prev_year = SyncMethod.AGGREGATE_FALLBACK, target_year - 1

        period, was_locked = _sync_period(
            db, tenant_id, account, master, target_year, opening_balance,
            adjustment_amount=adjustment_amount, notes=notes, this_year=this_year,
            fallback_prev_year=fallback_prev_year,
        )
        if was_locked:
            method = SyncMethod.LOCKED
        elif method == SyncMethod.AGGREGATE_FALLBACK:
            logger.warning(f"[SyncSnapshot] {account} (tenant {tenant_id}): no period for {target_year - 1}, "
                           f"opening balance {opening_balance} estimated from history")

        db.commit()
        db.refresh(period)
    except Exception:
        db.rollback()
        raise

    result = SnapshotSyncResult(
        period=LedgerPeriodSchema.model_validate(period),
        status=classify_status(period.closing_balance),
        method=method,
    )
    logger.info(f"[SyncSnapshot] {account} (tenant {tenant_id}) {target_year}: closing {period.closing_balance} via {method.value}")
    _after_commit(db, tenant_id, AuditLogCreate(
        tenant_id=tenant_id,
        table_name='ledger_periods',
        record_id=period.id,
        changed_by=changed_by,
        action='SYNC_SNAPSHOT',
        new_values={**sqlalchemy_to_dict(period), "method": method.value},
    ), invalidate_cache)
    return result


def apply_manual_adjustment(
    db: Session,
    tenant_id: str,
    period_id: int,
    adjustment_amount: Decimal,
    notes: Optional[str] = None,
    changed_by: str = "system",
) -> LedgerPeriod:
    """
    Manual override of a period's adjustment amount, allowed on locked periods.

    Only this period is recomputed. Later years keep their opening balance until
    the next sync; the integrity audit reports the gap meanwhile.
    """
    try:
        period = get_period_by_id(db, tenant_id, period_id)
        account = period.account_ref
        acquire_account_lock(db, tenant_id, account)
        db.refresh(period)

        old_values = sqlalchemy_to_dict(period)
        period.adjustment_amount = to_decimal(adjustment_amount)
        period.closing_balance = compute_closing_balance(
            period.opening_balance, period.increase_amount, period.payment_amount,
            period.return_amount, period.adjustment_amount
        )
        if notes is not None:
            period.notes = notes
        period.updated_at = ledger_settings.now()
        period.updated_by = changed_by

        if period.year >= ledger_settings.current_year():
            refresh_master_balance(get_or_create_master(db, tenant_id, account), period)

        db.commit()
        db.refresh(period)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Manual adjustment {period.adjustment_amount} on period {period.year} of {account} by {changed_by} (tenant {tenant_id})")
    _after_commit(db, tenant_id, AuditLogCreate(
        tenant_id=tenant_id,
        table_name='ledger_periods',
        record_id=period.id,
        changed_by=changed_by,
        action='ADJUST',
        old_values=old_values,
        new_values=sqlalchemy_to_dict(period),
    ), True)
    return period


def set_period_lock(db: Session, tenant_id: str, period_id: int, locked: bool, changed_by: str = "system") -> LedgerPeriod:
    try:
        period = get_period_by_id(db, tenant_id, period_id)
        old_values = sqlalchemy_to_dict(period)
        period.is_locked = locked
        period.updated_at = ledger_settings.now()
        period.updated_by = changed_by
        db.commit()
        db.refresh(period)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Ledger period {period.id} ({period.year}) {'locked' if locked else 'unlocked'} by {changed_by} (tenant {tenant_id})")
    _after_commit(db, tenant_id, AuditLogCreate(
        tenant_id=tenant_id,
        table_name='ledger_periods',
        record_id=period.id,
        changed_by=changed_by,
        action='LOCK' if locked else 'UNLOCK',
        old_values=old_values,
        new_values=sqlalchemy_to_dict(period),
    ), True)
    return period
