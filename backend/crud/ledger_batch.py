"""
Batch ledger synchronization over every active account of a tenant.

Each account runs in its own transaction: one failing account is rolled back
and recorded, the others carry on. The read cache is invalidated once, after
the whole batch.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

import ledger_settings
from crud.ledger_sources import get_active_accounts
from crud.ledger_store import validate_year
from crud.ledger_sync import sync_account_full, sync_account_snapshot
from models.ledgers import AccountRef
from schemas.ledgers import BatchFailure, BatchSyncSummary
from utils.cache import invalidate_ledger_cache

logger = logging.getLogger(__name__)

MODE_FULL = "FULL_ALL"
MODE_SNAPSHOT = "SNAPSHOT_ALL"

OK = "ok"
FAILED = "failed"
SKIPPED = "skipped"

Outcome = Tuple[AccountRef, str, Optional[str]]


def _sync_one(mode: str, sync_fn: Callable, db: Session, tenant_id: str, account: AccountRef,
              year: int, changed_by: str) -> Outcome:
    try:
        sync_fn(
            db, tenant_id,
            customer_id=account.customer_id,
            supplier_id=account.supplier_id,
            year=year,
            changed_by=changed_by,
            invalidate_cache=False,
        )
        return account, OK, None
    except Exception as e:
        # The single-account call has already rolled back its transaction
        logger.error(f"[{mode}] {account} (tenant {tenant_id}) failed for {year}: {e}", exc_info=True)
        return account, FAILED, str(e) or e.__class__.__name__


def _sync_one_in_own_session(mode: str, sync_fn: Callable, session_factory: Callable[[], Session],
                             tenant_id: str, account: AccountRef, year: int, changed_by: str,
                             cancel_event: Optional[threading.Event]) -> Outcome:
    if cancel_event is not None and cancel_event.is_set():
        return account, SKIPPED, None
    db = session_factory()
    try:
        return _sync_one(mode, sync_fn, db, tenant_id, account, year, changed_by)
    finally:
        db.close()


def _run_batch(
    mode: str,
    sync_fn: Callable,
    db: Session,
    tenant_id: str,
    year: Optional[int],
    cancel_event: Optional[threading.Event],
    max_workers: Optional[int],
    session_factory: Optional[Callable[[], Session]],
    changed_by: str,
) -> BatchSyncSummary:
    started = time.monotonic()
    target_year = validate_year(year if year is not None else ledger_settings.current_year())
    workers = max_workers or ledger_settings.BATCH_MAX_WORKERS
    if workers > ledger_settings.BATCH_WORKER_LIMIT:
        logger.warning(f"[{mode}] {workers} workers requested; capped at {ledger_settings.BATCH_WORKER_LIMIT}")
        workers = ledger_settings.BATCH_WORKER_LIMIT
    if workers > 1 and session_factory is None:
        logger.warning(f"[{mode}] {workers} workers requested without a session factory; running sequentially")
        workers = 1

    # Discovery failures are the only ones that abort the batch
    accounts = get_active_accounts(db, tenant_id, target_year)
    db.commit()
    logger.info(f"[{mode}] Tenant {tenant_id}: {len(accounts)} active accounts in {target_year} ({workers} worker(s))")

    outcomes: List[Outcome] = []
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(_sync_one_in_own_session, mode, sync_fn, session_factory,
                                tenant_id, account, target_year, changed_by, cancel_event)
                for account in accounts
            ]
            outcomes = [future.result() for future in futures]
    else:
        for index, account in enumerate(accounts):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"[{mode}] Tenant {tenant_id}: cancelled, {len(accounts) - index} accounts left unprocessed")
                outcomes.extend((remaining, SKIPPED, None) for remaining in accounts[index:])
                break
            outcomes.append(_sync_one(mode, sync_fn, db, tenant_id, account, target_year, changed_by))

    invalidate_ledger_cache(tenant_id)

    errors = [
        BatchFailure(account_type=account.account_type, account_id=account.partner_id, error=error)
        for account, status, error in outcomes if status == FAILED
    ]
    success = sum(1 for _, status, _ in outcomes if status == OK)
    skipped = sum(1 for _, status, _ in outcomes if status == SKIPPED)
    summary = BatchSyncSummary(
        year=target_year,
        mode=mode,
        total_checked=len(accounts),
        success=success,
        failed=len(errors),
        skipped=skipped,
        cancelled=skipped > 0,
        duration_seconds=round(time.monotonic() - started, 2),
        errors=errors,
    )
    logger.info(f"[{mode}] Tenant {tenant_id} {target_year}: {summary.success} ok, {summary.failed} failed, "
                f"{summary.skipped} skipped in {summary.duration_seconds}s")
    return summary


def sync_all_full(
    db: Session,
    tenant_id: str,
    year: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    max_workers: Optional[int] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    changed_by: str = "system",
) -> BatchSyncSummary:
    """Full history resync of every account active in `year`."""
    return _run_batch(MODE_FULL, sync_account_full, db, tenant_id, year,
                      cancel_event, max_workers, session_factory, changed_by)


def sync_all_snapshot(
    db: Session,
    tenant_id: str,
    year: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    max_workers: Optional[int] = None,
    session_factory: Optional[Callable[[], Session]] = None,
    changed_by: str = "system",
) -> BatchSyncSummary:
    """Snapshot resync of `year` for every account active in it."""
    return _run_batch(MODE_SNAPSHOT, sync_account_snapshot, db, tenant_id, year,
                      cancel_event, max_workers, session_factory, changed_by)
