from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db, SessionLocal
from utils.auth_utils import get_current_user, get_user_identifier, require_group
from utils.tenancy import get_tenant_id
from utils.errors import LedgerError, LedgerValidationError, AccountNotFoundError, PeriodNotFoundError, PeriodLockedError
from crud import ledger_sync, ledger_batch, ledger_audit, ledger_reports
from models.ledgers import AccountType
import ledger_settings
from schemas.ledgers import (
    BatchSyncRequest,
    BatchSyncSummary,
    FullSyncResult,
    IntegrityReport,
    LedgerDetail,
    LedgerList,
    LedgerPeriod,
    ManualAdjustmentRequest,
    SnapshotSyncResult,
    SyncAccountRequest,
)

router = APIRouter(prefix="/ledgers", tags=["Ledgers"])
logger = logging.getLogger("ledgers")

LEDGER_ADMIN_GROUPS = ["admin", "accounts-group"]


def _http_error(e: LedgerError) -> HTTPException:
    if isinstance(e, (AccountNotFoundError, PeriodNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PeriodLockedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, LedgerValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


@router.get("/", response_model=LedgerList)
def list_ledgers(
    year: Optional[int] = None,
    account_type: Optional[AccountType] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    assigned_user_id: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """Ledger rows of a year (default: current year) with totals."""
    try:
        return ledger_reports.list_ledgers(
            db, tenant_id, year=year, account_type=account_type, status=status_filter,
            assigned_user_id=assigned_user_id, search=search, skip=skip, limit=limit
        )
    except LedgerError as e:
        raise _http_error(e)


@router.get("/integrity", response_model=IntegrityReport)
def check_integrity(year: Optional[int] = None, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    try:
        return ledger_audit.audit_year(db, tenant_id, year if year is not None else ledger_settings.current_year())
    except LedgerError as e:
        raise _http_error(e)


@router.get("/integrity/export")
def export_integrity(year: Optional[int] = None, db: Session = Depends(get_db), tenant_id: str = Depends(get_tenant_id)):
    """Integrity check results as an Excel file."""
    try:
        report = ledger_audit.audit_year(db, tenant_id, year if year is not None else ledger_settings.current_year())
    except LedgerError as e:
        raise _http_error(e)

    excel_file = ledger_audit.export_integrity_report(report)
    headers = {
        'Content-Disposition': f'attachment; filename="ledger_integrity_{report.year}.xlsx"'
    }
    return StreamingResponse(excel_file, media_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet', headers=headers)


@router.post("/sync-full", response_model=FullSyncResult)
def sync_full(
    request: SyncAccountRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Recompute one account's ledger from its first transaction up to the requested year."""
    try:
        result = ledger_sync.sync_account_full(
            db, tenant_id, changed_by=get_user_identifier(user), **request.model_dump()
        )
    except LedgerError as e:
        raise _http_error(e)
    logger.info(f"Full sync of {result.account_type.value} {result.account_id} requested by {get_user_identifier(user)} for tenant {tenant_id}")
    return result


@router.post("/sync-snapshot", response_model=SnapshotSyncResult)
def sync_snapshot(
    request: SyncAccountRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Recompute one account's ledger for a single year from last year's closing balance."""
    try:
        result = ledger_sync.sync_account_snapshot(
            db, tenant_id, changed_by=get_user_identifier(user), **request.model_dump()
        )
    except LedgerError as e:
        raise _http_error(e)
    logger.info(f"Snapshot sync of period {result.period.id} requested by {get_user_identifier(user)} for tenant {tenant_id}")
    return result


def _batch_session_factory(request: BatchSyncRequest):
    return SessionLocal if (request.max_workers or ledger_settings.BATCH_MAX_WORKERS) > 1 else None


@router.post("/sync-full-batch", response_model=BatchSyncSummary)
def sync_full_batch(
    request: BatchSyncRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(require_group(LEDGER_ADMIN_GROUPS)),
    tenant_id: str = Depends(get_tenant_id)
):
    """Full resync of every active account. Per-account failures are reported in `errors`."""
    try:
        return ledger_batch.sync_all_full(
            db, tenant_id, year=request.year, max_workers=request.max_workers,
            session_factory=_batch_session_factory(request), changed_by=get_user_identifier(user)
        )
    except LedgerError as e:
        raise _http_error(e)


@router.post("/sync-snapshot-batch", response_model=BatchSyncSummary)
def sync_snapshot_batch(
    request: BatchSyncRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(require_group(LEDGER_ADMIN_GROUPS)),
    tenant_id: str = Depends(get_tenant_id)
):
    try:
        return ledger_batch.sync_all_snapshot(
            db, tenant_id, year=request.year, max_workers=request.max_workers,
            session_factory=_batch_session_factory(request), changed_by=get_user_identifier(user)
        )
    except LedgerError as e:
        raise _http_error(e)


@router.patch("/periods/{period_id}/adjustment", response_model=LedgerPeriod)
def adjust_period(
    period_id: int,
    request: ManualAdjustmentRequest,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    tenant_id: str = Depends(get_tenant_id)
):
    """Manual adjustment of one period. Allowed on locked periods; later years are not cascaded."""
    try:
        return ledger_sync.apply_manual_adjustment(
            db, tenant_id, period_id, request.adjustment_amount,
            notes=request.notes, changed_by=get_user_identifier(user)
        )
    except LedgerError as e:
        raise _http_error(e)


@router.post("/periods/{period_id}/lock", response_model=LedgerPeriod)
def lock_period(
    period_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_group(LEDGER_ADMIN_GROUPS)),
    tenant_id: str = Depends(get_tenant_id)
):
    try:
        return ledger_sync.set_period_lock(db, tenant_id, period_id, True, changed_by=get_user_identifier(user))
    except LedgerError as e:
        raise _http_error(e)


@router.post("/periods/{period_id}/unlock", response_model=LedgerPeriod)
def unlock_period(
    period_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_group(LEDGER_ADMIN_GROUPS)),
    tenant_id: str = Depends(get_tenant_id)
):
    try:
        return ledger_sync.set_period_lock(db, tenant_id, period_id, False, changed_by=get_user_identifier(user))
    except LedgerError as e:
        raise _http_error(e)


# Declared last: the two path segments would otherwise shadow /integrity/export
@router.get("/{account_type}/{partner_id}", response_model=LedgerDetail)
def get_ledger_detail(
    account_type: AccountType,
    partner_id: int,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    tenant_id: str = Depends(get_tenant_id)
):
    """One account's ledger for a year: partner info, balances and the year's movements."""
    try:
        return ledger_reports.get_ledger_detail(db, tenant_id, account_type, partner_id, year)
    except LedgerError as e:
        raise _http_error(e)
