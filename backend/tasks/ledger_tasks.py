import logging
from typing import List

from sqlalchemy.orm import Session

from database import SessionLocal
import ledger_settings
from crud import ledger_batch
from models.business_partners import BusinessPartner

logger = logging.getLogger(__name__)


def get_tenant_ids(db: Session) -> List[str]:
    rows = db.query(BusinessPartner.tenant_id).filter(BusinessPartner.tenant_id.isnot(None)).distinct().all()
    return sorted(row[0] for row in rows)


def _run_for_all_tenants(batch_fn, label: str):
    year = ledger_settings.current_year()
    logger.info(f"Starting {label} ledger sync for {year}.")
    db: Session = SessionLocal()
    try:
        tenant_ids = get_tenant_ids(db)
        db.commit()
    except Exception as e:
        logger.error(f"Could not list tenants for {label} ledger sync: {e}", exc_info=True)
        db.rollback()
        db.close()
        return

    try:
        for tenant_id in tenant_ids:
            # One tenant's discovery failure must not stop the others
            try:
                summary = batch_fn(db, tenant_id, year=year, session_factory=SessionLocal)
                logger.info(f"{label} ledger sync for tenant '{tenant_id}': {summary.success}/{summary.total_checked} ok, "
                            f"{summary.failed} failed in {summary.duration_seconds}s")
            except Exception as e:
                logger.error(f"{label} ledger sync failed for tenant '{tenant_id}': {e}", exc_info=True)
                db.rollback()
    finally:
        db.close()


def run_nightly_snapshot_sync():
    """Snapshot resync of the current year for every tenant."""
    _run_for_all_tenants(ledger_batch.sync_all_snapshot, "Nightly snapshot")


def run_weekly_full_sync():
    """Full history resync of every tenant's active accounts."""
    _run_for_all_tenants(ledger_batch.sync_all_full, "Weekly full")
