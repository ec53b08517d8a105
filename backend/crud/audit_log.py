import logging
from sqlalchemy.orm import Session
from models.audit_log import AuditLog
from schemas.audit_log import AuditLogCreate

logger = logging.getLogger(__name__)

def create_audit_log(db: Session, log_entry: AuditLogCreate):
    db_log_entry = AuditLog(**log_entry.model_dump())
    db.add(db_log_entry)
    db.commit()
    db.refresh(db_log_entry)
    return db_log_entry

def log_activity(db: Session, log_entry: AuditLogCreate):
    """Fire-and-forget append: a failing audit write never fails the caller's action."""
    try:
        return create_audit_log(db, log_entry)
    except Exception as e:
        db.rollback()
        logger.warning(f"Audit log append failed for {log_entry.table_name}#{log_entry.record_id} ({log_entry.action}): {e}")
        return None
