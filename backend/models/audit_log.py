from sqlalchemy import Column, Integer, String, DateTime, JSON
from database import Base
import ledger_settings

class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True)
    table_name = Column(String, nullable=False)
    record_id = Column(Integer, nullable=False)
    changed_at = Column(DateTime(timezone=True), default=ledger_settings.now)
    changed_by = Column(String, nullable=False)
    action = Column(String, nullable=False)  # e.g. 'SYNC_FULL', 'SYNC_SNAPSHOT', 'ADJUST', 'LOCK'
    old_values = Column(JSON)
    new_values = Column(JSON)
