from sqlalchemy import Column, DateTime, String
import ledger_settings


class TimestampMixin:
    """Mixin that provides created/updated timestamps and user info.

    Timestamps are timezone-aware and taken in the configured ledger timezone
    (`LEDGER_TIMEZONE`), so year boundaries match the ones used for periods.
    """
    created_at = Column(DateTime(timezone=True), default=ledger_settings.now)
    updated_at = Column(DateTime(timezone=True), onupdate=ledger_settings.now)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)


class SoftDeleteMixin:
    """Mixin for soft-delete columns (deleted_at, deleted_by).

    Applied to the transactional source tables: a soft-deleted order, payment
    or stock return no longer counts as a ledger movement.
    """
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(String, nullable=True)


class AuditMixin(TimestampMixin, SoftDeleteMixin):
    """Timestamps + soft-delete, for source documents."""
    pass
