from sqlalchemy import Column, Integer, Numeric, Date, DateTime, String, Text, Boolean, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from collections import namedtuple
from database import Base
import enum
from models.audit_mixin import TimestampMixin

# Exactly one of the two partner columns is set on every ledger row
ONE_PARTNER_CHECK = "(customer_id IS NULL) <> (supplier_id IS NULL)"


class AccountType(enum.Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class SyncMethod(enum.Enum):
    SNAPSHOT = "SNAPSHOT"
    AGGREGATE_FALLBACK = "AGGREGATE_FALLBACK"
    LOCKED = "LOCKED"


class AccountRef(namedtuple("AccountRef", ["account_type", "partner_id"])):
    """Discriminated reference to one ledger account."""
    __slots__ = ()

    @property
    def customer_id(self):
        return self.partner_id if self.account_type == AccountType.CUSTOMER else None

    @property
    def supplier_id(self):
        return self.partner_id if self.account_type == AccountType.SUPPLIER else None

    @property
    def key(self) -> str:
        return f"{'C' if self.account_type == AccountType.CUSTOMER else 'S'}-{self.partner_id}"

    def __str__(self):
        return f"{self.account_type.value} {self.partner_id}"


class PartnerLedger(Base, TimestampMixin):
    """Live balance snapshot of one account, shown on list screens.

    `current_balance` is refreshed only by the ledger synchronizer.
    """
    __tablename__ = "partner_ledgers"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'customer_id', name='_tenant_ledger_customer_uc'),
        UniqueConstraint('tenant_id', 'supplier_id', name='_tenant_ledger_supplier_uc'),
        CheckConstraint(ONE_PARTNER_CHECK, name='ck_partner_ledgers_one_partner'),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=True)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=True)
    current_balance = Column(Numeric(18, 3), default=0, nullable=False)
    assigned_user_id = Column(String, nullable=True, index=True)
    balance_updated_at = Column(DateTime(timezone=True), nullable=True)
    tenant_id = Column(String, index=True)

    customer = relationship("BusinessPartner", foreign_keys=[customer_id])
    supplier = relationship("BusinessPartner", foreign_keys=[supplier_id])

    @property
    def account_ref(self) -> AccountRef:
        if self.customer_id is not None:
            return AccountRef(AccountType.CUSTOMER, self.customer_id)
        return AccountRef(AccountType.SUPPLIER, self.supplier_id)


class LedgerPeriod(Base, TimestampMixin):
    """One calendar-year ledger row for one account."""
    __tablename__ = "ledger_periods"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'customer_id', 'year', name='_tenant_period_customer_year_uc'),
        UniqueConstraint('tenant_id', 'supplier_id', 'year', name='_tenant_period_supplier_year_uc'),
        CheckConstraint(ONE_PARTNER_CHECK, name='ck_ledger_periods_one_partner'),
    )

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("business_partners.id"), nullable=True, index=True)
    supplier_id = Column(Integer, ForeignKey("business_partners.id"), nullable=True, index=True)
    year = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    opening_balance = Column(Numeric(18, 3), default=0, nullable=False)
    increase_amount = Column(Numeric(18, 3), default=0, nullable=False)
    payment_amount = Column(Numeric(18, 3), default=0, nullable=False)
    return_amount = Column(Numeric(18, 3), default=0, nullable=False)
    adjustment_amount = Column(Numeric(18, 3), default=0, nullable=False)
    closing_balance = Column(Numeric(18, 3), default=0, nullable=False)
    notes = Column(Text, nullable=True)
    is_locked = Column(Boolean, default=False, nullable=False)
    tenant_id = Column(String, index=True)

    customer = relationship("BusinessPartner", foreign_keys=[customer_id])
    supplier = relationship("BusinessPartner", foreign_keys=[supplier_id])

    @property
    def account_ref(self) -> AccountRef:
        if self.customer_id is not None:
            return AccountRef(AccountType.CUSTOMER, self.customer_id)
        return AccountRef(AccountType.SUPPLIER, self.supplier_id)

    @property
    def partner(self):
        return self.customer if self.customer_id is not None else self.supplier
