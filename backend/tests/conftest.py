"""
Shared fixtures for the ledger test suite.

Tests run against an in-memory SQLite database (one per test) with the
current year pinned to 2024, so the dated scenarios do not depend on the
day the suite runs.
"""
import os

# Must be set before `database` is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGER_SCHEDULER_ENABLED", "false")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import ledger_settings
from database import Base
from models import (
    BusinessPartner,
    Payment,
    PurchaseOrder,
    PurchaseOrderStatus,
    SalesOrder,
    SalesOrderStatus,
    SalesPayment,
    StockReferenceType,
    StockTransaction,
    StockTransactionType,
)
from utils.cache import ledger_cache

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
PINNED_YEAR = 2024


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def pinned_year(monkeypatch):
    """Pin "current year" to 2024 and start every test with an empty read cache."""
    monkeypatch.setattr(ledger_settings, "current_year", lambda: PINNED_YEAR)
    ledger_cache.clear()
    yield PINNED_YEAR
    ledger_cache.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_partner(session, name="Acme Trading", tenant_id=TENANT, is_customer=True, is_vendor=True, code=None):
    partner = BusinessPartner(
        tenant_id=tenant_id,
        code=code,
        name=name,
        phone="9876543210",
        is_customer=is_customer,
        is_vendor=is_vendor,
    )
    session.add(partner)
    session.commit()
    return partner


def add_sales_order(session, customer, order_date, amount, status=SalesOrderStatus.APPROVED, tenant_id=TENANT):
    order = SalesOrder(
        customer_id=customer.id,
        order_date=order_date,
        total_amount=Decimal(amount),
        status=status,
        tenant_id=tenant_id,
    )
    session.add(order)
    session.commit()
    return order


def add_purchase_order(session, vendor, order_date, amount, status=PurchaseOrderStatus.APPROVED, tenant_id=TENANT):
    order = PurchaseOrder(
        vendor_id=vendor.id,
        order_date=order_date,
        total_amount=Decimal(amount),
        status=status,
        tenant_id=tenant_id,
    )
    session.add(order)
    session.commit()
    return order


def add_receipt(session, customer, payment_date, amount, tenant_id=TENANT):
    receipt = SalesPayment(
        customer_id=customer.id,
        payment_date=payment_date,
        amount_paid=Decimal(amount),
        tenant_id=tenant_id,
    )
    session.add(receipt)
    session.commit()
    return receipt


def add_voucher(session, vendor, payment_date, amount, tenant_id=TENANT):
    voucher = Payment(
        vendor_id=vendor.id,
        payment_date=payment_date,
        amount_paid=Decimal(amount),
        tenant_id=tenant_id,
    )
    session.add(voucher)
    session.commit()
    return voucher


def add_return(session, order, return_date, value, tenant_id=TENANT):
    reference_type = (
        StockReferenceType.SALES_ORDER if isinstance(order, SalesOrder) else StockReferenceType.PURCHASE_ORDER
    )
    stock_return = StockTransaction(
        transaction_type=StockTransactionType.RETURN,
        reference_type=reference_type,
        reference_id=order.id,
        transaction_date=return_date,
        total_value=Decimal(value),
        tenant_id=tenant_id,
    )
    session.add(stock_return)
    session.commit()
    return stock_return


@pytest.fixture
def customer(session):
    return make_partner(session, name="Customer A", code="C001", is_vendor=False)


@pytest.fixture
def supplier(session):
    return make_partner(session, name="Supplier B", code="S001", is_customer=False)
