"""Ledger list and detail views, including the read-through cache."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import TENANT, add_purchase_order, add_receipt, add_return, add_sales_order, make_partner
from crud.ledger_reports import get_ledger_detail, list_ledgers
from crud.ledger_sync import sync_account_full
from models import AccountType
from utils.errors import AccountNotFoundError, LedgerValidationError
from utils.ledger_math import PAID, UNPAID


@pytest.fixture
def ledgers(session):
    big = make_partner(session, name="Big Buyer", code="C100", is_vendor=False)
    add_sales_order(session, big, date(2024, 1, 5), "50000")
    small = make_partner(session, name="Small Buyer", code="C200", is_vendor=False)
    add_sales_order(session, small, date(2024, 1, 6), "800")
    vendor = make_partner(session, name="Feed Supplier", code="S100", is_customer=False)
    add_purchase_order(session, vendor, date(2024, 2, 1), "20000")

    sync_account_full(session, TENANT, customer_id=big.id, year=2024, assigned_user_id="collector-1")
    sync_account_full(session, TENANT, customer_id=small.id, year=2024)
    sync_account_full(session, TENANT, supplier_id=vendor.id, year=2024)
    return {"big": big.id, "small": small.id, "vendor": vendor.id}


class TestListLedgers:

    def test_rows_and_summary(self, session, ledgers):
        result = list_ledgers(session, TENANT, year=2024)

        assert result.total == 3
        assert [item.name for item in result.items] == ["Big Buyer", "Feed Supplier", "Small Buyer"]
        assert result.summary.increase == Decimal("70800")
        assert result.summary.closing == Decimal("70800")

    def test_filters(self, session, ledgers):
        customers = list_ledgers(session, TENANT, year=2024, account_type=AccountType.CUSTOMER)
        assert {item.account_id for item in customers.items} == {ledgers["big"], ledgers["small"]}

        paid = list_ledgers(session, TENANT, year=2024, status=PAID)
        assert [item.account_id for item in paid.items] == [ledgers["small"]]
        assert paid.summary.closing == Decimal("800")

        unpaid_customers = list_ledgers(session, TENANT, year=2024, account_type=AccountType.CUSTOMER, status=UNPAID)
        assert [item.account_id for item in unpaid_customers.items] == [ledgers["big"]]

        assigned = list_ledgers(session, TENANT, year=2024, assigned_user_id="collector-1")
        assert [item.assigned_user_id for item in assigned.items] == ["collector-1"]

        searched = list_ledgers(session, TENANT, year=2024, search="feed")
        assert [item.code for item in searched.items] == ["S100"]

    def test_pagination_keeps_full_summary(self, session, ledgers):
        page = list_ledgers(session, TENANT, year=2024, skip=1, limit=1)

        assert page.total == 3
        assert len(page.items) == 1
        assert page.summary.closing == Decimal("70800")

    def test_invalid_status_filter(self, session):
        with pytest.raises(LedgerValidationError):
            list_ledgers(session, TENANT, year=2024, status="overdue")

    def test_served_from_cache_until_next_sync(self, session, ledgers):
        first = list_ledgers(session, TENANT, year=2024)
        add_sales_order(session, make_partner(session, name="Late", is_vendor=False), date(2024, 3, 1), "5")

        assert list_ledgers(session, TENANT, year=2024) is first

        sync_account_full(session, TENANT, customer_id=ledgers["small"], year=2024)
        assert list_ledgers(session, TENANT, year=2024) is not first


class TestLedgerDetail:

    def test_detail_with_history(self, session, customer):
        order = add_sales_order(session, customer, date(2024, 2, 1), "1200")
        add_receipt(session, customer, date(2024, 3, 1), "200")
        add_return(session, order, date(2024, 3, 5), "100")
        add_sales_order(session, customer, date(2023, 2, 1), "999")
        sync_account_full(session, TENANT, customer_id=customer.id, year=2024)

        detail = get_ledger_detail(session, TENANT, AccountType.CUSTOMER, customer.id, 2024)

        assert detail.has_data is True
        assert detail.info.name == "Customer A"
        assert detail.financials.opening == Decimal("999")
        assert detail.financials.closing == Decimal("1899")
        assert detail.financials.status == UNPAID
        assert [entry.amount for entry in detail.history.orders] == [Decimal("1200")]
        assert [entry.amount for entry in detail.history.payments] == [Decimal("200")]
        assert [entry.amount for entry in detail.history.returns] == [Decimal("100")]
        assert detail.ledger.current_balance == Decimal("1899")

    def test_detail_without_period_shows_zeros(self, session, customer):
        detail = get_ledger_detail(session, TENANT, AccountType.CUSTOMER, customer.id, 2024)

        assert detail.has_data is False
        assert detail.period is None
        assert detail.financials.closing == Decimal(0)
        assert detail.financials.status == PAID

    def test_unknown_account(self, session):
        with pytest.raises(AccountNotFoundError):
            get_ledger_detail(session, TENANT, AccountType.SUPPLIER, 4242, 2024)
