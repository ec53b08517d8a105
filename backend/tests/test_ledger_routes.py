"""HTTP surface of the ledger engine (FastAPI TestClient, auth and DB overridden)."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import TENANT, add_receipt, add_sales_order, make_partner
from database import get_db
from main import app
from utils.auth_utils import get_current_user

HEADERS = {"X-Tenant-ID": TENANT}


@pytest.fixture
def current_user():
    return {"email": "accountant@example.com", "cognito:groups": ["accounts-group"]}


@pytest.fixture
def client(session, current_user):
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSyncRoutes:

    def test_sync_full(self, client, session, customer):
        add_sales_order(session, customer, date(2024, 3, 10), "1000000")

        response = client.post("/ledgers/sync-full", json={"customer_id": customer.id, "year": 2024}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["account_type"] == "customer"
        assert Decimal(body["final_balance"]) == Decimal("1000000")

    def test_sync_snapshot(self, client, session, customer):
        add_sales_order(session, customer, date(2024, 3, 10), "1000")
        add_receipt(session, customer, date(2024, 4, 10), "1000")

        response = client.post("/ledgers/sync-snapshot", json={"customer_id": customer.id}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "paid"
        assert body["method"] == "AGGREGATE_FALLBACK"
        assert body["period"]["year"] == 2024

    def test_bad_selector_is_400(self, client):
        response = client.post("/ledgers/sync-full", json={"year": 2024}, headers=HEADERS)

        assert response.status_code == 400

    def test_unknown_account_is_404(self, client):
        response = client.post("/ledgers/sync-snapshot", json={"supplier_id": 777}, headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "Supplier with ID 777 not found"

    def test_tenant_header_required(self, client, customer):
        response = client.post("/ledgers/sync-full", json={"customer_id": customer.id})

        assert response.status_code == 422


class TestBatchRoutes:

    def test_batch_reports_failures_with_200(self, client, session):
        good = make_partner(session, name="Good", is_vendor=False)
        add_sales_order(session, good, date(2024, 1, 1), "10")
        wrong_role = make_partner(session, name="Vendor only", is_customer=False)
        # A sales order against a partner that is not flagged as customer cannot be synced
        add_sales_order(session, wrong_role, date(2024, 1, 2), "20")

        response = client.post(
            "/ledgers/sync-full-batch", json={"year": 2024, "max_workers": 1}, headers=HEADERS
        )

        assert response.status_code == 200
        body = response.json()
        assert body["mode"] == "FULL_ALL"
        assert body["success"] == 1
        assert body["failed"] == 1
        assert body["errors"][0]["account_id"] == wrong_role.id

    def test_worker_count_above_limit_is_rejected(self, client):
        response = client.post("/ledgers/sync-full-batch", json={"max_workers": 500}, headers=HEADERS)

        assert response.status_code == 422

    def test_batch_requires_group(self, client, current_user):
        current_user["cognito:groups"] = ["sales-group"]

        response = client.post("/ledgers/sync-snapshot-batch", json={}, headers=HEADERS)

        assert response.status_code == 403


class TestPeriodRoutes:

    def _period_id(self, client, session, customer):
        add_sales_order(session, customer, date(2024, 3, 10), "5000")
        response = client.post("/ledgers/sync-snapshot", json={"customer_id": customer.id}, headers=HEADERS)
        return response.json()["period"]["id"]

    def test_lock_blocks_automated_adjustment(self, client, session, customer):
        period_id = self._period_id(client, session, customer)

        locked = client.post(f"/ledgers/periods/{period_id}/lock", headers=HEADERS)
        assert locked.status_code == 200
        assert locked.json()["is_locked"] is True

        response = client.post(
            "/ledgers/sync-snapshot",
            json={"customer_id": customer.id, "adjustment_amount": "100"},
            headers=HEADERS,
        )
        assert response.status_code == 409

        unlocked = client.post(f"/ledgers/periods/{period_id}/unlock", headers=HEADERS)
        assert unlocked.json()["is_locked"] is False

    def test_manual_adjustment(self, client, session, customer):
        period_id = self._period_id(client, session, customer)

        response = client.patch(
            f"/ledgers/periods/{period_id}/adjustment",
            json={"adjustment_amount": "1500.50", "notes": "Settlement discount"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["closing_balance"]) == Decimal("3499.50")
        assert body["notes"] == "Settlement discount"

    def test_unknown_period_is_404(self, client):
        response = client.post("/ledgers/periods/999/lock", headers=HEADERS)

        assert response.status_code == 404


class TestReadRoutes:

    def test_list_and_detail(self, client, session, customer):
        add_sales_order(session, customer, date(2024, 3, 10), "2500")
        client.post("/ledgers/sync-full", json={"customer_id": customer.id}, headers=HEADERS)

        listing = client.get("/ledgers/", params={"year": 2024, "status": "unpaid"}, headers=HEADERS)
        assert listing.status_code == 200
        assert listing.json()["total"] == 1
        assert Decimal(listing.json()["summary"]["closing"]) == Decimal("2500")

        detail = client.get(f"/ledgers/customer/{customer.id}", params={"year": 2024}, headers=HEADERS)
        assert detail.status_code == 200
        assert detail.json()["info"]["name"] == "Customer A"
        assert len(detail.json()["history"]["orders"]) == 1

    def test_detail_rejects_unknown_account_type(self, client):
        response = client.get("/ledgers/employee/1", headers=HEADERS)

        assert response.status_code == 422

    def test_integrity_and_export(self, client, session, customer):
        add_receipt(session, customer, date(2024, 4, 1), "250")

        report = client.get("/ledgers/integrity", params={"year": 2024}, headers=HEADERS)
        assert report.status_code == 200
        assert report.json()["discrepancies"][0]["type"] == "MISSING_DATA"

        export = client.get("/ledgers/integrity/export", params={"year": 2024}, headers=HEADERS)
        assert export.status_code == 200
        assert export.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert 'filename="ledger_integrity_2024.xlsx"' in export.headers["content-disposition"]


class TestAuthentication:

    def test_missing_bearer_token_is_401(self, client):
        del app.dependency_overrides[get_current_user]

        response = client.post("/ledgers/sync-full", json={"customer_id": 1}, headers=HEADERS)

        assert response.status_code == 401
        assert response.json()["detail"] == "Authorization header is missing"

    def test_malformed_authorization_header_is_401(self, client):
        del app.dependency_overrides[get_current_user]

        response = client.post(
            "/ledgers/sync-full", json={"customer_id": 1},
            headers={**HEADERS, "Authorization": "Token abc"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid authorization header format"
