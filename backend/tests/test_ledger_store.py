"""Per-account locking and statement timeouts issued before a sync."""

from types import SimpleNamespace

import ledger_settings
from conftest import TENANT
from crud import ledger_sync
from crud.ledger_store import acquire_account_lock, apply_statement_timeout
from models import AccountRef, AccountType


class RecordingPostgresSession:
    def __init__(self):
        self.statements = []

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))


class TestPostgresGuards:

    def test_statement_timeout_is_set_for_the_transaction(self):
        db = RecordingPostgresSession()

        apply_statement_timeout(db, 15000)

        assert db.statements == [("SET LOCAL statement_timeout = 15000", None)]

    def test_advisory_lock_key_depends_on_tenant_and_account(self):
        db = RecordingPostgresSession()
        account = AccountRef(AccountType.CUSTOMER, 7)

        acquire_account_lock(db, TENANT, account)
        acquire_account_lock(db, TENANT, AccountRef(AccountType.SUPPLIER, 7))
        acquire_account_lock(db, "tenant-z", account)

        assert all(sql == "SELECT pg_advisory_xact_lock(:key)" for sql, _ in db.statements)
        assert len({params["key"] for _, params in db.statements}) == 3

    def test_sqlite_skips_both(self, session):
        apply_statement_timeout(session, 15000)
        acquire_account_lock(session, TENANT, AccountRef(AccountType.CUSTOMER, 1))


class TestSyncTimeouts:

    def test_each_mode_uses_its_statement_timeout(self, session, customer, monkeypatch):
        used = []
        monkeypatch.setattr(ledger_sync, "apply_statement_timeout", lambda db, timeout_ms: used.append(timeout_ms))

        ledger_sync.sync_account_full(session, TENANT, customer_id=customer.id, year=2024)
        ledger_sync.sync_account_snapshot(session, TENANT, customer_id=customer.id, year=2024)

        assert used == [
            ledger_settings.FULL_SYNC_STATEMENT_TIMEOUT_MS,
            ledger_settings.SNAPSHOT_STATEMENT_TIMEOUT_MS,
        ]
