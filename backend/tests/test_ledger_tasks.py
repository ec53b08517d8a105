"""Scheduled ledger jobs: per-tenant fan-out and job registration."""

from datetime import date

from conftest import OTHER_TENANT, TENANT, add_sales_order, make_partner
from crud import ledger_batch
from models import LedgerPeriod
from tasks import ledger_tasks


class TestScheduledSync:

    def test_tenants_are_discovered_from_partners(self, session):
        make_partner(session, name="B", tenant_id=OTHER_TENANT)
        make_partner(session, name="A", tenant_id=TENANT)
        make_partner(session, name="A2", tenant_id=TENANT)

        assert ledger_tasks.get_tenant_ids(session) == [TENANT, OTHER_TENANT]

    def test_weekly_full_sync_covers_every_tenant(self, session, session_factory, monkeypatch):
        monkeypatch.setattr(ledger_tasks, "SessionLocal", session_factory)
        first = make_partner(session, name="First", tenant_id=TENANT, is_vendor=False)
        add_sales_order(session, first, date(2024, 6, 1), "300", tenant_id=TENANT)
        second = make_partner(session, name="Second", tenant_id=OTHER_TENANT, is_vendor=False)
        add_sales_order(session, second, date(2024, 6, 2), "400", tenant_id=OTHER_TENANT)

        ledger_tasks.run_weekly_full_sync()

        periods = session.query(LedgerPeriod).filter(LedgerPeriod.year == 2024).order_by(LedgerPeriod.tenant_id).all()
        assert [(p.tenant_id, p.customer_id) for p in periods] == [(TENANT, first.id), (OTHER_TENANT, second.id)]

    def test_failing_tenant_does_not_stop_the_others(self, session, session_factory, monkeypatch):
        monkeypatch.setattr(ledger_tasks, "SessionLocal", session_factory)
        make_partner(session, name="A", tenant_id=TENANT)
        make_partner(session, name="B", tenant_id=OTHER_TENANT)
        seen = []

        def flaky_batch(db, tenant_id, **kwargs):
            seen.append(tenant_id)
            if tenant_id == TENANT:
                raise RuntimeError("discovery failed")
            return ledger_batch.BatchSyncSummary(
                year=kwargs["year"], mode=ledger_batch.MODE_SNAPSHOT, total_checked=0,
                success=0, failed=0, duration_seconds=0.0, errors=[],
            )

        monkeypatch.setattr(ledger_batch, "sync_all_snapshot", flaky_batch)

        ledger_tasks.run_nightly_snapshot_sync()

        assert seen == [TENANT, OTHER_TENANT]


class TestSchedulerJobs:

    def test_jobs_registered_without_starting(self):
        from scheduler import scheduler

        assert scheduler.running is False
        assert {job.id for job in scheduler.get_jobs()} == {"ledger_snapshot_job", "ledger_full_job"}
