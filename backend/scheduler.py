from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
import ledger_settings
from tasks.ledger_tasks import run_nightly_snapshot_sync, run_weekly_full_sync

scheduler = BackgroundScheduler(timezone=ledger_settings.LEDGER_TIMEZONE)

# Every day at 11:00 PM (ledger timezone) by default
scheduler.add_job(
    run_nightly_snapshot_sync,
    CronTrigger(hour=ledger_settings.SNAPSHOT_CRON_HOUR, minute=0, timezone=ledger_settings.LEDGER_TIMEZONE),
    id='ledger_snapshot_job',
    max_instances=1,
    coalesce=True,
)

# Sundays at 2:00 AM by default
scheduler.add_job(
    run_weekly_full_sync,
    CronTrigger(day_of_week=ledger_settings.FULL_CRON_DAY_OF_WEEK, hour=ledger_settings.FULL_CRON_HOUR, minute=0,
                timezone=ledger_settings.LEDGER_TIMEZONE),
    id='ledger_full_job',
    max_instances=1,
    coalesce=True,
)
