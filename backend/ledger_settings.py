"""
Ledger settings.

Values are read from the environment (a `.env` file is honoured) once at
import time. Money thresholds are kept as `Decimal` so that comparisons with
ledger amounts never go through floats.
"""

from datetime import datetime
from decimal import Decimal
from dotenv import load_dotenv
import os
import pytz

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# All "current year" and timestamp decisions use this zone
LEDGER_TIMEZONE = os.getenv("LEDGER_TIMEZONE", "Asia/Kolkata")

# Maximum drift tolerated by the integrity checks (arithmetic and cross-period)
BALANCE_TOLERANCE = Decimal(os.getenv("LEDGER_BALANCE_TOLERANCE", "10"))

# A closing balance at or below this amount is reported as "paid"
PAID_THRESHOLD = Decimal(os.getenv("LEDGER_PAID_THRESHOLD", "1000"))

# PostgreSQL `statement_timeout` set for the account's transaction. It caps each
# statement separately; a full sync runs many statements and may take longer overall.
FULL_SYNC_STATEMENT_TIMEOUT_MS = int(os.getenv("LEDGER_FULL_SYNC_TIMEOUT_MS", "120000"))
SNAPSHOT_STATEMENT_TIMEOUT_MS = int(os.getenv("LEDGER_SNAPSHOT_TIMEOUT_MS", "15000"))

# Batch fan-out. Every worker holds its own connection, so the limit matches
# the engine's pool size (SQLAlchemy default: 5)
BATCH_MAX_WORKERS = int(os.getenv("LEDGER_BATCH_MAX_WORKERS", "1"))
BATCH_WORKER_LIMIT = int(os.getenv("LEDGER_BATCH_WORKER_LIMIT", "5"))

CACHE_TTL_SECONDS = int(os.getenv("LEDGER_CACHE_TTL_SECONDS", "300"))

SCHEDULER_ENABLED = _env_bool("LEDGER_SCHEDULER_ENABLED")
SNAPSHOT_CRON_HOUR = int(os.getenv("LEDGER_SNAPSHOT_CRON_HOUR", "23"))
FULL_CRON_DAY_OF_WEEK = os.getenv("LEDGER_FULL_CRON_DAY", "sun")
FULL_CRON_HOUR = int(os.getenv("LEDGER_FULL_CRON_HOUR", "2"))


def now() -> datetime:
    return datetime.now(pytz.timezone(LEDGER_TIMEZONE))


def current_year() -> int:
    return now().year
