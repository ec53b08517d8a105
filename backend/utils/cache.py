"""
In-process read cache for ledger views.

Entries expire after `LEDGER_CACHE_TTL_SECONDS`. Writers never update entries:
they invalidate by key prefix once their transaction has committed.
"""
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import ledger_settings

logger = logging.getLogger(__name__)

LEDGER_CACHE_PREFIX = "ledger:"


class TTLCache:
    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at < time.monotonic():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl, value)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            stale = [key for key in self._entries if key.startswith(prefix)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


ledger_cache = TTLCache(ledger_settings.CACHE_TTL_SECONDS)


def ledger_list_key(tenant_id: str, **params) -> str:
    # Sorted so that {page: 1, limit: 10} and {limit: 10, page: 1} share a key
    parts = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] is not None)
    return f"{LEDGER_CACHE_PREFIX}{tenant_id}:list:{parts}"


def ledger_detail_key(tenant_id: str, account_type: str, partner_id: int, year: int) -> str:
    return f"{LEDGER_CACHE_PREFIX}{tenant_id}:detail:{account_type}:{partner_id}:{year}"


def invalidate_ledger_cache(tenant_id: str) -> None:
    removed = ledger_cache.invalidate_prefix(f"{LEDGER_CACHE_PREFIX}{tenant_id}:")
    logger.debug(f"Invalidated {removed} ledger cache entries for tenant {tenant_id}")
