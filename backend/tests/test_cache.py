"""Read cache: expiry, key building and per-tenant invalidation."""

from utils import cache
from utils.cache import TTLCache, invalidate_ledger_cache, ledger_cache, ledger_detail_key, ledger_list_key


class TestTTLCache:

    def test_entry_expires(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr(cache.time, "monotonic", lambda: now[0])
        store = TTLCache(ttl_seconds=60)
        store.set("k", "v")

        now[0] += 59
        assert store.get("k") == "v"

        now[0] += 2
        assert store.get("k") is None

    def test_per_entry_ttl(self, monkeypatch):
        now = [0.0]
        monkeypatch.setattr(cache.time, "monotonic", lambda: now[0])
        store = TTLCache(ttl_seconds=60)
        store.set("short", 1, ttl_seconds=5)
        store.set("long", 2)

        now[0] = 10
        assert store.get("short") is None
        assert store.get("long") == 2

    def test_invalidate_prefix_counts_removed(self):
        store = TTLCache(ttl_seconds=60)
        store.set("a:1", 1)
        store.set("a:2", 2)
        store.set("b:1", 3)

        assert store.invalidate_prefix("a:") == 2
        assert store.get("b:1") == 3


class TestLedgerKeys:

    def test_list_key_ignores_param_order_and_none(self):
        first = ledger_list_key("t1", year=2024, skip=0, status=None, limit=10)
        second = ledger_list_key("t1", limit=10, year=2024, skip=0)

        assert first == second
        assert "status" not in first

    def test_invalidation_is_per_tenant(self):
        ledger_cache.set(ledger_list_key("t1", year=2024), "t1 list")
        ledger_cache.set(ledger_detail_key("t1", "customer", 5, 2024), "t1 detail")
        ledger_cache.set(ledger_list_key("t10", year=2024), "t10 list")

        invalidate_ledger_cache("t1")

        assert ledger_cache.get(ledger_list_key("t1", year=2024)) is None
        assert ledger_cache.get(ledger_detail_key("t1", "customer", 5, 2024)) is None
        assert ledger_cache.get(ledger_list_key("t10", year=2024)) == "t10 list"
