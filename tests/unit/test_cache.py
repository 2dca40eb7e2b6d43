"""
Unit tests for halte/store/cell.py and halte/store/cache.py

Coverage plan
─────────────
cell.py   → lazy read, default copy, set/update/reset, decode fallback, reload
cache.py  → miss-then-hit, no generator call on hit, failures not stored,
            persistence across instances, concurrent de-duplication,
            remove/clear, legacy bare entries, custom codec
"""

import asyncio

import pytest


@pytest.fixture
def store(tmp_path):
    from halte.store.db import PersistentStore
    return PersistentStore(db_path=str(tmp_path / "cache.db"))


def _ok(value):
    from halte.gateway.models import GenerationResult

    async def generator():
        return GenerationResult.success(value)
    return generator


def _failed():
    from halte.gateway.models import ErrorKind, GenerationResult

    async def generator():
        return GenerationResult.failed(ErrorKind.TRANSPORT_ERROR, "offline")
    return generator


async def _explode():
    raise AssertionError("generator must not be called on a hit")


# ─────────────────────────────────────────────────────────────────────────────
# 1. StateCell
# ─────────────────────────────────────────────────────────────────────────────

class TestStateCell:

    def test_missing_namespace_gives_default(self, store):
        from halte.store.cell import StateCell
        cell = StateCell(store, "prefs", {"theme": "light"})
        assert cell.value == {"theme": "light"}

    def test_default_is_not_shared(self, store):
        from halte.store.cell import StateCell
        default = {"items": []}
        cell = StateCell(store, "prefs", default)
        cell.value["items"].append(1)
        assert default == {"items": []}

    def test_set_persists_immediately(self, store):
        from halte.store.cell import StateCell
        StateCell(store, "prefs", {}).set({"theme": "dark"})
        assert store.read("prefs") == {"theme": "dark"}
        assert StateCell(store, "prefs", {}).value == {"theme": "dark"}

    def test_update_and_reset(self, store):
        from halte.store.cell import StateCell
        cell = StateCell(store, "counter", 0)
        assert cell.update(lambda n: n + 2) == 2
        cell.reset()
        assert cell.value == 0
        assert store.read("counter") == 0

    def test_failed_set_keeps_old_value(self, store):
        from halte.exceptions import StorageError
        from halte.store.cell import StateCell
        cell = StateCell(store, "prefs", {})
        cell.set({"ok": 1})
        with pytest.raises(StorageError):
            cell.set({"bad": object()})
        assert cell.value == {"ok": 1}

    def test_undecodable_payload_falls_back_to_default(self, store):
        from halte.store.cell import Codec, StateCell
        store.write("point", {"x": 1})
        codec = Codec(encode=lambda p: {"x": p[0], "y": p[1]}, decode=lambda d: (d["x"], d["y"]))
        assert StateCell(store, "point", (0, 0), codec=codec).value == (0, 0)

    def test_reload_sees_external_writes(self, store):
        from halte.store.cell import StateCell
        cell = StateCell(store, "prefs", {})
        assert cell.value == {}
        store.write("prefs", {"theme": "dark"})
        assert cell.value == {}
        assert cell.reload() == {"theme": "dark"}


# ─────────────────────────────────────────────────────────────────────────────
# 2. KeyedContentCache: hits and misses
# ─────────────────────────────────────────────────────────────────────────────

class TestGetOrGenerate:

    def test_miss_generates_and_stores(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        result = asyncio.run(cache.get_or_generate("Lavande", _ok({"description": "calming"})))
        assert result.ok
        assert result.value == {"description": "calming"}
        assert cache.get("Lavande") == {"description": "calming"}

    def test_hit_does_not_call_generator(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        asyncio.run(cache.get_or_generate("Lavande", _ok({"v": 1})))
        second = asyncio.run(cache.get_or_generate("Lavande", _explode))
        assert second.value == {"v": 1}

    def test_hit_survives_new_instance(self, store):
        from halte.store.cache import KeyedContentCache
        asyncio.run(KeyedContentCache(store, "herbariumCache").get_or_generate("Lavande", _ok("g1")))
        again = KeyedContentCache(store, "herbariumCache")
        assert asyncio.run(again.get_or_generate("Lavande", _explode)).value == "g1"

    def test_failure_is_not_stored_and_retried(self, store):
        from halte.gateway.models import ErrorKind
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        failed = asyncio.run(cache.get_or_generate("Lavande", _failed()))
        assert not failed.ok
        assert failed.error is ErrorKind.TRANSPORT_ERROR
        assert "Lavande" not in cache
        retried = asyncio.run(cache.get_or_generate("Lavande", _ok("second try")))
        assert retried.value == "second try"

    def test_keys_are_case_sensitive(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        asyncio.run(cache.get_or_generate("Lavande", _ok("upper")))
        assert asyncio.run(cache.get_or_generate("lavande", _ok("lower"))).value == "lower"
        assert sorted(cache.keys()) == ["Lavande", "lavande"]

    def test_concurrent_requests_share_one_generation(self, store):
        from halte.gateway.models import GenerationResult
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "crystalsCache")
        calls = []

        async def slow():
            calls.append(1)
            await asyncio.sleep(0.01)
            return GenerationResult.success({"intention": "clarity"})

        async def run():
            return await asyncio.gather(
                cache.get_or_generate("Quartz", slow),
                cache.get_or_generate("Quartz", slow),
                cache.get_or_generate("Quartz", slow),
            )

        results = asyncio.run(run())
        assert len(calls) == 1
        assert all(r.value == {"intention": "clarity"} for r in results)

    def test_generator_exception_becomes_failed_result(self, store):
        from halte.gateway.models import ErrorKind
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "crystalsCache")

        async def broken():
            raise ConnectionError("socket closed")

        failed = asyncio.run(cache.get_or_generate("Quartz", broken))
        assert not failed.ok
        assert failed.error is ErrorKind.TRANSPORT_ERROR
        assert "socket closed" in failed.detail
        assert "Quartz" not in cache
        assert asyncio.run(cache.get_or_generate("Quartz", _ok("fine"))).value == "fine"


# ─────────────────────────────────────────────────────────────────────────────
# 3. KeyedContentCache: maintenance and stored shape
# ─────────────────────────────────────────────────────────────────────────────

class TestCacheMaintenance:

    def test_remove_single_entry(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        cache.put("Lavande", "a")
        cache.put("Menthe", "b")
        assert cache.remove("Lavande") is True
        assert cache.remove("Lavande") is False
        assert cache.keys() == ["Menthe"]

    def test_clear(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        cache.put("Lavande", "a")
        cache.clear()
        assert len(cache) == 0
        assert store.read("herbariumCache") == {}

    def test_entries_are_timestamped(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        cache.put("Lavande", {"d": 1})
        stored = store.read("herbariumCache")["Lavande"]
        assert stored["value"] == {"d": 1}
        assert stored["writtenAt"].endswith("Z")
        assert cache.entry("Lavande").written_at is not None

    def test_legacy_bare_entries_are_hits(self, store):
        from halte.store.cache import KeyedContentCache
        store.write("herbariumCache", {"Lavande": {"description": "old format"}})
        cache = KeyedContentCache(store, "herbariumCache")
        entry = cache.entry("Lavande")
        assert entry.value == {"description": "old format"}
        assert entry.written_at is None
        assert asyncio.run(cache.get_or_generate("Lavande", _explode)).ok

    def test_custom_codec(self, store):
        from halte.store.cache import KeyedContentCache
        from halte.store.cell import Codec
        codec = Codec(encode=lambda t: list(t), decode=lambda p: tuple(p))
        cache = KeyedContentCache(store, "pairs", codec=codec)
        cache.put("a", (1, 2))
        assert store.read("pairs")["a"]["value"] == [1, 2]
        assert KeyedContentCache(store, "pairs", codec=codec).get("a") == (1, 2)

    def test_wipe_then_reload_empties_cache(self, store):
        from halte.store.cache import KeyedContentCache
        cache = KeyedContentCache(store, "herbariumCache")
        cache.put("Lavande", "a")
        store.wipe_all()
        cache.reload()
        assert "Lavande" not in cache
