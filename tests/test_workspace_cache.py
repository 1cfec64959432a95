import fnmatch
import threading

from core.services.workspace_cache import InMemoryCacheStore, RedisCacheStore, WorkspaceCache

ORG = "org-cache"
CONTENT_ID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"


class FakeRedis:
    def __init__(self):
        self.data = {}

    def get(self, key):
        value = self.data.get(key)
        return value.encode("utf-8") if value is not None else None

    def set(self, key, value):
        self.data[key] = value

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    def scan_iter(self, match=None):
        return [key for key in list(self.data) if match is None or fnmatch.fnmatch(key, match)]


def test_in_memory_store_evicts_oldest():
    store = InMemoryCacheStore(max_entries=2)
    store.set("a", "1")
    store.set("b", "2")
    store.get("a")
    store.set("c", "3")
    assert store.get("a") is None
    assert store.get("b") == "2"
    assert store.get("c") == "3"
    assert len(store) == 2


def test_get_or_compile_caches_until_invalidated():
    cache = WorkspaceCache(InMemoryCacheStore())
    calls = []

    def compile_fn():
        calls.append(1)
        return {"title": "Gingerbread", "count": len(calls)}

    first, hit = cache.get_or_compile(ORG, CONTENT_ID, False, compile_fn)
    assert not hit
    second, hit = cache.get_or_compile(ORG, CONTENT_ID, False, compile_fn)
    assert hit
    assert first == second
    assert len(calls) == 1

    cache.invalidate(ORG, CONTENT_ID)
    third, hit = cache.get_or_compile(ORG, CONTENT_ID, False, compile_fn)
    assert not hit
    assert third["count"] == 2


def test_invalidate_drops_both_chat_variants():
    cache = WorkspaceCache(InMemoryCacheStore())
    cache.put(ORG, CONTENT_ID, False, {"chat": False})
    cache.put(ORG, CONTENT_ID, True, {"chat": True})
    cache.put(ORG, "other", False, {"chat": False})

    cache.invalidate(ORG, CONTENT_ID)
    assert cache.get(ORG, CONTENT_ID, False) is None
    assert cache.get(ORG, CONTENT_ID, True) is None
    assert cache.get(ORG, "other", False) == {"chat": False}


def test_keys_are_scoped_by_organization():
    cache = WorkspaceCache(InMemoryCacheStore())
    cache.put(ORG, CONTENT_ID, False, {"org": ORG})
    assert cache.get("org-other", CONTENT_ID, False) is None
    assert WorkspaceCache.cache_key(ORG, CONTENT_ID, True) == f"{ORG}:{CONTENT_ID}:chat:1"


def test_compile_racing_an_invalidation_is_not_stored():
    cache = WorkspaceCache(InMemoryCacheStore())

    def compile_fn():
        cache.invalidate(ORG, CONTENT_ID)
        return {"stale": True}

    payload, hit = cache.get_or_compile(ORG, CONTENT_ID, False, compile_fn)
    assert payload == {"stale": True}
    assert not hit
    assert cache.get(ORG, CONTENT_ID, False) is None


class InvalidatingStore(InMemoryCacheStore):
    """Lets a writer invalidate the entry while the cache is storing it."""

    def __init__(self, on_set):
        super().__init__()
        self.on_set = on_set

    def set(self, key, value):
        self.on_set()
        super().set(key, value)


def test_invalidation_during_store_write_drops_the_entry():
    cache = WorkspaceCache()
    cache.store = InvalidatingStore(lambda: cache.invalidate(ORG, CONTENT_ID))

    payload, hit = cache.get_or_compile(ORG, CONTENT_ID, False, lambda: {"version": 1})
    assert payload == {"version": 1}
    assert not hit
    assert cache.get(ORG, CONTENT_ID, False) is None


def test_invalidation_from_another_thread_waits_for_store_write():
    cache = WorkspaceCache()
    writers = []

    def start_writer():
        writer = threading.Thread(target=cache.invalidate, args=(ORG, CONTENT_ID))
        writer.start()
        writers.append(writer)

    cache.store = InvalidatingStore(start_writer)
    cache.get_or_compile(ORG, CONTENT_ID, False, lambda: {"version": 1})
    for writer in writers:
        writer.join(timeout=5)

    assert cache.get(ORG, CONTENT_ID, False) is None


def test_payloads_round_trip_as_canonical_json():
    store = InMemoryCacheStore()
    cache = WorkspaceCache(store)
    cache.put(ORG, CONTENT_ID, False, {"b": 1, "a": [1, 2]})
    assert store.get(WorkspaceCache.cache_key(ORG, CONTENT_ID, False)) == '{"a":[1,2],"b":1}'


def test_redis_store_uses_prefix_and_decodes_bytes():
    client = FakeRedis()
    cache = WorkspaceCache(RedisCacheStore(client=client, prefix="draftdesk:ws:"))

    cache.put(ORG, CONTENT_ID, True, {"ok": True})
    assert f"draftdesk:ws:{ORG}:{CONTENT_ID}:chat:1" in client.data
    assert cache.get(ORG, CONTENT_ID, True) == {"ok": True}

    cache.invalidate(ORG, CONTENT_ID)
    assert client.data == {}

    cache.put(ORG, CONTENT_ID, False, {"ok": True})
    client.data["unrelated"] = "keep"
    cache.clear()
    assert client.data == {"unrelated": "keep"}
