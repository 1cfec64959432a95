"""
Workspace payload cache.

Entries are keyed by (organization, content, include_chat) and only ever
removed by explicit invalidation (or bounded-size eviction in memory); there
is no TTL. Payloads are stored as canonical JSON so a hit is byte-identical
to the compile that populated it.

Invalidation is per-process: a compile that started before an invalidation
is returned to its caller but not stored. The Redis store shares entries
between processes; the generation counter that guards stale writes stays
local to each process.
"""

from __future__ import annotations

import json
import threading
from collections import OrderedDict
from typing import Callable, Optional

import core.config as config

logger = config.logger


def _dump_payload(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)


class CacheStore:
    """Minimal string key/value store used by WorkspaceCache."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, *keys: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryCacheStore(CacheStore):
    def __init__(self, max_entries: int = 500):
        self._max_entries = max(1, max_entries)
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisCacheStore(CacheStore):
    def __init__(self, client=None, url: Optional[str] = None, prefix: str = ""):
        if client is None:
            import redis

            client = redis.Redis.from_url(url or config.REDIS_URL, decode_responses=True)
        self._client = client
        self._prefix = prefix

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(self._prefix + key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._client.set(self._prefix + key, value)

    def delete(self, *keys: str) -> None:
        if keys:
            self._client.delete(*(self._prefix + key for key in keys))

    def clear(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}*"))
        if keys:
            self._client.delete(*keys)


class WorkspaceCache:
    def __init__(self, store: Optional[CacheStore] = None):
        self.store = store or InMemoryCacheStore(config.WORKSPACE_CACHE_MAX_ENTRIES)
        self._lock = threading.RLock()
        self._generations: dict[str, int] = {}

    @staticmethod
    def _base_key(organization_id: str, content_id: str) -> str:
        return f"{organization_id}:{content_id}"

    @classmethod
    def cache_key(cls, organization_id: str, content_id: str, include_chat: bool) -> str:
        return f"{cls._base_key(organization_id, content_id)}:chat:{1 if include_chat else 0}"

    def _generation(self, base_key: str) -> int:
        with self._lock:
            return self._generations.get(base_key, 0)

    def get(self, organization_id: str, content_id: str, include_chat: bool = False) -> Optional[dict]:
        raw = self.store.get(self.cache_key(organization_id, content_id, include_chat))
        if raw is None:
            return None
        return json.loads(raw)

    def put(self, organization_id: str, content_id: str, include_chat: bool, payload: dict) -> None:
        self.store.set(self.cache_key(organization_id, content_id, include_chat), _dump_payload(payload))

    def invalidate(self, organization_id: str, content_id: str) -> None:
        base_key = self._base_key(organization_id, content_id)
        with self._lock:
            self._generations[base_key] = self._generations.get(base_key, 0) + 1
            self.store.delete(
                self.cache_key(organization_id, content_id, True),
                self.cache_key(organization_id, content_id, False),
            )
        logger.info(
            "workspace_cache_invalidated",
            extra={"organization_id": organization_id, "content_id": content_id},
        )

    def _store_if_current(self, base_key: str, key: str, raw: str, generation: int) -> bool:
        # invalidate() bumps and deletes under this lock.
        with self._lock:
            if self._generations.get(base_key, 0) != generation:
                return False
            self.store.set(key, raw)
            if self._generations.get(base_key, 0) != generation:
                self.store.delete(key)
                return False
            return True

    def get_or_compile(
        self,
        organization_id: str,
        content_id: str,
        include_chat: bool,
        compile_fn: Callable[[], dict],
    ) -> tuple[dict, bool]:
        """Return ``(payload, cache_hit)``, compiling and storing on a miss."""
        key = self.cache_key(organization_id, content_id, include_chat)
        raw = self.store.get(key)
        if raw is not None:
            return json.loads(raw), True

        base_key = self._base_key(organization_id, content_id)
        generation = self._generation(base_key)
        raw = _dump_payload(compile_fn())
        if not self._store_if_current(base_key, key, raw, generation):
            logger.info(
                "workspace_cache_stale_compile_skipped",
                extra={"organization_id": organization_id, "content_id": content_id},
            )
        return json.loads(raw), False

    def clear(self) -> None:
        with self._lock:
            self._generations.clear()
        self.store.clear()


def build_workspace_cache() -> WorkspaceCache:
    if config.WORKSPACE_CACHE_BACKEND == "redis":
        store: CacheStore = RedisCacheStore(url=config.REDIS_URL, prefix=config.WORKSPACE_CACHE_KEY_PREFIX)
    else:
        store = InMemoryCacheStore(config.WORKSPACE_CACHE_MAX_ENTRIES)
    return WorkspaceCache(store)


_workspace_cache: Optional[WorkspaceCache] = None
_workspace_cache_lock = threading.Lock()


def get_workspace_cache() -> WorkspaceCache:
    global _workspace_cache
    with _workspace_cache_lock:
        if _workspace_cache is None:
            _workspace_cache = build_workspace_cache()
        return _workspace_cache


def set_workspace_cache(cache: Optional[WorkspaceCache]) -> None:
    global _workspace_cache
    with _workspace_cache_lock:
        _workspace_cache = cache


def invalidate_workspace(organization_id: str, content_id: str) -> None:
    get_workspace_cache().invalidate(organization_id, content_id)
