# ems_api/services/cache.py
from __future__ import annotations

import json
import logging
import time
from threading import Lock
from typing import Any, Optional

import redis
from cachetools import TLRUCache
from flask import current_app

log = logging.getLogger(__name__)

EXTENSION_KEY = "report_cache"


class ReportCache:
    """get / set / invalidate. Handlers receive an instance, never a module global."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        raise NotImplementedError

    def invalidate(self, prefix: Optional[str] = None) -> int:
        raise NotImplementedError


class NullReportCache(ReportCache):
    def get(self, key):
        return None

    def set(self, key, value, ttl=None):
        return False

    def invalidate(self, prefix=None):
        return 0


def _expires_at(_key, entry, now):
    return now + entry[0]


class MemoryReportCache(ReportCache):
    """
    Process-local and bounded: at most ``maxsize`` entries, least recently used
    evicted first, expired entries purged on every write. Only suitable for a
    single worker; use the redis backend when several processes serve reports.
    """

    def __init__(self, default_ttl: int = 300, maxsize: int = 256, clock=time.monotonic):
        self.default_ttl = default_ttl
        # entries are (ttl, value); ttu turns that into an absolute expiry
        self._data = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=clock)
        self._lock = Lock()

    def __len__(self):
        with self._lock:
            self._data.expire()
            return len(self._data)

    def get(self, key):
        with self._lock:
            hit = self._data.get(key)
        return hit[1] if hit is not None else None

    def set(self, key, value, ttl=None):
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return False
        with self._lock:
            self._data[key] = (ttl, value)
        return True

    def invalidate(self, prefix=None):
        with self._lock:
            self._data.expire()
            keys = [k for k in list(self._data) if prefix is None or k.startswith(prefix)]
            return sum(1 for k in keys if self._data.pop(k, None) is not None)


class RedisReportCache(ReportCache):
    """
    Shared across workers. Values are stored as JSON with SETEX; a redis
    failure is logged and behaves like a miss so reports still come from the
    database.
    """

    def __init__(self, client, default_ttl: int = 300):
        self.client = client
        self.default_ttl = default_ttl

    def get(self, key):
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            log.warning("report cache get %s failed: %s", key, e)
            return None
        return json.loads(raw) if raw else None

    def set(self, key, value, ttl=None):
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return False
        try:
            self.client.setex(key, ttl, json.dumps(value))
        except redis.RedisError as e:
            log.warning("report cache set %s failed: %s", key, e)
            return False
        return True

    def invalidate(self, prefix=None):
        try:
            keys = list(self.client.scan_iter(match=f"{prefix or ''}*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            log.warning("report cache invalidate %r failed: %s", prefix, e)
            return 0
        return len(keys)


def init_cache(app, cache: ReportCache | None = None) -> ReportCache:
    """
    REPORT_CACHE_BACKEND picks the backend; the default is "null", so reports
    are regenerated on every request unless caching is switched on.
    """
    if cache is None:
        ttl = int(app.config.get("REPORT_CACHE_TTL", 0) or 0)
        backend = (app.config.get("REPORT_CACHE_BACKEND") or "null").lower()
        if ttl <= 0 or backend == "null":
            cache = NullReportCache()
        elif backend == "redis":
            client = redis.Redis.from_url(app.config["REPORT_CACHE_URL"])
            cache = RedisReportCache(client, default_ttl=ttl)
        elif backend == "memory":
            maxsize = int(app.config.get("REPORT_CACHE_MAXSIZE", 256) or 256)
            cache = MemoryReportCache(default_ttl=ttl, maxsize=maxsize)
        else:
            log.warning("unknown REPORT_CACHE_BACKEND %r, caching disabled", backend)
            cache = NullReportCache()
    app.extensions[EXTENSION_KEY] = cache
    log.debug("report cache: %s", type(cache).__name__)
    return cache


def get_cache() -> ReportCache:
    cache = current_app.extensions.get(EXTENSION_KEY)
    return cache if cache is not None else NullReportCache()
