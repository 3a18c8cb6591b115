# File: atmos/cache.py

"""
TTL cache for API responses.

Entries are serialized to JSON strings and kept in a key/value store under a
common prefix, each wrapped in a CacheEntry carrying its expiry time. Expired
entries are dropped when read. Store failures never propagate: a failed read
is a cache miss, a failed write is logged and ignored.

Two stores are provided, selected through the ``cache`` section of config.yaml:
a bounded in-process ``cachetools.TLRUCache`` (default) and a ``diskcache``
directory that survives restarts.
"""

import json
import logging
import os
import sqlite3
import threading
import time

import diskcache
from cachetools import TLRUCache

from atmos.config_loader import PROJECT_ROOT, get_setting
from atmos.models import CacheEntry

log = logging.getLogger(__name__)

DEFAULT_PREFIX = 'atmos_cache_'
DEFAULT_TTL_MS = 1000 * 60 * 30  # 30 minutes
DEFAULT_MAX_ENTRIES = 1000

STORE_ERRORS = (OSError, ValueError, KeyError, TypeError, sqlite3.Error, diskcache.Timeout)


def _now_ms():
    return int(time.time() * 1000)


def _entry_expires(_key, item, _now):
    # TLRUCache treats timer() >= expires as expired; entries stay valid through their expiry ms.
    return item[1] + 1


class MemoryStore:
    """In-process store; each item is evicted once its own expiry has passed."""

    def __init__(self, maxsize=DEFAULT_MAX_ENTRIES, clock=_now_ms):
        self._items = TLRUCache(maxsize=maxsize, ttu=_entry_expires, timer=clock)
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            item = self._items.get(key)
        return item[0] if item is not None else None

    def set(self, key, value, expiry_ms):
        with self._lock:
            self._items[key] = (value, expiry_ms)

    def delete(self, key):
        with self._lock:
            self._items.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._items.keys())


class DiskStore:
    """Store backed by a diskcache directory, so entries survive restarts."""

    def __init__(self, directory, clock=_now_ms):
        os.makedirs(directory, exist_ok=True)
        self.directory = directory
        self.clock = clock
        self._cache = diskcache.Cache(directory=directory)

    def get(self, key):
        return self._cache.get(key)

    def set(self, key, value, expiry_ms):
        # diskcache expires on wall-clock seconds; the entry's own expiry is still checked on read.
        expire_s = max(expiry_ms - self.clock(), 0) / 1000
        self._cache.set(key, value, expire=expire_s)

    def delete(self, key):
        self._cache.delete(key)

    def keys(self):
        return list(self._cache.iterkeys())

    def close(self):
        self._cache.close()


class ResponseCache:
    """Prefix-scoped cache with per-entry expiry.

    Args:
        store: object exposing get/set/delete/keys (MemoryStore or DiskStore).
        prefix (str): prepended to every (lowercased) key.
        default_ttl_ms (int): lifetime used when set() is called without a TTL.
        clock (callable): returns the current time in epoch milliseconds.
    """

    def __init__(self, store=None, prefix=DEFAULT_PREFIX, default_ttl_ms=DEFAULT_TTL_MS, clock=_now_ms):
        self.store = store if store is not None else MemoryStore(clock=clock)
        self.prefix = prefix
        self.default_ttl_ms = default_ttl_ms
        self.clock = clock

    def _full_key(self, key):
        return f"{self.prefix}{key.strip().lower()}"

    def get(self, key):
        full_key = self._full_key(key)
        try:
            item_str = self.store.get(full_key)
            if not item_str:
                return None
            entry = CacheEntry.from_dict(json.loads(item_str))
            if self.clock() > entry.expiry:
                log.debug(f"Cache entry expired: {full_key}")
                self.store.delete(full_key)
                return None
            return entry.data
        except STORE_ERRORS as e:
            log.error(f"Cache retrieval error for '{full_key}': {e}")
            return None

    def set(self, key, data, ttl_ms=None):
        full_key = self._full_key(key)
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        now = self.clock()
        entry = CacheEntry(data=data, timestamp=now, expiry=now + ttl)
        try:
            self.store.set(full_key, json.dumps(entry.to_dict()), entry.expiry)
        except STORE_ERRORS as e:
            log.error(f"Cache storage error for '{full_key}': {e}")

    def clear(self):
        removed = 0
        try:
            for key in self.store.keys():
                if key.startswith(self.prefix):
                    self.store.delete(key)
                    removed += 1
        except STORE_ERRORS as e:
            log.error(f"Cache clear error for prefix '{self.prefix}': {e}")
        log.info(f"Cleared {removed} cache entries with prefix '{self.prefix}'.")
        return removed


def build_cache_from_config():
    """Creates the shared cache from the ``cache`` config section."""
    prefix = get_setting('cache', 'prefix', DEFAULT_PREFIX)
    ttl_minutes = get_setting('cache', 'ttl_minutes', 30)
    max_entries = int(get_setting('cache', 'max_entries', DEFAULT_MAX_ENTRIES))
    persist_path = get_setting('cache', 'persist_path')
    if persist_path:
        if not os.path.isabs(persist_path):
            persist_path = os.path.join(PROJECT_ROOT, persist_path)
        log.info(f"Using disk cache at {persist_path}")
        store = DiskStore(persist_path)
    else:
        store = MemoryStore(maxsize=max_entries)
    return ResponseCache(store=store, prefix=prefix, default_ttl_ms=int(ttl_minutes * 60 * 1000))


_default_cache = build_cache_from_config()


def get_cached_data(key):
    """Returns the cached value for ``key`` or None when missing, expired or unreadable."""
    return _default_cache.get(key)


def set_cached_data(key, data, ttl_ms=None):
    """Stores ``data`` under ``key`` for ``ttl_ms`` milliseconds (config default when omitted)."""
    _default_cache.set(key, data, ttl_ms)


def clear_cache():
    return _default_cache.clear()
