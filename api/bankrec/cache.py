"""Query-result cache with mutate-then-invalidate semantics.

Cached results are keyed by parameter tuples such as
``("ledger", account_id, start, end)``. Services never touch the cache
directly after a write; they emit ``notify_changed(*prefixes)`` and every
entry whose key starts with one of the prefixes is dropped.
"""

import logging
import threading
from typing import Any, Callable, Hashable, Protocol

logger = logging.getLogger(__name__)

Key = tuple[Hashable, ...]


class ChangeNotifier(Protocol):
    def notify_changed(self, *prefixes: Key) -> None: ...


class NullNotifier:
    def notify_changed(self, *prefixes: Key) -> None:
        return None


class QueryCache:
    def __init__(self):
        self._entries: dict[Key, Any] = {}
        self._lock = threading.Lock()
        # bumped by every invalidation; a load that straddles one is not stored
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def get_or_load(self, key: Key, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]
            generation = self._generation
        value = loader()
        with self._lock:
            self.misses += 1
            if generation == self._generation:
                self._entries[key] = value
            else:
                logger.debug("dropping load of %r overtaken by an invalidation", key)
        return value

    def invalidate(self, prefix: Key) -> int:
        n = len(prefix)
        with self._lock:
            self._generation += 1
            stale = [k for k in self._entries if k[:n] == prefix]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("invalidated %d cache entries under %r", len(stale), prefix)
        return len(stale)

    def notify_changed(self, *prefixes: Key) -> None:
        for prefix in prefixes:
            self.invalidate(prefix)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __contains__(self, key: Key) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
