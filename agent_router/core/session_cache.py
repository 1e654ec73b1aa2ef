"""Session Cache - per-session memo of resolved agent models.

Reflection loops issue many sequential calls for the same agent inside one
session. The cache maps ``(session, project, agent)`` to the model resolved for
that agent so only the first call of each agent pays for a store lookup.

Properties:
- Strict LRU: every hit promotes the entry, inserting past capacity evicts
  exactly one least-recently-used entry
- Sessions never share entries, even for the same project and agent
- Entries are pinned: a session keeps its model until eviction or restart,
  even if the project configuration changes in the meantime
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, Protocol, TypeVar

DEFAULT_CAPACITY = 1000

# ASCII unit separator; never part of a UUID or a session id
KEY_DELIMITER = "\x1f"

V = TypeVar("V")


class LRUCache(Protocol[V]):
    """Minimal capability the resolver needs from a cache."""

    def get(self, key: str) -> Optional[V]: ...

    def set(self, key: str, value: V) -> None: ...

    def delete(self, key: str) -> bool: ...

    @property
    def size(self) -> int: ...


@dataclass
class CacheStats:
    """Statistics for the session cache."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


class BoundedLRU(Generic[V]):
    """OrderedDict backed LRU with O(1) get/set/delete.

    Every public operation holds a lock for its (short, non-awaiting)
    critical section so it is atomic for event-loop tasks and threads alike.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: "OrderedDict[str, V]" = OrderedDict()
        self._lock = threading.Lock()
        self.stats = CacheStats()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        # Membership test does not touch recency
        return key in self._entries

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            if key not in self._entries:
                self.stats.misses += 1
                return None
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return self._entries[key]

    def peek(self, key: str) -> Optional[V]:
        """Read without promoting or counting."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: V) -> None:
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                self._entries.move_to_end(key)
                return
            if len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
                self.stats.evictions += 1
            self._entries[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                return True
            return False

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def keys(self):
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._entries.keys())


class SessionModelCache:
    """Resolved-model cache keyed by session, project and agent."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        backend: Optional[LRUCache[str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._backend = backend if backend is not None else BoundedLRU(capacity)
        self._log = logger or logging.getLogger(__name__)

    @staticmethod
    def make_key(session_id: str, project_id: str, agent_id: str) -> str:
        parts = (session_id, project_id, agent_id)
        for part in parts:
            if KEY_DELIMITER in part:
                raise ValueError(f"Cache key component contains the key delimiter: {part!r}")
        return KEY_DELIMITER.join(parts)

    @property
    def backend(self) -> LRUCache[str]:
        return self._backend

    @property
    def size(self) -> int:
        return self._backend.size

    @property
    def stats(self) -> CacheStats:
        return getattr(self._backend, "stats", CacheStats())

    def get_model(self, session_id: str, project_id: str, agent_id: str) -> Optional[str]:
        key = self.make_key(session_id, project_id, agent_id)
        model = self._backend.get(key)
        if model is None:
            self._log.debug(f"Agent model cache miss: session={session_id} agent={agent_id}")
        else:
            self._log.debug(f"Agent model cache hit: session={session_id} agent={agent_id} -> {model}")
        return model

    def set_model(self, session_id: str, project_id: str, agent_id: str, model: str) -> None:
        key = self.make_key(session_id, project_id, agent_id)
        self._backend.set(key, model)

    def delete_model(self, session_id: str, project_id: str, agent_id: str) -> bool:
        return self._backend.delete(self.make_key(session_id, project_id, agent_id))

    def clear(self) -> int:
        clear = getattr(self._backend, "clear", None)
        return clear() if clear else 0

    def reset_stats(self) -> None:
        stats = getattr(self._backend, "stats", None)
        if stats is not None:
            stats.hits = 0
            stats.misses = 0
            stats.evictions = 0

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        stats = self.stats
        return {
            "size": self.size,
            "hits": stats.hits,
            "misses": stats.misses,
            "evictions": stats.evictions,
            "hit_rate": stats.hit_rate,
        }

    def log_stats(self, label: Optional[str] = None) -> None:
        stats = self.get_stats()
        prefix = f"[{label}] " if label else ""
        self._log.info(
            f"{prefix}Cache metrics: hits={stats['hits']} misses={stats['misses']} "
            f"hit_rate={stats['hit_rate']:.2f}% size={stats['size']} "
            f"evictions={stats['evictions']}"
        )
