from __future__ import annotations

"""Count-bounded LRU cache.

Entries live in an OrderedDict ordered by recency, least recently used
first. ``get`` and ``set`` move a key to the end; eviction pops from the
front, so ties always resolve to the entry that was touched first.
"""

from collections import OrderedDict
from typing import Any, Dict, Generic, Hashable, Optional, TypeVar
import threading

from app.utils.rounding import round_half_up

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedCache(Generic[K, V]):
    """LRU cache holding at most ``max_size`` entries."""

    def __init__(self, max_size: int = 5000):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.max_size = max_size
        self._lock = threading.Lock()
        self._data: "OrderedDict[K, V]" = OrderedDict()

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        """Return the cached value and mark it most recently used."""
        with self._lock:
            if key not in self._data:
                return default
            self._data.move_to_end(key, last=True)
            return self._data[key]

    def set(self, key: K, value: V) -> V:
        """Insert or replace ``key``, evicting LRU entries to make room."""
        with self._lock:
            # Drop first so a replaced key lands at the MRU end
            self._data.pop(key, None)
            while len(self._data) >= self.max_size:
                self._data.popitem(last=False)
            self._data[key] = value
            return value

    def has(self, key: K) -> bool:
        # Membership only; recency is untouched
        with self._lock:
            return key in self._data

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._data.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> list:
        """Keys from least to most recently used."""
        with self._lock:
            return list(self._data.keys())

    @property
    def size(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def stats(self) -> Dict[str, Any]:
        size = len(self._data)
        return {
            "size": size,
            "max_size": self.max_size,
            "utilization_percent": round_half_up(size / self.max_size * 100),
        }


_MISSING = object()
