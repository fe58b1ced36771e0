from __future__ import annotations

"""Byte-budgeted cache for image buffers.

Tracks the cumulative payload size and evicts the least recently accessed
entries until a new buffer fits. A single buffer larger than half the
budget is never admitted.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar
import threading
import time

from app.utils.rounding import round_half_up

K = TypeVar("K", bound=Hashable)

_MB = 1024 * 1024


@dataclass(slots=True)
class ImageEntry:
    buffer: bytes
    size: int
    last_access: float


class ByteBudgetedCache(Generic[K]):
    def __init__(self, max_size_bytes: int = 50 * _MB,
                 clock: Callable[[], float] = time.monotonic):
        if max_size_bytes <= 0:
            raise ValueError(f"max_size_bytes must be positive, got {max_size_bytes}")
        self.max_size_bytes = max_size_bytes
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[K, ImageEntry] = {}
        self._current_size = 0

    @property
    def current_size(self) -> int:
        return self._current_size

    def get(self, key: K) -> Optional[bytes]:
        """Return the buffer and refresh its access time."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            entry.last_access = self._clock()
            return entry.buffer

    def set(self, key: K, buffer: bytes) -> bool:
        """Cache ``buffer`` under ``key``. Returns False when it was rejected."""
        if not isinstance(buffer, (bytes, bytearray, memoryview)):
            return False
        data = bytes(buffer)
        size = len(data)
        if size > self.max_size_bytes / 2:
            return False

        with self._lock:
            existing = self._entries.pop(key, None)
            if existing is not None:
                self._current_size -= existing.size

            while self._current_size + size > self.max_size_bytes and self._entries:
                self._evict_oldest()

            self._entries[key] = ImageEntry(buffer=data, size=size, last_access=self._clock())
            self._current_size += size
            return True

    def has(self, key: K) -> bool:
        with self._lock:
            return key in self._entries

    def delete(self, key: K) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._current_size -= entry.size
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._current_size = 0

    def _evict_oldest(self) -> None:
        # Linear scan; strict < keeps the earliest inserted entry on ties
        oldest_key = None
        oldest_time = float("inf")
        for key, entry in self._entries.items():
            if entry.last_access < oldest_time:
                oldest_time = entry.last_access
                oldest_key = key
        if oldest_key is not None:
            entry = self._entries.pop(oldest_key)
            self._current_size -= entry.size

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {
            "item_count": len(self._entries),
            "current_size_bytes": self._current_size,
            "current_size_mb": round(self._current_size / _MB, 2),
            "max_size_bytes": self.max_size_bytes,
            "max_size_mb": round_half_up(self.max_size_bytes / _MB),
            "utilization_percent": round_half_up(self._current_size / self.max_size_bytes * 100),
        }
