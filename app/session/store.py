from __future__ import annotations

"""In-memory quiz session store with TTL expiry and a capacity bound.

Sessions are local to the worker process. Expiry is checked lazily on every
read and proactively by ``sweep()``, which the service runs on a timer.
"""

from collections import OrderedDict
from dataclasses import dataclass, field, fields as dc_fields
from typing import Any, Callable, Dict, Hashable, Optional
import threading
import time

from app.obs.logger import log_event
from app.utils.rounding import round_half_up


@dataclass
class Session:
    """Progress of one user through one ticket attempt."""

    user_id: Hashable
    current_ticket: int
    current_question_index: int = 1
    correct_count: int = 0
    incorrect_count: int = 0
    started_at: float = 0.0
    last_activity_at: float = 0.0

    @property
    def answered(self) -> int:
        return self.correct_count + self.incorrect_count


_SESSION_FIELDS = frozenset(f.name for f in dc_fields(Session))


class SessionStore:
    """Maps user ids to live sessions.

    Capacity eviction follows insertion order: when the store is full, the
    session created longest ago goes first, regardless of how recently it
    was read. Reads only refresh ``last_activity_at``, which drives TTL.
    """

    def __init__(self, ttl_minutes: float = 30, max_sessions: int = 5000,
                 clock: Callable[[], float] = time.time):
        if ttl_minutes <= 0:
            raise ValueError(f"ttl_minutes must be positive, got {ttl_minutes}")
        if max_sessions <= 0:
            raise ValueError(f"max_sessions must be positive, got {max_sessions}")
        self.ttl_seconds = ttl_minutes * 60
        self.max_sessions = max_sessions
        self._clock = clock
        self._lock = threading.Lock()
        self._data: "OrderedDict[Hashable, Session]" = OrderedDict()

    def _expired(self, session: Session, now: float) -> bool:
        return (now - session.last_activity_at) > self.ttl_seconds

    def set(self, user_id: Hashable, data: Dict[str, Any]) -> Session:
        """Create a fresh session for user_id, replacing any existing one."""
        now = self._clock()
        values = dict(data)
        values.setdefault("started_at", now)
        values["last_activity_at"] = now
        values.pop("user_id", None)
        session = Session(user_id=user_id, **values)

        evicted = 0
        with self._lock:
            # A replaced session counts as a new insertion
            self._data.pop(user_id, None)
            while len(self._data) >= self.max_sessions:
                self._data.popitem(last=False)
                evicted += 1
            self._data[user_id] = session

        if evicted:
            log_event("sessions_evicted", count=evicted, max_sessions=self.max_sessions)
        return session

    def get(self, user_id: Hashable) -> Optional[Session]:
        """Return the live session and touch it, or None if missing/expired."""
        now = self._clock()
        with self._lock:
            session = self._data.get(user_id)
            if session is None:
                return None
            if self._expired(session, now):
                del self._data[user_id]
                return None
            session.last_activity_at = now
            return session

    def update(self, user_id: Hashable, **changes: Any) -> Optional[Session]:
        bad = sorted((set(changes) - _SESSION_FIELDS) | ({"user_id"} & set(changes)))
        if bad:
            raise TypeError(f"cannot update session fields: {bad}")

        session = self.get(user_id)
        if session is None:
            return None
        with self._lock:
            for name, value in changes.items():
                setattr(session, name, value)
            session.last_activity_at = self._clock()
        return session

    def delete(self, user_id: Hashable) -> bool:
        with self._lock:
            return self._data.pop(user_id, None) is not None

    def has(self, user_id: Hashable) -> bool:
        # Goes through get(), so a hit also refreshes the session
        return self.get(user_id) is not None

    def sweep(self) -> int:
        """Remove every expired session. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            stale = [uid for uid, s in self._data.items() if self._expired(s, now)]
            for uid in stale:
                del self._data[uid]
        if stale:
            log_event("sessions_swept", count=len(stale), remaining=len(self._data))
        return len(stale)

    def __len__(self) -> int:
        return len(self._data)

    def stats(self) -> Dict[str, Any]:
        active = len(self._data)
        return {
            "active_sessions": active,
            "max_sessions": self.max_sessions,
            "ttl_minutes": self.ttl_seconds / 60,
            "utilization_percent": round_half_up(active / self.max_sessions * 100),
        }
