"""Background task that reclaims idle sessions on a fixed period."""

import asyncio
from typing import Optional

from app.infrastructure.resilience import RateLimiter
from app.obs.logger import log_event
from app.obs.metrics import inc_counter
from app.session.store import SessionStore


def sweep_once(store: SessionStore, rate_limiter: Optional[RateLimiter] = None) -> int:
    removed = store.sweep()
    if removed:
        inc_counter("sessions_swept_total", value=removed)
    if rate_limiter is not None:
        rate_limiter.cleanup()
    return removed


async def run_periodic_sweep(store: SessionStore, interval_seconds: float = 300,
                             rate_limiter: Optional[RateLimiter] = None) -> None:
    """Sweep every ``interval_seconds`` until cancelled.

    Runs on the event loop between requests, never alongside a store call
    on the same thread.
    """
    log_event("session_sweeper_started", interval_seconds=interval_seconds)
    try:
        while True:
            await asyncio.sleep(interval_seconds)
            sweep_once(store, rate_limiter)
    except asyncio.CancelledError:
        log_event("session_sweeper_stopped")
        raise
