import asyncio
import time
from typing import Dict, Optional, Callable, Deque
from datetime import datetime
from collections import defaultdict, deque
import redis

from app.obs.logger import log_event


def probe_redis(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """Return a connected client, or None when Redis is not configured/reachable.

    Called once at startup; the answer decides which rate-limit backend the
    worker uses for its whole lifetime.
    """
    if not redis_url:
        return None
    try:
        client = redis.from_url(redis_url, socket_connect_timeout=5)
        client.ping()
    except redis.RedisError as e:
        log_event("redis_unavailable", level="WARNING", error=str(e))
        return None
    log_event("redis_connected")
    return client


class RateLimiter:
    """Per-key sliding-window limiter.

    With a Redis client the window lives in a sorted set shared by every
    worker; otherwise each worker tracks its own timestamps.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: int = 60,
        redis_client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.redis_client = redis_client
        self._clock = clock
        self.local_cache: Dict[str, Deque[float]] = defaultdict(deque)

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "local"

    def check_rate_limit(self, key: str) -> tuple[bool, Dict]:
        """Record a request for ``key`` if it is allowed.

        Rejected requests are not recorded, so a user who keeps sending
        during a block is let through once the oldest request leaves the
        window. A Redis error falls back to this worker's local window.
        """
        if self.redis_client:
            try:
                return self._check_redis_rate_limit(key)
            except redis.RedisError as e:
                log_event("rate_limit_backend_error", level="WARNING", error=str(e))
        return self._check_local_rate_limit(key)

    def _retry_after(self, oldest: float, now: float) -> int:
        # Seconds until the oldest request leaves the window
        return max(1, int(oldest + self.window_seconds - now + 0.999))

    def _check_redis_rate_limit(self, key: str) -> tuple[bool, Dict]:
        redis_key = f"rate_limit:{key}"
        now = self._clock()
        member = str(now)
        pipeline = self.redis_client.pipeline()

        pipeline.zremrangebyscore(redis_key, 0, now - self.window_seconds)
        pipeline.zadd(redis_key, {member: now})
        pipeline.zcard(redis_key)
        pipeline.expire(redis_key, self.window_seconds + 1)

        results = pipeline.execute()
        request_count = results[2]

        if request_count <= self.max_requests:
            return True, {
                "allowed": True,
                "current": request_count,
                "remaining": self.max_requests - request_count,
                "limit": self.max_requests,
                "window_seconds": self.window_seconds,
                "retry_after": None,
            }

        self.redis_client.zrem(redis_key, member)
        oldest = self.redis_client.zrange(redis_key, 0, 0, withscores=True)
        retry_after = self._retry_after(oldest[0][1], now) if oldest else self.window_seconds
        return False, {
            "allowed": False,
            "current": request_count - 1,
            "remaining": 0,
            "limit": self.max_requests,
            "window_seconds": self.window_seconds,
            "retry_after": retry_after,
        }

    def _check_local_rate_limit(self, key: str) -> tuple[bool, Dict]:
        now = self._clock()
        request_times = self.local_cache[key]

        cutoff = now - self.window_seconds
        while request_times and request_times[0] <= cutoff:
            request_times.popleft()

        if len(request_times) < self.max_requests:
            request_times.append(now)
            return True, {
                "allowed": True,
                "current": len(request_times),
                "remaining": self.max_requests - len(request_times),
                "limit": self.max_requests,
                "window_seconds": self.window_seconds,
                "retry_after": None,
            }

        retry_after = self._retry_after(request_times[0], now)
        return False, {
            "allowed": False,
            "current": len(request_times),
            "remaining": 0,
            "limit": self.max_requests,
            "window_seconds": self.window_seconds,
            "retry_after": retry_after,
        }

    def reset(self, key: str) -> None:
        self.local_cache.pop(key, None)
        if self.redis_client:
            self.redis_client.delete(f"rate_limit:{key}")

    def cleanup(self) -> int:
        """Forget local keys with no requests left in the window."""
        cutoff = self._clock() - self.window_seconds
        stale = [k for k, times in self.local_cache.items() if not times or times[-1] <= cutoff]
        for k in stale:
            del self.local_cache[k]
        return len(stale)

    def stats(self) -> Dict:
        return {
            "tracked_users": len(self.local_cache),
            "max_requests": self.max_requests,
            "window_seconds": self.window_seconds,
            "backend": self.backend,
        }


class HealthChecker:
    def __init__(self):
        self.checks = {}
        self.last_check_time = {}
        self.check_results = {}

    def register_check(self, name: str, check_func: Callable, interval_seconds: int = 30):
        self.checks[name] = {
            "func": check_func,
            "interval": interval_seconds
        }

    async def run_checks(self) -> Dict:
        results = {}
        tasks = []

        for name, check_info in self.checks.items():
            last_time = self.last_check_time.get(name, 0)
            if time.time() - last_time >= check_info["interval"]:
                tasks.append(self._run_single_check(name, check_info["func"]))

        if tasks:
            for name, result in await asyncio.gather(*tasks):
                results[name] = result
                self.check_results[name] = result
                self.last_check_time[name] = time.time()

        # Cached results for checks still inside their interval
        for name in self.checks:
            if name not in results:
                results[name] = self.check_results.get(name, {"status": "unknown"})

        all_healthy = all(
            r.get("status") == "healthy"
            for r in results.values()
            if r.get("status") != "unknown"
        )

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.now().isoformat()
        }

    async def _run_single_check(self, name: str, check_func: Callable) -> tuple[str, Dict]:
        try:
            start = time.time()
            if asyncio.iscoroutinefunction(check_func):
                result = await check_func()
            else:
                result = check_func()

            duration = time.time() - start
            return name, {
                "status": "healthy" if result else "unhealthy",
                "duration_ms": int(duration * 1000),
                "timestamp": datetime.now().isoformat()
            }
        except Exception as e:
            return name, {
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.now().isoformat()
            }


class RequestValidator:
    @staticmethod
    def validate_whatsapp_message(data: Dict) -> tuple[bool, Optional[str]]:
        for field in ("Body", "From", "To"):
            if field not in data or data[field] is None:
                return False, f"Missing required field: {field}"

        if not data["From"].startswith("whatsapp:"):
            return False, "Invalid From number format"

        if len(data["Body"]) > 4096:
            return False, "Message too long"

        return True, None
