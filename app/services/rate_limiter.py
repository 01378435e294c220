"""
Sliding-window rate limiting for OTP issuance.

Two interchangeable backends share the ``allow(identity)`` contract:
``MemoryRateLimiter`` for a single process and ``RedisRateLimiter`` when
several API processes must share one window.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List

import redis

from app.core.redis import CacheKeys
from app.core.timezone import get_ist_now
from app.services.sweeper import Sweeper

logger = logging.getLogger(__name__)

RATE_ACTION = "send_otp"


class MemoryRateLimiter:
    def __init__(
        self,
        max_requests: int = 5,
        window_seconds: int = 3600,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], datetime] = get_ist_now,
    ):
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, List[datetime]] = {}
        self._sweeper = Sweeper("rate_limit", self.sweep, sweep_interval_seconds)

    def _prune(self, timestamps: List[datetime], now: datetime) -> List[datetime]:
        cutoff = now - self.window
        return [ts for ts in timestamps if ts > cutoff]

    def allow(self, identity: str) -> bool:
        now = self._clock()
        with self._lock:
            recent = self._prune(self._windows.get(identity, []), now)
            if len(recent) >= self.max_requests:
                self._windows[identity] = recent
                return False
            recent.append(now)
            self._windows[identity] = recent
            return True

    def remaining(self, identity: str) -> int:
        now = self._clock()
        with self._lock:
            recent = self._prune(self._windows.get(identity, []), now)
        return max(0, self.max_requests - len(recent))

    def sweep(self) -> int:
        """Prune every window and drop the empty ones. Returns how many were dropped."""
        now = self._clock()
        removed = 0
        with self._lock:
            for identity in list(self._windows):
                recent = self._prune(self._windows[identity], now)
                if recent:
                    self._windows[identity] = recent
                else:
                    del self._windows[identity]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def start(self) -> None:
        self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()


class RedisRateLimiter:
    """Sorted-set sliding window; key TTL replaces the sweep."""

    def __init__(
        self,
        client: redis.Redis,
        max_requests: int = 5,
        window_seconds: int = 3600,
        clock: Callable[[], datetime] = get_ist_now,
    ):
        self.client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    def allow(self, identity: str) -> bool:
        """
        Prune, record and count in one MULTI/EXEC, so concurrent callers in
        any process see each other's entries. A request that lands over the
        limit removes its own entry again.
        """
        key = CacheKeys.rate_limit(identity, RATE_ACTION)
        now_ms = self._now_ms()
        cutoff = now_ms - self.window_seconds * 1000
        member = f"{now_ms}:{uuid.uuid4().hex[:8]}"

        try:
            pipe = self.client.pipeline()
            pipe.zremrangebyscore(key, "-inf", cutoff)
            pipe.zadd(key, {member: now_ms})
            pipe.zcard(key)
            pipe.expire(key, self.window_seconds)
            _, _, count, _ = pipe.execute()

            if count > self.max_requests:
                self.client.zrem(key, member)
                return False
            return True
        except redis.RedisError as e:
            # On error, allow request
            logger.warning("Rate limiter unavailable, allowing %s: %s", identity, e)
            return True

    def remaining(self, identity: str) -> int:
        key = CacheKeys.rate_limit(identity, RATE_ACTION)
        cutoff = self._now_ms() - self.window_seconds * 1000
        try:
            count = self.client.zcount(key, f"({cutoff}", "+inf")
        except redis.RedisError:
            return self.max_requests
        return max(0, self.max_requests - count)

    def sweep(self) -> int:
        return 0

    def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
