import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Optional

from fastapi import Request

_MAX_BUCKETS = 50_000
_PRUNE_INTERVAL_SECONDS = 60


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    retry_after_seconds: int = 0


class _Bucket:
    __slots__ = ("hits", "window_seconds")

    def __init__(self, window_seconds: int) -> None:
        self.hits: deque[float] = deque()
        self.window_seconds = window_seconds

    def expire(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self.hits and self.hits[0] <= cutoff:
            self.hits.popleft()


class SlidingWindowRateLimiter:
    """Per-key sliding windows; each key keeps the window it was first used with."""

    def __init__(
        self,
        *,
        max_buckets: int = _MAX_BUCKETS,
        prune_interval_seconds: int = _PRUNE_INTERVAL_SECONDS,
    ) -> None:
        self._buckets: dict[str, _Bucket] = {}
        self._lock = Lock()
        self._max_buckets = max_buckets
        self._prune_interval_seconds = max(1, int(prune_interval_seconds))
        self._last_prune_at = 0.0

    def allow(self, key: str, limit: int, window_seconds: int) -> RateLimitDecision:
        if limit <= 0 or window_seconds <= 0:
            return RateLimitDecision(allowed=True, count=0)
        now = time.monotonic()
        with self._lock:
            if len(self._buckets) > self._max_buckets or (now - self._last_prune_at) >= self._prune_interval_seconds:
                self._prune_stale(now)
                self._last_prune_at = now

            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(window_seconds)
                self._buckets[key] = bucket
            bucket.expire(now)

            if len(bucket.hits) >= limit:
                retry_after = int(bucket.hits[0] + bucket.window_seconds - now) + 1
                return RateLimitDecision(allowed=False, count=len(bucket.hits), retry_after_seconds=max(1, retry_after))
            bucket.hits.append(now)
            return RateLimitDecision(allowed=True, count=len(bucket.hits))

    def _prune_stale(self, now: float) -> None:
        """Drop buckets with no hits left in their window (called under lock)."""
        stale_keys = []
        for key, bucket in self._buckets.items():
            bucket.expire(now)
            if not bucket.hits:
                stale_keys.append(key)
        for key in stale_keys:
            del self._buckets[key]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._last_prune_at = 0.0


rate_limiter = SlidingWindowRateLimiter()


def get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent") if request else None
