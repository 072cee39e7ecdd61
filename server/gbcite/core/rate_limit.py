from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass

from fastapi import HTTPException, Request

from server.gbcite.config import Settings


@dataclass
class _Bucket:
    tokens: float
    updated_at: float
    capacity: float
    rate: float

    def refill(self, now: float) -> None:
        elapsed = max(0.0, now - self.updated_at)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate)
        self.updated_at = now

    def is_full(self, now: float) -> bool:
        return self.tokens + max(0.0, now - self.updated_at) * self.rate >= self.capacity


class RateLimiter:
    """Token buckets per key; buckets that have refilled completely are dropped."""

    def __init__(self, *, sweep_interval_seconds: float = 60.0) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, _Bucket] = {}
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep: float | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def allow(self, key: str, *, limit: int, window_seconds: int) -> bool:
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _Bucket(
                    tokens=float(limit),
                    updated_at=now,
                    capacity=float(limit),
                    rate=limit / max(1.0, float(window_seconds)),
                )
                self._buckets[key] = bucket
            else:
                bucket.refill(now)

            if bucket.tokens < 1.0:
                return False
            bucket.tokens -= 1.0
            return True

    def retry_after(self, key: str) -> int:
        now = time.monotonic()
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.rate <= 0:
                return 0
            bucket.refill(now)
            return max(0, math.ceil((1.0 - bucket.tokens) / bucket.rate))

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._last_sweep = None

    def _sweep(self, now: float) -> None:
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        for key in [k for k, b in self._buckets.items() if b.is_full(now)]:
            del self._buckets[key]


_limiter = RateLimiter()


def client_ip(request: Request, settings: Settings) -> str:
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        if forwarded:
            return forwarded.split(",")[0].strip()
    client = request.client
    return client.host if client else "unknown"


def enforce_rate_limit(
    request: Request,
    *,
    settings: Settings,
    key: str,
    limit: int,
    window_seconds: int,
    limiter: RateLimiter | None = None,
) -> None:
    if not settings.rate_limit_enabled:
        return
    limiter = limiter or _limiter
    bucket_key = f"{key}:{client_ip(request, settings)}"
    if not limiter.allow(bucket_key, limit=limit, window_seconds=window_seconds):
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded.",
            headers={"Retry-After": str(max(1, limiter.retry_after(bucket_key)))},
        )
