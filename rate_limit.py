"""
Fixed-window rate limiting for the cart validation endpoint.

RateLimiter counts hits per key through a pluggable store:
- InMemoryRateLimitStore: per-process table guarded by a lock, expired
  windows are evicted so the table stays bounded
- RedisRateLimitStore: INCR + EXPIRE, shared between processes
"""
import threading
import time
from typing import Callable, Dict, Optional, Tuple

import redis

import config
from logger import get_logger

logger = get_logger("rate_limit")

Clock = Callable[[], float]


class InMemoryRateLimitStore:
    def __init__(self, max_entries: int = 10000, clock: Clock = time.time):
        self.max_entries = max_entries
        self._clock = clock
        # key -> (count, window_reset_at)
        self._entries: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()
        # earliest reset_at in the table; a full table is only rescanned once it passes
        self._next_expiry = float("inf")

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._entries.items() if now > reset_at]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now
        self._next_expiry = min((reset_at for _, reset_at in self._entries.values()), default=float("inf"))
        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate-limit windows")

    def hit(self, key: str, limit: int, window: float) -> Tuple[bool, float]:
        """Count one request for key; returns (allowed, seconds until the window resets)."""
        with self._lock:
            now = self._clock()
            table_full = len(self._entries) >= self.max_entries
            if now - self._last_sweep > window or (table_full and now > self._next_expiry):
                self._purge_expired(now)

            count, reset_at = self._entries.get(key, (0, now + window))
            if now > reset_at:
                count, reset_at = 0, now + window

            if count >= limit:
                return False, reset_at - now

            self._entries[key] = (count + 1, reset_at)
            self._next_expiry = min(self._next_expiry, reset_at)
            return True, reset_at - now


class RedisRateLimitStore:
    def __init__(self, redis_client, prefix: str = "ratelimit"):
        self.redis = redis_client
        self.prefix = prefix

    def hit(self, key: str, limit: int, window: float) -> Tuple[bool, float]:
        redis_key = f"{self.prefix}:{key}"
        pipe = self.redis.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            self.redis.expire(redis_key, int(window))
            ttl = int(window)
        return int(count) <= limit, float(ttl)


class RateLimiter:
    def __init__(self, store=None, limit: int = 20, window_seconds: float = 60):
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.limit = limit
        self.window_seconds = window_seconds

    def check(self, key: str) -> Tuple[bool, float]:
        return self.store.hit(key, self.limit, self.window_seconds)

    def hit(self, key: str) -> bool:
        allowed, _ = self.check(key)
        return allowed


def build_rate_limiter(redis_url: Optional[str] = None) -> RateLimiter:
    """Use Redis when REDIS_URL is set and reachable, otherwise an in-process table."""
    redis_url = redis_url if redis_url is not None else config.REDIS_URL
    store = None
    if redis_url:
        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            store = RedisRateLimitStore(client)
            logger.info("Using Redis rate-limit store")
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis connection failed, falling back to in-memory: {e}")
    if store is None:
        store = InMemoryRateLimitStore(max_entries=config.RATE_LIMIT_MAX_ENTRIES)
        logger.info("Using in-memory rate-limit store")
    return RateLimiter(
        store,
        limit=config.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
    )
