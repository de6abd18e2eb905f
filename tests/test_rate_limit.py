"""
Tests for the fixed-window rate limiter.
"""
import threading

import pytest

from rate_limit import InMemoryRateLimitStore, RateLimiter, RedisRateLimitStore, build_rate_limiter


@pytest.fixture
def limiter(clock):
    return RateLimiter(InMemoryRateLimitStore(clock=clock), limit=20, window_seconds=60)


class TestInMemoryWindow:
    def test_twenty_first_request_rejected(self, limiter):
        results = [limiter.hit("10.0.0.1") for _ in range(21)]
        assert results[:20] == [True] * 20
        assert results[20] is False

    def test_window_reset_allows_again(self, limiter, clock):
        for _ in range(20):
            limiter.hit("10.0.0.1")
        assert limiter.hit("10.0.0.1") is False

        clock.advance(60.001)
        assert limiter.hit("10.0.0.1") is True

    def test_window_is_fixed_not_sliding(self, limiter, clock):
        limiter.hit("10.0.0.1")
        clock.advance(59)
        for _ in range(19):
            assert limiter.hit("10.0.0.1") is True
        assert limiter.hit("10.0.0.1") is False
        clock.advance(1.5)
        assert limiter.hit("10.0.0.1") is True

    def test_keys_are_independent(self, limiter):
        for _ in range(20):
            limiter.hit("a")
        assert limiter.hit("a") is False
        assert limiter.hit("b") is True

    def test_retry_after_reported(self, limiter, clock):
        for _ in range(20):
            limiter.hit("a")
        clock.advance(15)
        allowed, retry_after = limiter.check("a")
        assert allowed is False
        assert retry_after == pytest.approx(45)


class TestEviction:
    def test_expired_windows_evicted(self, clock):
        store = InMemoryRateLimitStore(clock=clock)
        limiter = RateLimiter(store, limit=20, window_seconds=60)
        for i in range(50):
            limiter.hit(f"client-{i}")
        assert len(store) == 50

        clock.advance(120)
        limiter.hit("late")
        assert len(store) == 1

    def test_full_table_triggers_sweep(self, clock):
        store = InMemoryRateLimitStore(max_entries=3, clock=clock)
        limiter = RateLimiter(store, limit=5, window_seconds=60)
        clock.advance(30)
        limiter.hit("a")
        limiter.hit("b")
        clock.advance(31)
        limiter.hit("c")
        clock.advance(30)
        # a and b have expired, the periodic sweep is not due yet
        limiter.hit("d")
        assert len(store) == 2

    def test_full_table_of_live_windows_is_not_rescanned(self, clock, monkeypatch):
        store = InMemoryRateLimitStore(max_entries=3, clock=clock)
        limiter = RateLimiter(store, limit=100, window_seconds=60)
        for key in ("a", "b", "c"):
            limiter.hit(key)

        sweeps = []
        original = store._purge_expired

        def counting_purge(now):
            sweeps.append(now)
            original(now)

        monkeypatch.setattr(store, "_purge_expired", counting_purge)
        for i in range(50):
            clock.advance(0.5)
            limiter.hit(f"flood-{i}")
        assert sweeps == []

        # the first windows have lapsed, so the next hit sweeps once
        clock.advance(40)
        limiter.hit("after")
        assert len(sweeps) == 1
        assert "a" not in store._entries


class TestConcurrency:
    def test_no_lost_updates(self):
        limiter = RateLimiter(InMemoryRateLimitStore(), limit=20, window_seconds=60)
        allowed = []
        lock = threading.Lock()

        def worker():
            for _ in range(10):
                ok = limiter.hit("shared")
                with lock:
                    allowed.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert allowed.count(True) == 20
        assert allowed.count(False) == 60


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))

    def ttl(self, key):
        self.ops.append(("ttl", key))

    def execute(self):
        out = []
        for op, key in self.ops:
            if op == "incr":
                self.redis.counts[key] = self.redis.counts.get(key, 0) + 1
                out.append(self.redis.counts[key])
            else:
                out.append(self.redis.ttls.get(key, -1))
        return out


class FakeRedis:
    def __init__(self):
        self.counts = {}
        self.ttls = {}

    def pipeline(self):
        return FakePipeline(self)

    def expire(self, key, seconds):
        self.ttls[key] = seconds


class TestRedisStore:
    def test_counts_and_sets_expiry(self):
        fake = FakeRedis()
        limiter = RateLimiter(RedisRateLimitStore(fake), limit=2, window_seconds=60)
        assert limiter.hit("1.2.3.4") is True
        assert fake.ttls["ratelimit:1.2.3.4"] == 60
        assert limiter.hit("1.2.3.4") is True
        assert limiter.hit("1.2.3.4") is False


def test_build_without_redis_uses_memory():
    limiter = build_rate_limiter(redis_url="")
    assert isinstance(limiter.store, InMemoryRateLimitStore)
    assert limiter.limit == 20
    assert limiter.window_seconds == 60
