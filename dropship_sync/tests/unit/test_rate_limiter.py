"""토큰 버킷 단위 테스트"""
import pytest

from dropship_sync.shared.rate_limiter import RateLimiterRegistry, TokenBucket


class FakeTime:
    """수동으로 흐르는 시계"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestTokenBucket:
    """토큰 버킷 테스트"""

    @pytest.mark.asyncio
    async def test_burst_then_wait(self):
        fake = FakeTime()
        bucket = TokenBucket(rate=1.0, capacity=2, time_func=fake, sleep=fake.sleep)

        await bucket.acquire()
        await bucket.acquire()
        assert fake.sleeps == []

        await bucket.acquire()
        assert fake.sleeps == [pytest.approx(1.0)]

    @pytest.mark.asyncio
    async def test_refill_over_time(self):
        fake = FakeTime()
        bucket = TokenBucket(rate=2.0, capacity=2, time_func=fake, sleep=fake.sleep)
        await bucket.acquire(2)

        fake.now += 1.0

        assert bucket.available == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_penalize_delays_next_request(self):
        fake = FakeTime()
        bucket = TokenBucket(rate=1.0, capacity=2, time_func=fake, sleep=fake.sleep)

        bucket.penalize(3)
        await bucket.acquire()

        assert sum(fake.sleeps) == pytest.approx(4.0)

    @pytest.mark.asyncio
    async def test_request_larger_than_capacity(self):
        bucket = TokenBucket(rate=1.0, capacity=1)

        with pytest.raises(ValueError):
            await bucket.acquire(2)

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0, capacity=1)
        with pytest.raises(ValueError):
            TokenBucket(rate=1, capacity=0)


class TestRateLimiterRegistry:
    """테넌트+공급사별 버킷 테스트"""

    def test_bucket_shared_per_key(self):
        registry = RateLimiterRegistry(rate=1.0, capacity=1)

        assert registry.get("T1", "alibaba") is registry.get("T1", "alibaba")
        assert registry.get("T1", "alibaba") is not registry.get("T2", "alibaba")

    @pytest.mark.asyncio
    async def test_tenants_do_not_share_budget(self):
        fake = FakeTime()
        registry = RateLimiterRegistry(rate=1.0, capacity=1, time_func=fake, sleep=fake.sleep)

        await registry.acquire("T1", "alibaba")
        await registry.acquire("T2", "alibaba")

        assert fake.sleeps == []

    def test_penalize_without_retry_after_is_noop(self):
        registry = RateLimiterRegistry(rate=1.0, capacity=1)
        registry.penalize("T1", "alibaba", None)

        assert registry.get("T1", "alibaba").available == pytest.approx(1.0)
