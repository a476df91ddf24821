"""토큰 버킷 요청 한도 제어

(tenant_id, provider) 마다 버킷 하나를 공유해서 여러 카테고리를 동시에 수집해도
공급사 요청 한도를 넘지 않게 한다.
"""
import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional, Tuple

from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)


class TokenBucket:
    """초당 rate 개씩 채워지고 최대 capacity 개까지 쌓이는 버킷"""

    def __init__(
        self,
        rate: float,
        capacity: int,
        time_func: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._time = time_func
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated_at = time_func()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._time()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self, tokens: float = 1.0) -> None:
        """토큰이 생길 때까지 대기 후 차감"""
        if tokens > self.capacity:
            raise ValueError(f"요청 토큰({tokens})이 버킷 용량({self.capacity})보다 큽니다")

        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return
                wait_seconds = (tokens - self._tokens) / self.rate
            await self._sleep(wait_seconds)

    def penalize(self, seconds: float) -> None:
        """429 Retry-After 등 공급사 지시에 따라 버킷을 비운다"""
        self._refill()
        self._tokens = min(self._tokens, 0.0) - seconds * self.rate


class RateLimiterRegistry:
    """(tenant_id, provider) 별 토큰 버킷"""

    def __init__(
        self,
        rate: float,
        capacity: int,
        time_func: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.rate = rate
        self.capacity = capacity
        self._time = time_func
        self._sleep = sleep
        self._buckets: Dict[Tuple[str, str], TokenBucket] = {}

    def get(self, tenant_id: str, provider: str) -> TokenBucket:
        key = (tenant_id, provider)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(self.rate, self.capacity, self._time, self._sleep)
            self._buckets[key] = bucket
            logger.debug(f"요청 한도 버킷 생성: {tenant_id}/{provider} ({self.rate}/s, burst {self.capacity})")
        return bucket

    async def acquire(self, tenant_id: str, provider: str, tokens: float = 1.0) -> None:
        await self.get(tenant_id, provider).acquire(tokens)

    def penalize(self, tenant_id: str, provider: str, retry_after: Optional[float]) -> None:
        if retry_after:
            self.get(tenant_id, provider).penalize(retry_after)
