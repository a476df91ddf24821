"""공통 테스트 픽스처"""
from datetime import datetime

import pytest
import pytest_asyncio

from dropship_sync.adapters.persistence.clock_adapter import FixedClock
from dropship_sync.adapters.persistence.models import create_engine_and_session, init_models
from dropship_sync.adapters.persistence.repositories import CatalogRepository
from dropship_sync.shared.rate_limiter import RateLimiterRegistry


@pytest.fixture
def clock():
    """고정 시각"""
    return FixedClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def rate_limiters():
    """테스트 중 대기가 생기지 않을 만큼 넉넉한 요청 한도"""
    return RateLimiterRegistry(rate=1000.0, capacity=100)


@pytest_asyncio.fixture
async def repository(tmp_path):
    """테스트마다 새 SQLite 파일 데이터베이스"""
    engine, session_factory = create_engine_and_session(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_models(engine)

    yield CatalogRepository(session_factory)

    await engine.dispose()
