"""FastAPI 애플리케이션 메인 파일 (헥사고날 아키텍처)"""
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional
import time

import httpx
from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware

from dropship_sync.app.routes import health, catalog, orders
from dropship_sync.adapters.persistence.clock_adapter import ClockAdapter
from dropship_sync.adapters.persistence.models import create_engine_and_session, init_models
from dropship_sync.adapters.persistence.repositories import CatalogRepository
from dropship_sync.adapters.suppliers.factory import build_provider_registry
from dropship_sync.core.usecases.import_catalog import ImportCatalogUseCase
from dropship_sync.core.usecases.reconcile_inventory import ReconcileInventoryUseCase
from dropship_sync.core.usecases.dispatch_order import DispatchOrderUseCase
from dropship_sync.shared.config import Settings, get_settings
from dropship_sync.shared.logging import configure_logging, get_logger, log_api_request
from dropship_sync.shared.rate_limiter import RateLimiterRegistry

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """FastAPI 애플리케이션 생성"""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """애플리케이션 생명주기 관리"""
        logger.info("드랍십 연동 서버 시작")

        engine, session_factory = create_engine_and_session(
            settings.database_url,
            echo=settings.log_level == "DEBUG"
        )
        await init_models(engine)

        repository = CatalogRepository(session_factory)
        registry = build_provider_registry(settings, transport=transport)
        rate_limiters = RateLimiterRegistry(settings.provider_rate_per_second, settings.provider_burst)
        clock = ClockAdapter()
        markup = Decimal(str(settings.default_markup_factor))

        app.state.settings = settings
        app.state.registry = registry
        app.state.repository = repository
        app.state.import_catalog = ImportCatalogUseCase(
            registry,
            repository,
            clock,
            rate_limiters,
            markup_factor=markup,
            max_concurrent=settings.max_concurrent_requests,
            page_size=settings.import_page_size,
            default_limit=settings.import_limit,
            default_category_count=settings.import_category_count,
            low_stock_threshold=settings.low_stock_threshold
        )
        app.state.reconcile_inventory = ReconcileInventoryUseCase(
            registry,
            repository,
            clock,
            rate_limiters,
            markup_factor=markup,
            max_concurrent=settings.max_concurrent_requests,
            refresh_minutes=settings.inventory_refresh_minutes,
            batch_size=settings.inventory_batch_size
        )
        app.state.dispatch_order = DispatchOrderUseCase(registry, repository, clock, rate_limiters)

        logger.info(f"등록된 공급사: {registry.names() or '없음'}")

        yield

        await registry.aclose()
        await engine.dispose()
        logger.info("드랍십 연동 서버 종료")

    app = FastAPI(
        title="드랍십 카탈로그/주문 연동",
        description="멀티 테넌트 마켓플레이스용 드랍십 공급사 카탈로그 수집, 재고 동기화, 주문 전달 API",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS 미들웨어
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        log_api_request(
            logger,
            request.method,
            request.url.path,
            response.status_code,
            time.perf_counter() - started
        )
        return response

    # API 라우터 등록
    api_router = APIRouter(prefix="/api/v1")
    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(catalog.router, prefix="/tenants/{tenant_id}", tags=["catalog"])
    api_router.include_router(orders.router, prefix="/tenants/{tenant_id}", tags=["orders"])
    app.include_router(api_router)

    @app.get("/")
    async def root():
        """루트 엔드포인트"""
        return {
            "message": "드랍십 연동 API 서버",
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dropship_sync.app.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )
