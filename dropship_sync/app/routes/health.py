"""헬스체크 라우트"""
from fastapi import APIRouter, Depends
from datetime import datetime

from dropship_sync.app.di import get_provider_registry
from dropship_sync.core.ports.provider_port import HealthStatus
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.shared.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check(registry: ProviderRegistry = Depends(get_provider_registry)):
    """서비스 + 공급사 헬스체크"""
    reports = await registry.check_health()

    providers = {
        name: {"status": report.status.value, "details": report.details}
        for name, report in reports.items()
    }
    degraded = any(report.status != HealthStatus.HEALTHY for report in reports.values())
    if degraded:
        logger.warning(f"공급사 상태 이상: {providers}")

    return {
        "status": "degraded" if degraded else "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "dropship-sync",
        "version": "1.0.0",
        "providers": providers
    }
