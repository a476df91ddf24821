"""설정 기반 공급사 어댑터 생성"""
from typing import Optional

import httpx

from dropship_sync.adapters.http.client import ProviderHttpClient, RetryPolicy
from dropship_sync.adapters.suppliers.alibaba_adapter import AlibabaAdapter
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.shared.config import Settings
from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)


def build_provider_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ProviderRegistry:
    """인증 정보가 있는 공급사만 등록한 레지스트리 생성"""
    registry = ProviderRegistry()
    retry_policy = RetryPolicy(
        max_attempts=settings.max_retries,
        base_delay=settings.retry_base_delay
    )

    if settings.alibaba_api_key and settings.alibaba_app_secret:
        http_client = ProviderHttpClient(
            AlibabaAdapter.name,
            settings.alibaba_api_url,
            timeout=settings.request_timeout,
            retry_policy=retry_policy,
            transport=transport
        )
        registry.register(AlibabaAdapter(
            api_key=settings.alibaba_api_key,
            app_secret=settings.alibaba_app_secret,
            access_token=settings.alibaba_access_token,
            http_client=http_client
        ))
    else:
        logger.warning("Alibaba 인증 정보가 없어 공급사를 등록하지 않습니다 (기본 카테고리 사용)")

    return registry
