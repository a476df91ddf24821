"""공급사 레지스트리

프로세스 시작 시 한 번 만들어서 유즈케이스에 명시적으로 주입한다.
"""
import asyncio
from typing import Dict, Iterable, List, Optional

from dropship_sync.core.exceptions import ProviderUnconfiguredError
from dropship_sync.core.ports.provider_port import ProviderPort, HealthReport, HealthStatus
from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)


class ProviderRegistry:
    """공급사 이름 -> 어댑터"""

    def __init__(self, providers: Optional[Iterable[ProviderPort]] = None):
        self._providers: Dict[str, ProviderPort] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: ProviderPort) -> None:
        """어댑터 등록"""
        if not provider.name:
            raise ValueError("공급사 이름이 없는 어댑터는 등록할 수 없습니다")
        if provider.name in self._providers:
            raise ValueError(f"이미 등록된 공급사: {provider.name}")
        self._providers[provider.name] = provider
        logger.info(f"공급사 등록: {provider.name}")

    def get(self, name: str) -> ProviderPort:
        """어댑터 조회 (미등록이면 ProviderUnconfiguredError)"""
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderUnconfiguredError(name)
        return provider

    def is_configured(self, name: str) -> bool:
        return name in self._providers

    def names(self) -> List[str]:
        return sorted(self._providers)

    async def check_health(self) -> Dict[str, HealthReport]:
        """전체 공급사 헬스체크"""
        names = self.names()
        reports = await asyncio.gather(
            *(self._providers[name].check_health() for name in names),
            return_exceptions=True
        )

        results = {}
        for name, report in zip(names, reports):
            if isinstance(report, Exception):
                # 계약 위반이지만 헬스체크 집계는 계속한다
                logger.error(f"헬스체크 예외 {name}: {report}")
                report = HealthReport(HealthStatus.UNREACHABLE, {"error": str(report)})
            results[name] = report
        return results

    async def aclose(self) -> None:
        """등록된 어댑터 리소스 정리"""
        for provider in self._providers.values():
            await provider.aclose()
