"""공급사 레지스트리 단위 테스트"""
import pytest

from dropship_sync.adapters.suppliers.factory import build_provider_registry
from dropship_sync.core.exceptions import InvalidTenantError, ProviderUnconfiguredError
from dropship_sync.core.ports.provider_port import HealthStatus
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.tenant import ensure_tenant
from dropship_sync.shared.config import Settings
from dropship_sync.tests.fakes import FakeProvider


class BrokenHealthProvider(FakeProvider):
    async def check_health(self):
        raise RuntimeError("contract violation")


class TestProviderRegistry:
    """레지스트리 테스트"""

    def test_register_and_get(self):
        provider = FakeProvider()
        registry = ProviderRegistry([provider])

        assert registry.get("alibaba") is provider
        assert registry.is_configured("alibaba")
        assert registry.names() == ["alibaba"]

    def test_unknown_provider(self):
        registry = ProviderRegistry()

        with pytest.raises(ProviderUnconfiguredError):
            registry.get("alibaba")

    def test_duplicate_registration(self):
        registry = ProviderRegistry([FakeProvider()])

        with pytest.raises(ValueError):
            registry.register(FakeProvider())

    @pytest.mark.asyncio
    async def test_health_never_raises(self):
        registry = ProviderRegistry([FakeProvider(), BrokenHealthProvider(name="broken")])

        reports = await registry.check_health()

        assert reports["alibaba"].status == HealthStatus.HEALTHY
        assert reports["broken"].status == HealthStatus.UNREACHABLE


class TestBuildProviderRegistry:
    """설정 기반 레지스트리 생성 테스트"""

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        registry = build_provider_registry(Settings(alibaba_api_key=None, alibaba_app_secret=None))

        assert registry.names() == []

    @pytest.mark.asyncio
    async def test_with_credentials(self):
        registry = build_provider_registry(Settings(alibaba_api_key="key", alibaba_app_secret="secret"))

        assert registry.names() == ["alibaba"]
        assert registry.get("alibaba").sku_prefix == "ALI"
        await registry.aclose()


class TestTenant:
    """테넌트 검증 테스트"""

    def test_valid(self):
        assert ensure_tenant("T1") == "T1"
        assert ensure_tenant("tenant_a-01") == "tenant_a-01"

    @pytest.mark.parametrize("tenant_id", ["", " ", "../etc", "a b", None, "-lead"])
    def test_invalid(self, tenant_id):
        with pytest.raises(InvalidTenantError):
            ensure_tenant(tenant_id)
