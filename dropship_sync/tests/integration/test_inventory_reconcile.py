"""재고 동기화 통합 테스트"""
from decimal import Decimal

import pytest

from dropship_sync.core.entities.product import PricePolicy, Product
from dropship_sync.core.exceptions import ProviderUnconfiguredError, ProviderUnreachableError
from dropship_sync.core.ports.provider_port import InventoryUpdate, InventoryUpdateOutcome
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.usecases.reconcile_inventory import ReconcileInventoryUseCase
from dropship_sync.tests.fakes import FakeProvider, make_product


class LookupFailingProvider(FakeProvider):
    """단건 조회가 항상 실패하는 공급사"""

    async def get_product(self, provider_product_id):
        raise ProviderUnreachableError("lookup down", provider=self.name)


async def _seed(repository, clock, provider_product_id: str, price: str = "10.00", stock: int = 5) -> Product:
    product = Product.from_supplier(
        tenant_id="T1",
        provider="alibaba",
        provider_product_id=provider_product_id,
        name=f"Product {provider_product_id}",
        category_slug="electronics",
        pricing=PricePolicy(supplier_price=Decimal(price)),
        sku_prefix="ALI",
        stock=stock,
        inventory_synced_at=clock.now()
    )
    return await repository.upsert_dropship_product(product)


def _usecase(repository, clock, rate_limiters, *providers) -> ReconcileInventoryUseCase:
    return ReconcileInventoryUseCase(
        ProviderRegistry(providers),
        repository,
        clock,
        rate_limiters,
        refresh_minutes=60,
        batch_size=200
    )


class TestReconcileInventory:
    """가격/재고 갱신 테스트"""

    @pytest.mark.asyncio
    async def test_stale_product_updated(self, repository, clock, rate_limiters):
        await _seed(repository, clock, "p1")
        provider = FakeProvider(products={"509": [make_product("p1", "12.00", stock=0)]})
        clock.advance(minutes=61)

        summary = await _usecase(repository, clock, rate_limiters, provider).execute("T1", "alibaba")

        assert summary.checked_count == 1
        assert summary.updated_count == 1
        assert provider.lookup_calls == ["p1"]
        assert provider.fetch_calls == []
        product = await repository.get_dropship_product("T1", "alibaba", "p1")
        assert product.supplier_price == Decimal("12.00")
        assert product.price == Decimal("15.60")
        assert product.inventory.quantity == 0
        assert not product.inventory.in_stock
        assert product.inventory_synced_at == clock.now()

    @pytest.mark.asyncio
    async def test_recently_synced_product_skipped_unless_full(self, repository, clock, rate_limiters):
        await _seed(repository, clock, "p1")
        provider = FakeProvider(products={"509": [make_product("p1", "12.00")]})
        usecase = _usecase(repository, clock, rate_limiters, provider)

        incremental = await usecase.execute("T1", "alibaba")
        full = await usecase.execute("T1", "alibaba", full=True)

        assert incremental.checked_count == 0
        assert full.checked_count == 1
        assert full.updated_count == 1

    @pytest.mark.asyncio
    async def test_missing_product_left_untouched(self, repository, clock, rate_limiters):
        await _seed(repository, clock, "p1", stock=5)
        provider = FakeProvider(products={})
        clock.advance(hours=2)

        summary = await _usecase(repository, clock, rate_limiters, provider).execute("T1", "alibaba")

        assert summary.skipped == ["p1"]
        assert summary.updated_count == 0
        product = await repository.get_dropship_product("T1", "alibaba", "p1")
        assert product.inventory.quantity == 5
        assert product.is_active

    @pytest.mark.asyncio
    async def test_lookup_failure_reported(self, repository, clock, rate_limiters):
        await _seed(repository, clock, "p1")
        clock.advance(hours=2)

        summary = await _usecase(
            repository, clock, rate_limiters, LookupFailingProvider()
        ).execute("T1", "alibaba")

        assert "p1" in summary.failed
        assert summary.get_success_rate() == 0.0

    @pytest.mark.asyncio
    async def test_sync_run_recorded(self, repository, clock, rate_limiters):
        provider = FakeProvider()

        await _usecase(repository, clock, rate_limiters, provider).execute("T1", "alibaba")

        sync_run = await repository.get_sync_run("T1", "alibaba")
        assert sync_run.last_inventory_sync_at == clock.now()

    @pytest.mark.asyncio
    async def test_other_tenant_products_untouched(self, repository, clock, rate_limiters):
        await _seed(repository, clock, "p1")
        provider = FakeProvider(products={"509": [make_product("p1", "50.00")]})

        summary = await _usecase(repository, clock, rate_limiters, provider).execute("T2", "alibaba", full=True)

        assert summary.checked_count == 0
        product = await repository.get_dropship_product("T1", "alibaba", "p1")
        assert product.price == Decimal("13.00")

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self, repository, clock, rate_limiters):
        with pytest.raises(ProviderUnconfiguredError):
            await _usecase(repository, clock, rate_limiters).execute("T1", "alibaba")


class TestPushInventoryUpdates:
    """자체 재고 반영 테스트"""

    @pytest.mark.asyncio
    async def test_forwarded_to_provider(self, repository, clock, rate_limiters):
        provider = FakeProvider()
        usecase = _usecase(repository, clock, rate_limiters, provider)

        outcome = await usecase.push_inventory_updates("T1", "alibaba", [InventoryUpdate("p1", 3)])

        assert outcome == InventoryUpdateOutcome.OK
        assert provider.inventory_updates[0].stock == 3

    @pytest.mark.asyncio
    async def test_nothing_to_push(self, repository, clock, rate_limiters):
        provider = FakeProvider()
        usecase = _usecase(repository, clock, rate_limiters, provider)

        outcome = await usecase.push_inventory_updates("T1", "alibaba", [])

        assert outcome == InventoryUpdateOutcome.OK
        assert provider.inventory_updates == []
