"""카탈로그 리포지토리 통합 테스트"""
from datetime import timedelta
from decimal import Decimal

import pytest

from dropship_sync.core.entities.category import Category
from dropship_sync.core.entities.order import ExternalOrderMapping
from dropship_sync.core.entities.product import PricePolicy, Product


def _product(tenant_id: str, provider_product_id: str, category_slug: str = "electronics", **extra) -> Product:
    return Product.from_supplier(
        tenant_id=tenant_id,
        provider="alibaba",
        provider_product_id=provider_product_id,
        name=f"Product {provider_product_id}",
        category_slug=category_slug,
        pricing=PricePolicy(supplier_price=Decimal("10.00")),
        sku_prefix="ALI",
        stock=1,
        **extra
    )


class TestCategoryRepository:
    """카테고리 저장 테스트"""

    @pytest.mark.asyncio
    async def test_upsert_keeps_id_and_merges_mappings(self, repository):
        first = Category(tenant_id="T1", name="Electronics", slug="electronics")
        first.map_external("alibaba", "509")
        saved = await repository.upsert_category(first)

        second = Category(tenant_id="T1", name="Electronics & Gadgets", slug="electronics")
        second.map_external("cj", "E1")
        updated = await repository.upsert_category(second)

        assert updated.id == saved.id
        stored = await repository.get_category("T1", "electronics")
        assert stored.name == "Electronics & Gadgets"
        assert stored.external_mappings == {"alibaba": "509", "cj": "E1"}

    @pytest.mark.asyncio
    async def test_refresh_product_count(self, repository):
        await repository.upsert_category(Category(tenant_id="T1", name="Electronics", slug="electronics"))
        await repository.upsert_dropship_product(_product("T1", "p1"))
        await repository.upsert_dropship_product(_product("T1", "p2"))
        await repository.upsert_dropship_product(_product("T1", "p3", category_slug="home"))
        await repository.upsert_dropship_product(_product("T2", "p4"))

        count = await repository.refresh_product_count("T1", "electronics")

        assert count == 2
        assert (await repository.get_category("T1", "electronics")).product_count == 2

    @pytest.mark.asyncio
    async def test_list_categories_filters(self, repository):
        root = Category(tenant_id="T1", name="Electronics", slug="electronics")
        await repository.upsert_category(root)
        child = Category(tenant_id="T1", name="Phones", slug="phones")
        child.attach_to(root)
        await repository.upsert_category(child)

        roots = await repository.list_categories("T1", max_level=0)
        chosen = await repository.list_categories("T1", slugs=["phones"])

        assert [c.slug for c in roots] == ["electronics"]
        assert [c.path for c in chosen] == ["electronics/phones"]


class TestProductRepository:
    """상품 저장 테스트"""

    @pytest.mark.asyncio
    async def test_upsert_by_idempotency_key(self, repository):
        first = await repository.upsert_dropship_product(_product("T1", "p1"))
        second = await repository.upsert_dropship_product(_product("T1", "p1"))

        assert second.id == first.id
        assert len(await repository.list_dropship_products("T1", "alibaba")) == 1

    @pytest.mark.asyncio
    async def test_stale_products_listed_oldest_first(self, repository, clock):
        now = clock.now()
        await repository.upsert_dropship_product(_product("T1", "fresh", inventory_synced_at=now))
        await repository.upsert_dropship_product(_product("T1", "old", inventory_synced_at=now - timedelta(hours=5)))
        await repository.upsert_dropship_product(_product("T1", "older", inventory_synced_at=now - timedelta(hours=9)))
        await repository.upsert_dropship_product(_product("T1", "never"))

        stale = await repository.list_dropship_products("T1", "alibaba", synced_before=now - timedelta(hours=1))

        assert [p.dropship_product_id for p in stale] == ["never", "older", "old"]

    @pytest.mark.asyncio
    async def test_products_by_ids_scoped_to_tenant(self, repository):
        product = await repository.upsert_dropship_product(_product("T1", "p1"))

        assert await repository.get_products_by_ids("T2", [product.id]) == []
        assert len(await repository.get_products_by_ids("T1", [product.id])) == 1


class TestOrderMappingRepository:
    """주문 매핑 저장 테스트"""

    @pytest.mark.asyncio
    async def test_one_mapping_per_group(self, repository):
        mapping = ExternalOrderMapping(tenant_id="T1", internal_order_id="o-1", provider="alibaba")

        assert await repository.create_order_mapping(mapping)
        assert not await repository.create_order_mapping(mapping)

    @pytest.mark.asyncio
    async def test_save_and_find_by_external_id(self, repository):
        mapping = ExternalOrderMapping(tenant_id="T1", internal_order_id="o-1", provider="alibaba")
        await repository.create_order_mapping(mapping)
        mapping.mark_submitted("ext-1", {"orderId": "ext-1"}, Decimal("3.50"))
        await repository.save_order_mapping(mapping)

        found = await repository.find_order_mapping_by_external_id("T1", "alibaba", "ext-1")

        assert found.internal_order_id == "o-1"
        assert found.shipping_cost == Decimal("3.50")
        assert found.provider_payload == {"orderId": "ext-1"}
        assert await repository.find_order_mapping_by_external_id("T2", "alibaba", "ext-1") is None
