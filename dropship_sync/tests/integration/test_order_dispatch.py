"""주문 전달 / 웹훅 통합 테스트"""
from decimal import Decimal

import pytest

from dropship_sync.core.entities.order import ExternalOrderStatus
from dropship_sync.core.entities.product import PricePolicy, Product
from dropship_sync.core.exceptions import InvalidTenantError
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.usecases.dispatch_order import DispatchOrderUseCase
from dropship_sync.tests.fakes import FakeProvider, make_order


class BrokenOrderProvider(FakeProvider):
    """주문 응답 처리 중 예상 밖 예외가 나는 공급사"""

    async def create_order(self, order):
        raise KeyError("orderId")


async def _seed(repository, tenant_id: str, provider: str, provider_product_id: str) -> Product:
    product = Product.from_supplier(
        tenant_id=tenant_id,
        provider=provider,
        provider_product_id=provider_product_id,
        name=f"Product {provider_product_id}",
        category_slug="electronics",
        pricing=PricePolicy(supplier_price=Decimal("10.00")),
        sku_prefix=provider.upper(),
        stock=10
    )
    return await repository.upsert_dropship_product(product)


def _usecase(repository, clock, rate_limiters, *providers) -> DispatchOrderUseCase:
    return DispatchOrderUseCase(ProviderRegistry(providers), repository, clock, rate_limiters)


class TestDispatchOrder:
    """공급사별 주문 분할 테스트"""

    @pytest.mark.asyncio
    async def test_split_by_provider(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        cj = FakeProvider(name="cj", sku_prefix="CJ")
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        p2 = await _seed(repository, "T1", "cj", "p2")
        usecase = _usecase(repository, clock, rate_limiters, alibaba, cj)

        result = await usecase.execute(make_order("o-1", "T1", [p1.id, p2.id, "unknown"]))

        assert [m.provider for m in result.mappings] == ["alibaba", "cj"]
        assert all(m.status == ExternalOrderStatus.SUBMITTED for m in result.mappings)
        assert not result.is_partially_submitted
        assert [item.provider_product_id for item in alibaba.orders[0].items] == ["p1"]
        assert [item.provider_product_id for item in cj.orders[0].items] == ["p2"]

        stored = await repository.list_order_mappings("T1", "o-1")
        assert {m.external_order_id for m in stored} == {"alibaba-1", "cj-1"}
        assert stored[0].shipping_cost == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_one_provider_failure_is_isolated(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        cj = FakeProvider(name="cj", sku_prefix="CJ", order_error="out of stock")
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        p2 = await _seed(repository, "T1", "cj", "p2")
        usecase = _usecase(repository, clock, rate_limiters, alibaba, cj)

        result = await usecase.execute(make_order("o-1", "T1", [p1.id, p2.id]))

        statuses = {m.provider: m.status for m in result.mappings}
        assert statuses == {"alibaba": ExternalOrderStatus.SUBMITTED, "cj": ExternalOrderStatus.FAILED}
        assert result.is_partially_submitted
        failed = await repository.get_order_mapping("T1", "o-1", "cj")
        assert "out of stock" in failed.error_message

    @pytest.mark.asyncio
    async def test_unconfigured_provider_group_fails_alone(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        p2 = await _seed(repository, "T1", "cj", "p2")
        usecase = _usecase(repository, clock, rate_limiters, alibaba)

        result = await usecase.execute(make_order("o-1", "T1", [p1.id, p2.id]))

        statuses = {m.provider: m.status for m in result.mappings}
        assert statuses == {"alibaba": ExternalOrderStatus.SUBMITTED, "cj": ExternalOrderStatus.FAILED}

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_marks_group_failed(self, repository, clock, rate_limiters):
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, BrokenOrderProvider())
        order = make_order("o-1", "T1", [p1.id])

        first = await usecase.execute(order)
        second = await usecase.execute(order)

        assert [m.status for m in first.mappings] == [ExternalOrderStatus.FAILED]
        assert [m.status for m in second.mappings] == [ExternalOrderStatus.FAILED]
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.FAILED
        assert "KeyError" in stored.error_message
        assert stored.provider_payload == {"code": "unexpected_error"}

    @pytest.mark.asyncio
    async def test_save_failure_after_submit_marks_group_failed(
        self, repository, clock, rate_limiters, monkeypatch
    ):
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, FakeProvider())
        save = repository.save_order_mapping

        async def flaky_save(mapping):
            if mapping.status == ExternalOrderStatus.SUBMITTED:
                raise RuntimeError("db connection lost")
            await save(mapping)

        monkeypatch.setattr(repository, "save_order_mapping", flaky_save)

        result = await usecase.execute(make_order("o-1", "T1", [p1.id]))

        assert [m.status for m in result.mappings] == [ExternalOrderStatus.FAILED]
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.FAILED
        assert "db connection lost" in stored.error_message

    @pytest.mark.asyncio
    async def test_redispatch_does_not_duplicate(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, alibaba)
        order = make_order("o-1", "T1", [p1.id])

        await usecase.execute(order)
        again = await usecase.execute(order)

        assert len(alibaba.orders) == 1
        assert again.mappings[0].external_order_id == "alibaba-1"

    @pytest.mark.asyncio
    async def test_order_without_dropship_items(self, repository, clock, rate_limiters):
        usecase = _usecase(repository, clock, rate_limiters, FakeProvider())

        result = await usecase.execute(make_order("o-1", "T1", ["not-a-product"]))

        assert result.mappings == []

    @pytest.mark.asyncio
    async def test_products_of_other_tenant_ignored(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        p1 = await _seed(repository, "T2", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, alibaba)

        result = await usecase.execute(make_order("o-1", "T1", [p1.id]))

        assert result.mappings == []
        assert alibaba.orders == []

    @pytest.mark.asyncio
    async def test_invalid_tenant(self, repository, clock, rate_limiters):
        usecase = _usecase(repository, clock, rate_limiters, FakeProvider())

        with pytest.raises(InvalidTenantError):
            await usecase.execute(make_order("o-1", "", []))


class TestOrderStatusWebhook:
    """웹훅 상태 반영 테스트"""

    async def _submitted(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, alibaba)
        await usecase.execute(make_order("o-1", "T1", [p1.id]))
        return usecase

    @pytest.mark.asyncio
    async def test_shipped_then_delivered(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters)

        shipped = await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "shipped")
        delivered = await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "delivered")

        assert shipped.is_success()
        assert delivered.is_success()
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_illegal_transition(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters)
        await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "delivered")

        result = await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "processing")

        assert result.is_failure()
        assert result.code == "invalid_transition"
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_unknown_mapping(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters)

        result = await usecase.update_external_order_status("T1", "alibaba", "nope", "shipped")

        assert result.is_failure()
        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_update(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters)

        result = await usecase.update_external_order_status("T2", "alibaba", "alibaba-1", "shipped")

        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_unknown_status(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters)

        result = await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "teleported")

        assert result.code == "invalid_status"


class TestOrderStatusRefresh:
    """공급사 주문 상태 조회 반영 테스트"""

    async def _submitted(self, repository, clock, rate_limiters, provider):
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, provider)
        await usecase.execute(make_order("o-1", "T1", [p1.id]))
        return usecase

    @pytest.mark.asyncio
    async def test_shipped_with_tracking(self, repository, clock, rate_limiters):
        alibaba = FakeProvider(order_statuses={"alibaba-1": ExternalOrderStatus.SHIPPED})
        alibaba.tracking_numbers["alibaba-1"] = "SF123456"
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)

        result = await usecase.refresh_order_status("T1", "o-1", "alibaba")

        assert result.is_success()
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.SHIPPED
        assert stored.provider_payload["tracking_number"] == "SF123456"
        assert stored.provider_payload["items"] == 1

    @pytest.mark.asyncio
    async def test_unchanged_status_is_success(self, repository, clock, rate_limiters):
        usecase = await self._submitted(repository, clock, rate_limiters, FakeProvider())

        result = await usecase.refresh_order_status("T1", "o-1", "alibaba")

        assert result.is_success()
        assert result.get_value().status == ExternalOrderStatus.SUBMITTED

    @pytest.mark.asyncio
    async def test_backward_transition_rejected(self, repository, clock, rate_limiters):
        alibaba = FakeProvider(order_statuses={"alibaba-1": ExternalOrderStatus.PROCESSING})
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)
        await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "delivered")

        result = await usecase.refresh_order_status("T1", "o-1", "alibaba")

        assert result.code == "invalid_transition"
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_failed_group_is_not_submitted(self, repository, clock, rate_limiters):
        alibaba = FakeProvider(order_error="out of stock")
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)

        result = await usecase.refresh_order_status("T1", "o-1", "alibaba")

        assert result.code == "not_submitted"

    @pytest.mark.asyncio
    async def test_unknown_order(self, repository, clock, rate_limiters):
        usecase = _usecase(repository, clock, rate_limiters, FakeProvider())

        result = await usecase.refresh_order_status("T1", "nope", "alibaba")

        assert result.code == "not_found"


class TestCancelOrder:
    """공급사 주문 취소 테스트"""

    async def _submitted(self, repository, clock, rate_limiters, provider):
        p1 = await _seed(repository, "T1", "alibaba", "p1")
        usecase = _usecase(repository, clock, rate_limiters, provider)
        await usecase.execute(make_order("o-1", "T1", [p1.id]))
        return usecase

    @pytest.mark.asyncio
    async def test_cancel_submitted_order(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)

        result = await usecase.cancel_order("T1", "o-1", "alibaba")

        assert result.is_success()
        assert alibaba.cancelled == ["alibaba-1"]
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)

        await usecase.cancel_order("T1", "o-1", "alibaba")
        again = await usecase.cancel_order("T1", "o-1", "alibaba")

        assert again.is_success()
        assert alibaba.cancelled == ["alibaba-1"]

    @pytest.mark.asyncio
    async def test_shipped_order_cannot_be_cancelled(self, repository, clock, rate_limiters):
        alibaba = FakeProvider()
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)
        await usecase.update_external_order_status("T1", "alibaba", "alibaba-1", "shipped")

        result = await usecase.cancel_order("T1", "o-1", "alibaba")

        assert result.code == "invalid_transition"
        assert alibaba.cancelled == []

    @pytest.mark.asyncio
    async def test_provider_rejects_cancel(self, repository, clock, rate_limiters):
        alibaba = FakeProvider(accept_cancel=False)
        usecase = await self._submitted(repository, clock, rate_limiters, alibaba)

        result = await usecase.cancel_order("T1", "o-1", "alibaba")

        assert result.code == "cancel_rejected"
        stored = await repository.get_order_mapping("T1", "o-1", "alibaba")
        assert stored.status == ExternalOrderStatus.SUBMITTED
