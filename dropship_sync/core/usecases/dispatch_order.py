"""공급사 주문 전달 유즈케이스"""
from dataclasses import dataclass, field
from typing import Dict, List
import asyncio

from dropship_sync.core.entities.order import (
    DropshipOrderData,
    DropshipOrderItem,
    ExternalOrderMapping,
    ExternalOrderStatus,
    InternalOrder,
)
from dropship_sync.core.entities.product import Product
from dropship_sync.core.exceptions import ProviderError, ProviderRateLimitedError
from dropship_sync.core.ports.clock_port import ClockPort
from dropship_sync.core.ports.repo_port import CatalogRepositoryPort
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.tenant import ensure_tenant
from dropship_sync.shared.logging import get_logger
from dropship_sync.shared.rate_limiter import RateLimiterRegistry
from dropship_sync.shared.result import Result, Success, Failure

logger = get_logger(__name__)


@dataclass
class DispatchResult:
    """주문 전달 결과 (공급사 그룹별 매핑)"""
    order_id: str
    mappings: List[ExternalOrderMapping] = field(default_factory=list)

    @property
    def is_partially_submitted(self) -> bool:
        """일부 그룹만 등록된 경우"""
        statuses = {mapping.status for mapping in self.mappings}
        return ExternalOrderStatus.FAILED in statuses and len(statuses) > 1

    def to_dict(self):
        return {
            'order_id': self.order_id,
            'is_partially_submitted': self.is_partially_submitted,
            'mappings': [mapping.to_dict() for mapping in self.mappings],
        }


class DispatchOrderUseCase:
    """내부 주문을 공급사별로 나눠 전달

    그룹마다 독립적으로 처리해서 한 공급사 실패가 다른 공급사 주문을 막지 않는다.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        repository: CatalogRepositoryPort,
        clock: ClockPort,
        rate_limiters: RateLimiterRegistry
    ):
        self.registry = registry
        self.repository = repository
        self.clock = clock
        self.rate_limiters = rate_limiters

    async def execute(self, order: InternalOrder) -> DispatchResult:
        """주문 전달 실행"""
        ensure_tenant(order.tenant_id)

        groups = await self._group_by_provider(order)
        if not groups:
            logger.info(f"드랍십 상품이 없는 주문: {order.id}")
            return DispatchResult(order_id=order.id)

        providers = sorted(groups)
        results = await asyncio.gather(
            *(self._dispatch_group(order, name, groups[name]) for name in providers),
            return_exceptions=True
        )

        mappings = []
        for name, result in zip(providers, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(f"주문 전달 중 예기치 않은 오류 {order.id}/{name}: {result}", exc_info=result)
                existing = await self.repository.get_order_mapping(order.tenant_id, order.id, name)
                if existing is None:
                    raise result
                if existing.status == ExternalOrderStatus.PENDING:
                    existing = await self._fail(existing, f"{type(result).__name__}: {result}", "unexpected_error")
                mappings.append(existing)
            else:
                mappings.append(result)

        return DispatchResult(order_id=order.id, mappings=mappings)

    async def _group_by_provider(self, order: InternalOrder) -> Dict[str, List[DropshipOrderItem]]:
        """주문 상품을 공급사별로 묶음 (드랍십 상품만)"""
        product_ids = [item.product_id for item in order.line_items]
        products: Dict[str, Product] = {
            product.id: product
            for product in await self.repository.get_products_by_ids(order.tenant_id, product_ids)
        }

        groups: Dict[str, List[DropshipOrderItem]] = {}
        for line in order.line_items:
            product = products.get(line.product_id)
            if product is None or not product.is_dropship:
                continue
            groups.setdefault(product.dropship_provider, []).append(DropshipOrderItem(
                provider_product_id=product.dropship_product_id,
                quantity=line.quantity,
                price=line.price,
                variant_id=line.variant_id,
                internal_product_id=product.id
            ))
        return groups

    async def _dispatch_group(
        self,
        order: InternalOrder,
        provider_name: str,
        items: List[DropshipOrderItem]
    ) -> ExternalOrderMapping:
        """공급사 그룹 하나 전달"""
        existing = await self.repository.get_order_mapping(order.tenant_id, order.id, provider_name)
        if existing is not None:
            logger.info(f"이미 전달된 주문 그룹, 건너뜀: {order.id}/{provider_name} ({existing.status.value})")
            return existing

        mapping = ExternalOrderMapping(
            tenant_id=order.tenant_id,
            internal_order_id=order.id,
            provider=provider_name
        )
        if not await self.repository.create_order_mapping(mapping):
            # 동시 요청이 먼저 매핑을 만든 경우
            return await self.repository.get_order_mapping(order.tenant_id, order.id, provider_name)

        order_data = DropshipOrderData(
            internal_order_id=order.id,
            customer=order.customer,
            shipping_address=order.shipping_address,
            items=items,
            notes=order.notes
        )

        try:
            provider = self.registry.get(provider_name)
            await self.rate_limiters.acquire(order.tenant_id, provider_name)
            quote = await provider.calculate_shipping(order_data)
            await self.rate_limiters.acquire(order.tenant_id, provider_name)
            created = await provider.create_order(order_data)
        except ProviderError as e:
            logger.warning(f"공급사 주문 등록 실패 {order.id}/{provider_name}: {e}")
            return await self._fail(mapping, str(e), e.code)
        except asyncio.CancelledError:
            logger.warning(f"공급사 주문 등록 취소됨 {order.id}/{provider_name}")
            await asyncio.shield(self._fail(mapping, "주문 전달이 취소되었습니다", "cancelled"))
            raise
        except Exception as e:
            logger.error(f"공급사 주문 등록 중 예기치 않은 오류 {order.id}/{provider_name}: {e}", exc_info=True)
            return await self._fail(mapping, f"{type(e).__name__}: {e}", "unexpected_error")

        mapping.mark_submitted(
            created.external_order_id,
            created.provider_payload,
            shipping_cost=quote.cost,
            estimated_delivery_date=quote.estimated_delivery_date
        )
        await self.repository.save_order_mapping(mapping)
        logger.info(f"공급사 주문 등록 완료: {order.id}/{provider_name} -> {created.external_order_id}")
        return mapping

    async def _fail(self, mapping: ExternalOrderMapping, error_message: str, code: str) -> ExternalOrderMapping:
        """매핑을 실패 상태로 저장"""
        mapping.mark_failed(error_message, {"code": code})
        await self.repository.save_order_mapping(mapping)
        return mapping

    async def update_external_order_status(
        self,
        tenant_id: str,
        provider_name: str,
        external_order_id: str,
        new_status: str
    ) -> "Result[ExternalOrderMapping]":
        """공급사 웹훅 상태 반영"""
        ensure_tenant(tenant_id)

        try:
            status = ExternalOrderStatus(new_status)
        except ValueError:
            return Failure(f"알 수 없는 주문 상태: {new_status}", code="invalid_status")

        mapping = await self.repository.find_order_mapping_by_external_id(
            tenant_id, provider_name, external_order_id
        )
        if mapping is None:
            return Failure(
                f"주문 매핑을 찾을 수 없습니다: {provider_name}/{external_order_id}",
                code="not_found"
            )

        try:
            mapping.apply_webhook_status(status)
        except ValueError as e:
            return Failure(str(e), code="invalid_transition", value=mapping)

        await self.repository.save_order_mapping(mapping)
        logger.info(f"주문 상태 갱신: {provider_name}/{external_order_id} -> {status.value}")
        return Success(mapping)

    async def refresh_order_status(
        self,
        tenant_id: str,
        internal_order_id: str,
        provider_name: str
    ) -> "Result[ExternalOrderMapping]":
        """공급사 주문 상태를 조회해서 반영 (웹훅과 같은 전이 규칙)

        공급사 조회 실패는 ProviderError 로 전파된다.
        """
        found = await self._submitted_mapping(tenant_id, internal_order_id, provider_name)
        if found.is_failure():
            return found
        mapping = found.get_value()

        provider = self.registry.get(provider_name)
        await self.rate_limiters.acquire(tenant_id, provider_name)
        try:
            remote = await provider.get_order_status(mapping.external_order_id)
        except ProviderRateLimitedError as e:
            self.rate_limiters.penalize(tenant_id, provider_name, e.retry_after)
            raise

        try:
            mapping.apply_webhook_status(remote.status)
        except ValueError as e:
            return Failure(str(e), code="invalid_transition", value=mapping)

        mapping.record_tracking(remote.tracking_number, remote.tracking_url)
        await self.repository.save_order_mapping(mapping)
        logger.info(
            f"주문 상태 조회 반영: {internal_order_id}/{provider_name} -> {mapping.status.value}"
            f" ({remote.provider_status})"
        )
        return Success(mapping)

    async def cancel_order(
        self,
        tenant_id: str,
        internal_order_id: str,
        provider_name: str
    ) -> "Result[ExternalOrderMapping]":
        """공급사 주문 취소 요청"""
        found = await self._submitted_mapping(tenant_id, internal_order_id, provider_name)
        if found.is_failure():
            return found
        mapping = found.get_value()

        if mapping.status == ExternalOrderStatus.CANCELLED:
            return Success(mapping)
        if not mapping.can_transition_to(ExternalOrderStatus.CANCELLED):
            return Failure(
                f"취소할 수 없는 주문 상태입니다: {mapping.status.value}",
                code="invalid_transition",
                value=mapping
            )

        provider = self.registry.get(provider_name)
        await self.rate_limiters.acquire(tenant_id, provider_name)
        try:
            accepted = await provider.cancel_order(mapping.external_order_id)
        except ProviderRateLimitedError as e:
            self.rate_limiters.penalize(tenant_id, provider_name, e.retry_after)
            raise

        if not accepted:
            logger.warning(f"공급사가 주문 취소를 거절함: {internal_order_id}/{provider_name}")
            return Failure("공급사가 주문 취소를 거절했습니다", code="cancel_rejected", value=mapping)

        mapping.apply_webhook_status(ExternalOrderStatus.CANCELLED)
        await self.repository.save_order_mapping(mapping)
        logger.info(f"공급사 주문 취소 완료: {internal_order_id}/{provider_name}")
        return Success(mapping)

    async def _submitted_mapping(
        self,
        tenant_id: str,
        internal_order_id: str,
        provider_name: str
    ) -> "Result[ExternalOrderMapping]":
        """공급사 주문 ID 가 있는 매핑 조회"""
        ensure_tenant(tenant_id)
        mapping = await self.repository.get_order_mapping(tenant_id, internal_order_id, provider_name)
        if mapping is None:
            return Failure(
                f"주문 매핑을 찾을 수 없습니다: {internal_order_id}/{provider_name}",
                code="not_found"
            )
        if not mapping.external_order_id:
            return Failure(
                f"공급사에 등록되지 않은 주문입니다: {mapping.status.value}",
                code="not_submitted",
                value=mapping
            )
        return Success(mapping)
