"""재고/가격 동기화 유즈케이스"""
from typing import List, Optional
from decimal import Decimal
import asyncio

from dropship_sync.core.entities.product import Product, PricePolicy, DEFAULT_MARKUP_FACTOR
from dropship_sync.core.entities.sync_history import ReconcileSummary
from dropship_sync.core.exceptions import ProviderError, ProviderRateLimitedError
from dropship_sync.core.ports.clock_port import ClockPort
from dropship_sync.core.ports.provider_port import (
    ProviderPort, ProviderProduct, InventoryUpdate, InventoryUpdateOutcome
)
from dropship_sync.core.ports.repo_port import CatalogRepositoryPort
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.tenant import ensure_tenant
from dropship_sync.shared.logging import get_logger, log_product_sync
from dropship_sync.shared.rate_limiter import RateLimiterRegistry

logger = get_logger(__name__)


class ReconcileInventoryUseCase:
    """공급사 최신 가격/재고를 드랍십 상품에 반영

    조회 실패나 공급사에서 찾을 수 없는 상품은 건너뛰고 보고만 한다 (삭제/재고 0 처리 없음).
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        repository: CatalogRepositoryPort,
        clock: ClockPort,
        rate_limiters: RateLimiterRegistry,
        markup_factor: Decimal = DEFAULT_MARKUP_FACTOR,
        max_concurrent: int = 3,
        refresh_minutes: int = 60,
        batch_size: int = 200
    ):
        self.registry = registry
        self.repository = repository
        self.clock = clock
        self.rate_limiters = rate_limiters
        self.markup_factor = Decimal(str(markup_factor))
        self.max_concurrent = max_concurrent
        self.refresh_minutes = refresh_minutes
        self.batch_size = batch_size

    async def execute(
        self,
        tenant_id: str,
        provider_name: str,
        full: bool = False,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ReconcileSummary:
        """재고 동기화 실행 (full=False 면 오래된 상품만)"""
        ensure_tenant(tenant_id)
        provider = self.registry.get(provider_name)
        summary = ReconcileSummary(tenant_id=tenant_id, provider=provider_name)

        synced_before = None if full else self.clock.minutes_ago(self.refresh_minutes)
        products = await self.repository.list_dropship_products(
            tenant_id,
            provider_name,
            synced_before=synced_before,
            limit=self.batch_size
        )
        logger.info(f"재고 동기화 대상 {len(products)}개 (tenant={tenant_id}, provider={provider_name})")

        semaphore = asyncio.Semaphore(self.max_concurrent)
        tasks = [
            self._reconcile_one(tenant_id, provider, product, summary, semaphore, cancel_event)
            for product in products
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for product, result in zip(products, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(f"재고 동기화 중 예기치 않은 오류 {product.sku}: {result}", exc_info=result)
                summary.failed[product.dropship_product_id] = str(result)

        sync_run = await self.repository.get_sync_run(tenant_id, provider_name)
        sync_run.record_inventory_sync(self.clock.now())
        await self.repository.save_sync_run(sync_run)

        logger.info(
            f"재고 동기화 완료: {summary.updated_count}/{summary.checked_count} 갱신, "
            f"건너뜀 {len(summary.skipped)}개, 실패 {len(summary.failed)}개"
        )
        return summary

    async def _reconcile_one(
        self,
        tenant_id: str,
        provider: ProviderPort,
        product: Product,
        summary: ReconcileSummary,
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event]
    ) -> None:
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                return

            summary.checked_count += 1
            provider_product_id = product.dropship_product_id
            try:
                latest = await self._lookup(tenant_id, provider, provider_product_id)
            except ProviderError as e:
                logger.warning(f"공급사 상품 조회 실패 {provider_product_id}: {e}")
                summary.failed[provider_product_id] = str(e)
                return

            if latest is None:
                logger.warning(f"공급사에서 상품을 찾을 수 없음, 건너뜀: {provider_product_id}")
                summary.skipped.append(provider_product_id)
                return

            if latest.price is None:
                summary.failed[provider_product_id] = "가격 정보 없음"
                return

            try:
                pricing = PricePolicy(
                    supplier_price=latest.price,
                    markup_factor=product.markup_factor or self.markup_factor,
                    compare_at_price=latest.compare_at_price
                )
            except ValueError as e:
                summary.failed[provider_product_id] = str(e)
                return

            product.apply_supplier_refresh(pricing, latest.stock)
            await self.repository.update_product_inventory(product, self.clock.now())
            summary.updated_count += 1
            log_product_sync(logger, "reconcile", product.sku, {
                "price": str(product.price),
                "quantity": product.inventory.quantity
            })

    async def _lookup(
        self,
        tenant_id: str,
        provider: ProviderPort,
        provider_product_id: str
    ) -> Optional[ProviderProduct]:
        """공급사 상품 단건 조회"""
        await self.rate_limiters.acquire(tenant_id, provider.name)
        try:
            return await provider.get_product(provider_product_id)
        except ProviderRateLimitedError as e:
            self.rate_limiters.penalize(tenant_id, provider.name, e.retry_after)
            raise

    async def push_inventory_updates(
        self,
        tenant_id: str,
        provider_name: str,
        updates: List[InventoryUpdate]
    ) -> InventoryUpdateOutcome:
        """자체 재고 변경을 공급사로 전달 (읽기 전용 공급사는 UNSUPPORTED)"""
        ensure_tenant(tenant_id)
        provider = self.registry.get(provider_name)
        if not updates:
            return InventoryUpdateOutcome.OK

        await self.rate_limiters.acquire(tenant_id, provider_name)
        outcome = await provider.update_inventory(updates)
        if outcome == InventoryUpdateOutcome.UNSUPPORTED:
            logger.info(f"{provider_name} 공급사는 재고 반영을 지원하지 않습니다 ({len(updates)}건)")
        return outcome
