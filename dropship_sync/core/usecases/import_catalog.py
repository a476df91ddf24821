"""카탈로그 수집 유즈케이스 (카테고리 + 상품)"""
from typing import Dict, List, Optional, Set, Tuple
from decimal import Decimal
import asyncio

from dropship_sync.core.entities.category import Category, CategorySource, build_default_categories
from dropship_sync.core.entities.product import Product, PricePolicy, DEFAULT_MARKUP_FACTOR
from dropship_sync.core.entities.sync_history import ImportSummary
from dropship_sync.core.exceptions import (
    IdempotencyConflictError,
    ProviderError,
    ProviderDataError,
    ProviderRateLimitedError,
)
from dropship_sync.core.ports.clock_port import ClockPort
from dropship_sync.core.ports.provider_port import (
    ProviderPort, ProviderCategory, ProviderProduct, ProductSearchParams
)
from dropship_sync.core.ports.repo_port import CatalogRepositoryPort
from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.tenant import ensure_tenant
from dropship_sync.shared.logging import get_logger, log_product_sync
from dropship_sync.shared.rate_limiter import RateLimiterRegistry

logger = get_logger(__name__)


class ImportCatalogUseCase:
    """카탈로그 수집 유즈케이스

    1. 공급사 카테고리 -> 테넌트 카테고리 트리 (실패/미설정 시 기본 카테고리 세트)
    2. 카테고리별 상품 페이지 수집 -> 마크업 적용 -> 멱등 저장
    3. 카테고리별 상품 수 재계산
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        repository: CatalogRepositoryPort,
        clock: ClockPort,
        rate_limiters: RateLimiterRegistry,
        markup_factor: Decimal = DEFAULT_MARKUP_FACTOR,
        max_concurrent: int = 3,
        page_size: int = 20,
        default_limit: int = 50,
        default_category_count: int = 5,
        low_stock_threshold: int = 10
    ):
        self.registry = registry
        self.repository = repository
        self.clock = clock
        self.rate_limiters = rate_limiters
        self.markup_factor = Decimal(str(markup_factor))
        self.max_concurrent = max_concurrent
        self.page_size = page_size
        self.default_limit = default_limit
        self.default_category_count = default_category_count
        self.low_stock_threshold = low_stock_threshold

    async def execute(
        self,
        tenant_id: str,
        provider_name: str,
        category_slugs: Optional[List[str]] = None,
        max_categories: Optional[int] = None,
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> ImportSummary:
        """카테고리 동기화 후 상품 수집"""
        ensure_tenant(tenant_id)
        summary = ImportSummary(tenant_id=tenant_id, provider=provider_name)

        categories, source = await self.sync_categories(tenant_id, provider_name)
        summary.category_source = source
        summary.categories_synced = len(categories)

        if not self.registry.is_configured(provider_name):
            logger.info(f"{provider_name} 공급사 미설정, 상품 수집 생략 (tenant={tenant_id})")
            return summary

        await self.import_products(
            tenant_id,
            provider_name,
            category_slugs=category_slugs,
            max_categories=max_categories,
            limit=limit,
            cancel_event=cancel_event,
            summary=summary
        )
        return summary

    async def sync_categories(self, tenant_id: str, provider_name: str) -> Tuple[List[Category], str]:
        """공급사 카테고리 동기화. (저장된 카테고리, 출처) 반환"""
        ensure_tenant(tenant_id)

        provider_categories: List[ProviderCategory] = []
        try:
            provider = self.registry.get(provider_name)
            await self.rate_limiters.acquire(tenant_id, provider_name)
            provider_categories = await provider.get_categories()
            if not provider_categories:
                logger.warning(f"{provider_name} 카테고리가 비어 있어 기본 카테고리를 사용합니다")
        except ProviderError as e:
            logger.warning(f"{provider_name} 카테고리 조회 실패, 기본 카테고리 사용: {e}")

        if provider_categories:
            saved = await self._save_provider_categories(tenant_id, provider_name, provider_categories)
            source = CategorySource.PROVIDER
        else:
            saved = [
                await self.repository.upsert_category(category)
                for category in build_default_categories(tenant_id)
            ]
            source = CategorySource.DEFAULT

        sync_run = await self.repository.get_sync_run(tenant_id, provider_name)
        sync_run.record_category_sync(self.clock.now(), source)
        await self.repository.save_sync_run(sync_run)

        logger.info(f"카테고리 {len(saved)}개 동기화 완료 (tenant={tenant_id}, source={source})")
        return saved, source

    async def import_products(
        self,
        tenant_id: str,
        provider_name: str,
        category_slugs: Optional[List[str]] = None,
        max_categories: Optional[int] = None,
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
        summary: Optional[ImportSummary] = None
    ) -> ImportSummary:
        """카테고리별 상품 수집 (한 카테고리 실패가 전체를 중단시키지 않음)"""
        ensure_tenant(tenant_id)
        summary = summary or ImportSummary(tenant_id=tenant_id, provider=provider_name)
        provider = self.registry.get(provider_name)
        limit = limit or self.default_limit

        if category_slugs:
            categories = await self.repository.list_categories(tenant_id, slugs=category_slugs)
            found = {category.slug for category in categories}
            for slug in category_slugs:
                if slug not in found:
                    summary.add_category_failure(slug, "카테고리를 찾을 수 없습니다")
        else:
            categories = await self.repository.list_categories(
                tenant_id,
                max_level=1,
                limit=max_categories or self.default_category_count
            )

        semaphore = asyncio.Semaphore(self.max_concurrent)
        moved_from: Set[str] = set()
        tasks = [
            self._import_category(tenant_id, provider, category, limit, summary, semaphore, cancel_event, moved_from)
            for category in categories
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for category, result in zip(categories, results):
            if isinstance(result, IdempotencyConflictError):
                raise result
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(f"카테고리 수집 중 예기치 않은 오류 {category.slug}: {result}", exc_info=result)
                summary.add_category_failure(category.slug, str(result))

        # 카테고리를 옮겨간 상품의 이전 카테고리까지 포함해서 재계산
        for slug in sorted(moved_from | {category.slug for category in categories}):
            await self.repository.refresh_product_count(tenant_id, slug)

        sync_run = await self.repository.get_sync_run(tenant_id, provider_name)
        sync_run.record_product_import(self.clock.now())
        await self.repository.save_sync_run(sync_run)

        logger.info(
            f"상품 수집 완료 (tenant={tenant_id}, provider={provider_name}): "
            f"{summary.imported_count}개, 실패 카테고리 {len(summary.failed_categories)}개"
        )
        return summary

    async def _import_category(
        self,
        tenant_id: str,
        provider: ProviderPort,
        category: Category,
        limit: int,
        summary: ImportSummary,
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
        moved_from: Set[str]
    ) -> None:
        """카테고리 하나의 상품 페이지 수집"""
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                summary.cancelled = True
                return

            logger.info(f"카테고리 상품 수집 시작: {category.name} ({tenant_id})")
            seen = 0
            page = 1
            try:
                while seen < limit:
                    if cancel_event is not None and cancel_event.is_set():
                        summary.cancelled = True
                        break

                    raw_products = await self._fetch_page(tenant_id, provider, category, page)
                    for raw in raw_products[:limit - seen]:
                        previous_slug = await self._import_one(tenant_id, provider, category, raw, summary)
                        if previous_slug and previous_slug != category.slug:
                            moved_from.add(previous_slug)

                    seen += len(raw_products)
                    if len(raw_products) < self.page_size:
                        break
                    page += 1
            except ProviderError as e:
                logger.warning(f"카테고리 상품 수집 실패 {category.slug} (page {page}): {e}")
                summary.add_category_failure(category.slug, str(e))
            finally:
                count = await self.repository.refresh_product_count(tenant_id, category.slug)
                logger.info(f"카테고리 {category.slug} 상품 수: {count}")

    async def _fetch_page(
        self,
        tenant_id: str,
        provider: ProviderPort,
        category: Category,
        page: int
    ) -> List[ProviderProduct]:
        """요청 한도 안에서 상품 한 페이지 조회"""
        await self.rate_limiters.acquire(tenant_id, provider.name)
        params = ProductSearchParams(
            category_id=category.external_id_for(provider.name),
            category_slug=category.slug,
            page=page,
            page_size=self.page_size
        )
        try:
            return await provider.fetch_products(params)
        except ProviderRateLimitedError as e:
            self.rate_limiters.penalize(tenant_id, provider.name, e.retry_after)
            raise

    async def _import_one(
        self,
        tenant_id: str,
        provider: ProviderPort,
        category: Category,
        raw: ProviderProduct,
        summary: ImportSummary
    ) -> Optional[str]:
        """상품 한 건 변환 + 저장 (형식 오류는 해당 상품만 건너뜀)

        이미 저장된 상품이면 저장 전 카테고리 슬러그를 반환한다.
        """
        try:
            product = self.build_product(tenant_id, provider, category, raw)
        except ProviderDataError as e:
            logger.warning(f"상품 데이터 오류, 건너뜀 {raw.id}: {e}")
            summary.add_product_failure(raw.id, str(e))
            return None

        previous = await self.repository.get_dropship_product(tenant_id, provider.name, product.dropship_product_id)
        await self.repository.upsert_dropship_product(product)
        summary.add_imported(category.slug, product.dropship_product_id)
        log_product_sync(logger, "import", product.sku, {"tenant_id": tenant_id, "price": str(product.price)})
        return previous.category_slug if previous else None

    def build_product(
        self,
        tenant_id: str,
        provider: ProviderPort,
        category: Category,
        raw: ProviderProduct
    ) -> Product:
        """공급사 상품 -> 테넌트 드랍십 상품"""
        if not raw.id or not raw.name:
            raise ProviderDataError(f"상품 ID/이름 누락: {raw.id!r}", provider=provider.name)
        if raw.price is None:
            raise ProviderDataError(f"가격 정보 없음: {raw.id}", provider=provider.name)

        try:
            pricing = PricePolicy(
                supplier_price=raw.price,
                markup_factor=self.markup_factor,
                compare_at_price=raw.compare_at_price
            )
        except (ValueError, ArithmeticError) as e:
            raise ProviderDataError(f"가격 정보 오류 {raw.id}: {e}", provider=provider.name)

        images = list(raw.images) or ([raw.image_url] if raw.image_url else [])
        return Product.from_supplier(
            tenant_id=tenant_id,
            provider=provider.name,
            provider_product_id=raw.id,
            name=raw.name,
            category_slug=category.slug,
            pricing=pricing,
            sku_prefix=provider.sku_prefix or provider.name.upper(),
            stock=raw.stock,
            low_stock_threshold=self.low_stock_threshold,
            description=raw.description,
            images=images,
            tags=[category.slug, provider.name, "dropship"],
            variants=list(raw.variants),
            supplier_info=dict(raw.supplier_info),
            inventory_synced_at=self.clock.now()
        )

    async def _save_provider_categories(
        self,
        tenant_id: str,
        provider_name: str,
        provider_categories: List[ProviderCategory]
    ) -> List[Category]:
        """공급사 카테고리 트리 저장 (부모 먼저)"""
        by_provider_id: Dict[str, Category] = {}
        used_slugs: Dict[str, str] = {}
        saved = []

        for pc in sorted(provider_categories, key=lambda c: (c.level, c.id)):
            parent = by_provider_id.get(pc.parent_id) if pc.parent_id else None
            if pc.parent_id and parent is None:
                logger.warning(f"부모 카테고리 없음, 최상위로 저장: {pc.name} (parent={pc.parent_id})")

            slug = pc.slug
            if used_slugs.get(slug, pc.id) != pc.id:
                # 같은 이름의 하위 카테고리가 다른 부모 아래 있는 경우
                slug = f"{parent.slug}-{pc.slug}" if parent else f"{pc.slug}-{pc.id}"
            used_slugs[slug] = pc.id

            category = Category(
                tenant_id=tenant_id,
                name=pc.name,
                slug=slug,
                description=f"{pc.name} products from {provider_name}",
                is_featured=parent is None,
                source=CategorySource.PROVIDER
            )
            category.attach_to(parent)
            category.map_external(provider_name, pc.id)

            stored = await self.repository.upsert_category(category)
            by_provider_id[pc.id] = stored
            saved.append(stored)

        return saved
