"""리포지토리 구현체"""
from typing import List, Optional
from datetime import datetime

from sqlalchemy import select, update, func, and_, or_
from sqlalchemy.exc import IntegrityError, MultipleResultsFound
from sqlalchemy.ext.asyncio import async_sessionmaker

from dropship_sync.core.entities.category import Category
from dropship_sync.core.entities.product import Product, Inventory
from dropship_sync.core.entities.order import ExternalOrderMapping, ExternalOrderStatus
from dropship_sync.core.entities.sync_history import SyncRun
from dropship_sync.core.exceptions import IdempotencyConflictError
from dropship_sync.core.ports.repo_port import CatalogRepositoryPort
from dropship_sync.adapters.persistence.models import (
    CategoryModel, ProductModel, ExternalOrderMappingModel, SyncRunModel
)
from dropship_sync.shared.logging import get_logger

logger = get_logger(__name__)

# 재수집 시 갱신하는 상품 필드 (식별 정보 / slug / created_at 은 유지)
_MUTABLE_PRODUCT_FIELDS = (
    "name", "description", "price", "list_price", "supplier_price", "markup_factor",
    "category_slug", "sku", "images", "quantity", "low_stock_threshold", "in_stock",
    "is_active", "tags", "variants", "supplier_info", "inventory_synced_at",
)


class CatalogRepository(CatalogRepositoryPort):
    """카탈로그 리포지토리 구현체

    연산마다 세션을 새로 열어서 동시 실행되는 수집 작업끼리 세션을 공유하지 않는다.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    # Category
    async def upsert_category(self, category: Category) -> Category:
        """(tenant_id, slug) 기준 카테고리 저장"""
        async with self.session_factory() as session:
            existing = await self._find_category(session, category.tenant_id, category.slug)
            if existing:
                # 기존 ID 유지, product_count 는 refresh_product_count 에서만 갱신
                category.id = existing.id
                category.product_count = existing.product_count
                category.created_at = existing.created_at or category.created_at
                merged = dict(existing.external_mappings or {})
                merged.update(category.external_mappings)
                category.external_mappings = merged
                self._apply_category(existing, category)
            else:
                model = CategoryModel(id=category.id, tenant_id=category.tenant_id, slug=category.slug)
                self._apply_category(model, category)
                session.add(model)

            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise IdempotencyConflictError(
                    f"카테고리 슬러그 충돌: {category.tenant_id}/{category.slug}",
                    details={"tenant_id": category.tenant_id, "slug": category.slug}
                )

        logger.debug(f"카테고리 저장 완료: {category.tenant_id}/{category.path}")
        return category

    async def get_category(self, tenant_id: str, slug: str) -> Optional[Category]:
        """슬러그로 카테고리 조회"""
        async with self.session_factory() as session:
            model = await self._find_category(session, tenant_id, slug)
            return self._to_category(model) if model else None

    async def list_categories(
        self,
        tenant_id: str,
        slugs: Optional[List[str]] = None,
        max_level: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Category]:
        """카테고리 목록 조회"""
        query = select(CategoryModel).where(CategoryModel.tenant_id == tenant_id)
        if slugs is not None:
            query = query.where(CategoryModel.slug.in_(slugs))
        if max_level is not None:
            query = query.where(CategoryModel.level <= max_level)
        query = query.order_by(CategoryModel.level, CategoryModel.slug)
        if limit is not None:
            query = query.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [self._to_category(model) for model in result.scalars().all()]

    async def refresh_product_count(self, tenant_id: str, category_slug: str) -> int:
        """활성 상품 수를 한 문장으로 세어서 저장 (동시 수집 시 갱신 유실 방지)"""
        count_query = (
            select(func.count(ProductModel.id))
            .where(
                ProductModel.tenant_id == tenant_id,
                ProductModel.category_slug == category_slug,
                ProductModel.is_active.is_(True)
            )
            .scalar_subquery()
        )

        async with self.session_factory() as session:
            await session.execute(
                update(CategoryModel)
                .where(CategoryModel.tenant_id == tenant_id, CategoryModel.slug == category_slug)
                .values(product_count=count_query)
            )
            await session.commit()

            result = await session.execute(
                select(CategoryModel.product_count)
                .where(CategoryModel.tenant_id == tenant_id, CategoryModel.slug == category_slug)
            )
            count = result.scalar_one_or_none()

        return count or 0

    # Product
    async def upsert_dropship_product(self, product: Product) -> Product:
        """멱등성 키 기준 상품 저장"""
        if not product.is_dropship:
            raise ValueError("드랍십 상품만 멱등성 키로 저장할 수 있습니다")

        for attempt in range(2):
            async with self.session_factory() as session:
                existing = await self._find_dropship_product(session, *product.idempotency_key)
                if existing:
                    product.id = existing.id
                    product.slug = existing.slug
                    product.created_at = existing.created_at or product.created_at
                    self._apply_product(existing, product, _MUTABLE_PRODUCT_FIELDS)
                else:
                    model = ProductModel(
                        id=product.id,
                        tenant_id=product.tenant_id,
                        slug=product.slug,
                        is_dropship=True,
                        dropship_provider=product.dropship_provider,
                        dropship_product_id=product.dropship_product_id,
                    )
                    self._apply_product(model, product, _MUTABLE_PRODUCT_FIELDS)
                    session.add(model)

                try:
                    await session.commit()
                    return product
                except IntegrityError:
                    # 동시 수집으로 같은 키가 먼저 들어간 경우 한 번 더 갱신으로 시도
                    await session.rollback()
                    if attempt == 0:
                        logger.warning(f"상품 동시 저장 감지, 갱신으로 재시도: {product.idempotency_key}")
                        continue
                    raise IdempotencyConflictError(
                        f"상품 멱등성 키 충돌: {product.idempotency_key}",
                        provider=product.dropship_provider,
                        details={"key": list(product.idempotency_key)}
                    )
        return product

    async def get_dropship_product(
        self,
        tenant_id: str,
        provider: str,
        provider_product_id: str
    ) -> Optional[Product]:
        """멱등성 키로 상품 조회"""
        async with self.session_factory() as session:
            model = await self._find_dropship_product(session, tenant_id, provider, provider_product_id)
            return self._to_product(model) if model else None

    async def get_products_by_ids(self, tenant_id: str, product_ids: List[str]) -> List[Product]:
        """내부 상품 ID 목록으로 조회"""
        if not product_ids:
            return []
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProductModel).where(
                    ProductModel.tenant_id == tenant_id,
                    ProductModel.id.in_(product_ids)
                )
            )
            return [self._to_product(model) for model in result.scalars().all()]

    async def list_dropship_products(
        self,
        tenant_id: str,
        provider: str,
        synced_before: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Product]:
        """드랍십 상품 목록 (미동기화 -> 오래된 순)"""
        query = select(ProductModel).where(
            ProductModel.tenant_id == tenant_id,
            ProductModel.is_dropship.is_(True),
            ProductModel.dropship_provider == provider
        )
        if synced_before is not None:
            query = query.where(or_(
                ProductModel.inventory_synced_at.is_(None),
                ProductModel.inventory_synced_at < synced_before
            ))
        query = query.order_by(
            ProductModel.inventory_synced_at.is_not(None),
            ProductModel.inventory_synced_at,
            ProductModel.id
        )
        if limit is not None:
            query = query.limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [self._to_product(model) for model in result.scalars().all()]

    async def update_product_inventory(self, product: Product, synced_at: datetime) -> None:
        """가격/재고 필드만 갱신"""
        async with self.session_factory() as session:
            await session.execute(
                update(ProductModel)
                .where(and_(ProductModel.tenant_id == product.tenant_id, ProductModel.id == product.id))
                .values(
                    price=product.price,
                    list_price=product.list_price,
                    supplier_price=product.supplier_price,
                    markup_factor=product.markup_factor,
                    quantity=product.inventory.quantity,
                    in_stock=product.inventory.in_stock,
                    inventory_synced_at=synced_at,
                    updated_at=synced_at
                )
            )
            await session.commit()
        product.inventory_synced_at = synced_at

    # Order mapping
    async def get_order_mapping(
        self,
        tenant_id: str,
        internal_order_id: str,
        provider: str
    ) -> Optional[ExternalOrderMapping]:
        """내부 주문 + 공급사로 매핑 조회"""
        async with self.session_factory() as session:
            model = await self._find_mapping(session, tenant_id, internal_order_id, provider)
            return self._to_mapping(model) if model else None

    async def find_order_mapping_by_external_id(
        self,
        tenant_id: str,
        provider: str,
        external_order_id: str
    ) -> Optional[ExternalOrderMapping]:
        """공급사 주문 ID로 매핑 조회"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExternalOrderMappingModel).where(
                    ExternalOrderMappingModel.tenant_id == tenant_id,
                    ExternalOrderMappingModel.provider == provider,
                    ExternalOrderMappingModel.external_order_id == external_order_id
                )
            )
            try:
                model = result.scalar_one_or_none()
            except MultipleResultsFound:
                raise IdempotencyConflictError(
                    f"공급사 주문 ID 중복 매핑: {provider}/{external_order_id}",
                    provider=provider
                )
            return self._to_mapping(model) if model else None

    async def list_order_mappings(self, tenant_id: str, internal_order_id: str) -> List[ExternalOrderMapping]:
        """내부 주문의 매핑 목록"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(ExternalOrderMappingModel)
                .where(
                    ExternalOrderMappingModel.tenant_id == tenant_id,
                    ExternalOrderMappingModel.internal_order_id == internal_order_id
                )
                .order_by(ExternalOrderMappingModel.provider)
            )
            return [self._to_mapping(model) for model in result.scalars().all()]

    async def create_order_mapping(self, mapping: ExternalOrderMapping) -> bool:
        """매핑 생성. 같은 (주문, 공급사) 매핑이 있으면 False"""
        async with self.session_factory() as session:
            session.add(ExternalOrderMappingModel(
                tenant_id=mapping.tenant_id,
                internal_order_id=mapping.internal_order_id,
                provider=mapping.provider,
                status=mapping.status.value,
                provider_payload=mapping.provider_payload,
            ))
            try:
                await session.commit()
                return True
            except IntegrityError:
                await session.rollback()
                return False

    async def save_order_mapping(self, mapping: ExternalOrderMapping) -> None:
        """매핑 상태 저장"""
        async with self.session_factory() as session:
            model = await self._find_mapping(
                session, mapping.tenant_id, mapping.internal_order_id, mapping.provider
            )
            if model is None:
                raise ValueError(
                    f"주문 매핑이 없습니다: {mapping.internal_order_id}/{mapping.provider}"
                )
            model.status = mapping.status.value
            model.external_order_id = mapping.external_order_id
            model.provider_payload = mapping.provider_payload
            model.error_message = mapping.error_message
            model.shipping_cost = mapping.shipping_cost
            model.estimated_delivery_date = mapping.estimated_delivery_date
            model.updated_at = mapping.updated_at
            await session.commit()

    # Sync run
    async def get_sync_run(self, tenant_id: str, provider: str) -> SyncRun:
        """동기화 상태 조회"""
        async with self.session_factory() as session:
            model = await self._find_sync_run(session, tenant_id, provider)
            if model is None:
                return SyncRun(tenant_id=tenant_id, provider=provider)
            return SyncRun(
                tenant_id=model.tenant_id,
                provider=model.provider,
                last_category_sync_at=model.last_category_sync_at,
                last_product_import_at=model.last_product_import_at,
                last_inventory_sync_at=model.last_inventory_sync_at,
                category_source=model.category_source
            )

    async def save_sync_run(self, sync_run: SyncRun) -> None:
        """동기화 상태 저장"""
        async with self.session_factory() as session:
            model = await self._find_sync_run(session, sync_run.tenant_id, sync_run.provider)
            if model is None:
                model = SyncRunModel(tenant_id=sync_run.tenant_id, provider=sync_run.provider)
                session.add(model)
            model.last_category_sync_at = sync_run.last_category_sync_at
            model.last_product_import_at = sync_run.last_product_import_at
            model.last_inventory_sync_at = sync_run.last_inventory_sync_at
            model.category_source = sync_run.category_source
            await session.commit()

    # 내부 헬퍼
    async def _find_category(self, session, tenant_id: str, slug: str) -> Optional[CategoryModel]:
        result = await session.execute(
            select(CategoryModel).where(CategoryModel.tenant_id == tenant_id, CategoryModel.slug == slug)
        )
        return result.scalar_one_or_none()

    async def _find_dropship_product(
        self,
        session,
        tenant_id: str,
        provider: str,
        provider_product_id: str
    ) -> Optional[ProductModel]:
        result = await session.execute(
            select(ProductModel).where(
                ProductModel.tenant_id == tenant_id,
                ProductModel.dropship_provider == provider,
                ProductModel.dropship_product_id == provider_product_id
            )
        )
        try:
            return result.scalar_one_or_none()
        except MultipleResultsFound:
            raise IdempotencyConflictError(
                f"멱등성 키 중복 레코드: {tenant_id}/{provider}/{provider_product_id}",
                provider=provider
            )

    async def _find_mapping(
        self,
        session,
        tenant_id: str,
        internal_order_id: str,
        provider: str
    ) -> Optional[ExternalOrderMappingModel]:
        result = await session.execute(
            select(ExternalOrderMappingModel).where(
                ExternalOrderMappingModel.tenant_id == tenant_id,
                ExternalOrderMappingModel.internal_order_id == internal_order_id,
                ExternalOrderMappingModel.provider == provider
            )
        )
        return result.scalar_one_or_none()

    async def _find_sync_run(self, session, tenant_id: str, provider: str) -> Optional[SyncRunModel]:
        result = await session.execute(
            select(SyncRunModel).where(SyncRunModel.tenant_id == tenant_id, SyncRunModel.provider == provider)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply_category(model: CategoryModel, category: Category) -> None:
        model.name = category.name
        model.parent_id = category.parent_id
        model.level = category.level
        model.path = category.path
        model.breadcrumbs = list(category.breadcrumbs)
        model.description = category.description
        model.is_active = category.is_active
        model.is_featured = category.is_featured
        model.external_mappings = dict(category.external_mappings)
        model.source = category.source
        model.default_set_version = category.default_set_version
        model.updated_at = category.updated_at

    @staticmethod
    def _apply_product(model: ProductModel, product: Product, fields) -> None:
        values = {
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "list_price": product.list_price,
            "supplier_price": product.supplier_price,
            "markup_factor": product.markup_factor,
            "category_slug": product.category_slug,
            "sku": product.sku,
            "images": list(product.images),
            "quantity": product.inventory.quantity,
            "low_stock_threshold": product.inventory.low_stock_threshold,
            "in_stock": product.inventory.in_stock,
            "is_active": product.is_active,
            "tags": list(product.tags),
            "variants": list(product.variants),
            "supplier_info": dict(product.supplier_info),
            "inventory_synced_at": product.inventory_synced_at,
        }
        for key in fields:
            setattr(model, key, values[key])
        model.updated_at = product.updated_at

    @staticmethod
    def _to_category(model: CategoryModel) -> Category:
        return Category(
            id=model.id,
            tenant_id=model.tenant_id,
            name=model.name,
            slug=model.slug,
            parent_id=model.parent_id,
            level=model.level,
            path=model.path,
            breadcrumbs=list(model.breadcrumbs or []),
            description=model.description,
            is_active=bool(model.is_active),
            is_featured=bool(model.is_featured),
            product_count=model.product_count or 0,
            external_mappings=dict(model.external_mappings or {}),
            source=model.source,
            default_set_version=model.default_set_version,
            created_at=model.created_at or datetime.now(),
            updated_at=model.updated_at or datetime.now()
        )

    @staticmethod
    def _to_product(model: ProductModel) -> Product:
        return Product(
            id=model.id,
            tenant_id=model.tenant_id,
            name=model.name,
            slug=model.slug,
            description=model.description,
            price=model.price,
            list_price=model.list_price,
            supplier_price=model.supplier_price,
            markup_factor=model.markup_factor,
            category_slug=model.category_slug,
            sku=model.sku,
            images=list(model.images or []),
            inventory=Inventory(
                quantity=model.quantity or 0,
                low_stock_threshold=model.low_stock_threshold
            ),
            is_active=bool(model.is_active),
            is_dropship=bool(model.is_dropship),
            dropship_provider=model.dropship_provider,
            dropship_product_id=model.dropship_product_id,
            tags=list(model.tags or []),
            variants=list(model.variants or []),
            supplier_info=dict(model.supplier_info or {}),
            inventory_synced_at=model.inventory_synced_at,
            created_at=model.created_at or datetime.now(),
            updated_at=model.updated_at or datetime.now()
        )

    @staticmethod
    def _to_mapping(model: ExternalOrderMappingModel) -> ExternalOrderMapping:
        return ExternalOrderMapping(
            tenant_id=model.tenant_id,
            internal_order_id=model.internal_order_id,
            provider=model.provider,
            status=ExternalOrderStatus(model.status),
            external_order_id=model.external_order_id,
            provider_payload=dict(model.provider_payload or {}),
            error_message=model.error_message,
            shipping_cost=model.shipping_cost,
            estimated_delivery_date=model.estimated_delivery_date,
            created_at=model.created_at or datetime.now(),
            updated_at=model.updated_at or datetime.now()
        )
