"""저장소 포트 (인터페이스)"""
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from datetime import datetime

from dropship_sync.core.entities.category import Category
from dropship_sync.core.entities.product import Product
from dropship_sync.core.entities.order import ExternalOrderMapping
from dropship_sync.core.entities.sync_history import SyncRun


class CatalogRepositoryPort(ABC):
    """카탈로그 저장소 인터페이스 (모든 조회는 테넌트 범위)"""

    # Category 관련
    @abstractmethod
    async def upsert_category(self, category: Category) -> Category:
        """(tenant_id, slug) 기준 카테고리 저장. 저장된 엔티티 반환"""
        pass

    @abstractmethod
    async def get_category(self, tenant_id: str, slug: str) -> Optional[Category]:
        """슬러그로 카테고리 조회"""
        pass

    @abstractmethod
    async def list_categories(
        self,
        tenant_id: str,
        slugs: Optional[List[str]] = None,
        max_level: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Category]:
        """카테고리 목록 조회 (level, slug 순)"""
        pass

    @abstractmethod
    async def refresh_product_count(self, tenant_id: str, category_slug: str) -> int:
        """활성 상품 수를 원자적으로 다시 세어 저장"""
        pass

    # Product 관련
    @abstractmethod
    async def upsert_dropship_product(self, product: Product) -> Product:
        """멱등성 키 기준 상품 저장. 기존 상품이면 식별 정보는 유지하고 가변 필드만 갱신"""
        pass

    @abstractmethod
    async def get_dropship_product(
        self,
        tenant_id: str,
        provider: str,
        provider_product_id: str
    ) -> Optional[Product]:
        """멱등성 키로 상품 조회"""
        pass

    @abstractmethod
    async def get_products_by_ids(self, tenant_id: str, product_ids: List[str]) -> List[Product]:
        """내부 상품 ID 목록으로 조회"""
        pass

    @abstractmethod
    async def list_dropship_products(
        self,
        tenant_id: str,
        provider: str,
        synced_before: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[Product]:
        """드랍십 상품 목록 (synced_before 이전에 동기화된 것 / 미동기화 우선)"""
        pass

    @abstractmethod
    async def update_product_inventory(self, product: Product, synced_at: datetime) -> None:
        """가격/재고 필드만 갱신"""
        pass

    # Order mapping 관련
    @abstractmethod
    async def get_order_mapping(
        self,
        tenant_id: str,
        internal_order_id: str,
        provider: str
    ) -> Optional[ExternalOrderMapping]:
        """내부 주문 + 공급사로 매핑 조회"""
        pass

    @abstractmethod
    async def find_order_mapping_by_external_id(
        self,
        tenant_id: str,
        provider: str,
        external_order_id: str
    ) -> Optional[ExternalOrderMapping]:
        """공급사 주문 ID로 매핑 조회"""
        pass

    @abstractmethod
    async def list_order_mappings(self, tenant_id: str, internal_order_id: str) -> List[ExternalOrderMapping]:
        """내부 주문의 매핑 목록"""
        pass

    @abstractmethod
    async def create_order_mapping(self, mapping: ExternalOrderMapping) -> bool:
        """매핑 생성. 이미 있으면 False"""
        pass

    @abstractmethod
    async def save_order_mapping(self, mapping: ExternalOrderMapping) -> None:
        """매핑 상태 저장"""
        pass

    # Sync run 관련
    @abstractmethod
    async def get_sync_run(self, tenant_id: str, provider: str) -> SyncRun:
        """동기화 상태 조회 (없으면 빈 상태)"""
        pass

    @abstractmethod
    async def save_sync_run(self, sync_run: SyncRun) -> None:
        """동기화 상태 저장"""
        pass
