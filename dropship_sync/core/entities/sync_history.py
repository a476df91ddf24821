"""동기화 이력 도메인 엔티티"""
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
from datetime import datetime


@dataclass
class SyncRun:
    """테넌트+공급사 단위 동기화 상태

    재고 동기화가 매번 전체 카탈로그를 다시 훑지 않도록 마지막 실행 시각을 기록한다.
    """
    tenant_id: str
    provider: str
    last_category_sync_at: Optional[datetime] = None
    last_product_import_at: Optional[datetime] = None
    last_inventory_sync_at: Optional[datetime] = None
    category_source: Optional[str] = None

    def record_category_sync(self, at: datetime, source: str) -> None:
        self.last_category_sync_at = at
        self.category_source = source

    def record_product_import(self, at: datetime) -> None:
        self.last_product_import_at = at

    def record_inventory_sync(self, at: datetime) -> None:
        self.last_inventory_sync_at = at


@dataclass
class ImportSummary:
    """카탈로그 수집 결과"""
    tenant_id: str
    provider: str
    category_source: Optional[str] = None
    categories_synced: int = 0
    imported_count: int = 0
    imported_by_category: Dict[str, int] = field(default_factory=dict)
    failed_categories: Dict[str, str] = field(default_factory=dict)
    failed_products: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False
    _imported_slugs: Dict[str, str] = field(default_factory=dict, repr=False)

    def add_imported(self, category_slug: str, provider_product_id: str) -> None:
        """상품 1건 수집 성공

        같은 상품이 여러 카테고리에서 수집되면 한 번만 세고 마지막 카테고리로 옮긴다.
        """
        previous = self._imported_slugs.get(provider_product_id)
        if previous is None:
            self.imported_count += 1
        else:
            remaining = self.imported_by_category[previous] - 1
            if remaining:
                self.imported_by_category[previous] = remaining
            else:
                del self.imported_by_category[previous]

        self._imported_slugs[provider_product_id] = category_slug
        self.imported_by_category[category_slug] = self.imported_by_category.get(category_slug, 0) + 1

    def add_category_failure(self, category_slug: str, error: str) -> None:
        self.failed_categories[category_slug] = error

    def add_product_failure(self, provider_product_id: str, error: str) -> None:
        self.failed_products[provider_product_id] = error

    def is_successful(self) -> bool:
        """전체 성공 여부"""
        return not self.failed_categories and not self.failed_products and not self.cancelled

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환 (직렬화용)"""
        return {
            'tenant_id': self.tenant_id,
            'provider': self.provider,
            'category_source': self.category_source,
            'categories_synced': self.categories_synced,
            'imported_count': self.imported_count,
            'imported_by_category': dict(self.imported_by_category),
            'failed_categories': dict(self.failed_categories),
            'failed_products': dict(self.failed_products),
            'cancelled': self.cancelled,
        }


@dataclass
class ReconcileSummary:
    """재고 동기화 결과"""
    tenant_id: str
    provider: str
    checked_count: int = 0
    updated_count: int = 0
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    def get_success_rate(self) -> float:
        """성공률 계산"""
        if self.checked_count == 0:
            return 0.0
        return self.updated_count / self.checked_count

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환 (직렬화용)"""
        return {
            'tenant_id': self.tenant_id,
            'provider': self.provider,
            'checked_count': self.checked_count,
            'updated_count': self.updated_count,
            'skipped': list(self.skipped),
            'failed': dict(self.failed),
            'success_rate': self.get_success_rate(),
            'cancelled': self.cancelled,
        }
