"""카탈로그/재고 관련 DTO 스키마"""
from typing import List, Optional, Dict
from decimal import Decimal
from pydantic import BaseModel, Field


class CatalogSyncRequest(BaseModel):
    """카탈로그 수집 요청"""
    provider: str = "alibaba"
    category_slugs: Optional[List[str]] = None
    max_categories: Optional[int] = Field(None, gt=0)
    limit: Optional[int] = Field(None, gt=0, le=1000)


class CatalogSyncResponse(BaseModel):
    """카탈로그 수집 결과"""
    tenant_id: str
    provider: str
    category_source: Optional[str] = None
    categories_synced: int
    imported_count: int
    imported_by_category: Dict[str, int]
    failed_categories: Dict[str, str]
    failed_products: Dict[str, str]
    cancelled: bool


class InventoryReconcileRequest(BaseModel):
    """재고 동기화 요청"""
    provider: str = "alibaba"
    full: bool = False


class InventoryReconcileResponse(BaseModel):
    """재고 동기화 결과"""
    tenant_id: str
    provider: str
    checked_count: int
    updated_count: int
    skipped: List[str]
    failed: Dict[str, str]
    success_rate: float
    cancelled: bool


class InventoryUpdateItem(BaseModel):
    """공급사로 보낼 재고 변경"""
    provider_product_id: str
    stock: int = Field(..., ge=0)
    price: Optional[Decimal] = None
    variant_id: Optional[str] = None
    available: bool = True


class InventoryPushRequest(BaseModel):
    """재고 반영 요청"""
    provider: str = "alibaba"
    updates: List[InventoryUpdateItem]


class InventoryPushResponse(BaseModel):
    """재고 반영 결과"""
    provider: str
    outcome: str
