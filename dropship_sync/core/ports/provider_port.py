"""공급사 연동 포트 (인터페이스)"""
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from dropship_sync.core.entities.order import DropshipOrderData, ExternalOrderStatus


class HealthStatus(Enum):
    """공급사 상태"""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


class InventoryUpdateOutcome(Enum):
    """재고 반영 결과 - 읽기 전용 공급사는 UNSUPPORTED"""
    OK = "ok"
    UNSUPPORTED = "unsupported"


@dataclass
class HealthReport:
    """헬스체크 결과"""
    status: HealthStatus
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderCategory:
    """공급사 카테고리"""
    id: str
    name: str
    slug: str
    parent_id: Optional[str] = None
    level: int = 1


@dataclass
class ProductSearchParams:
    """상품 검색 조건"""
    keyword: Optional[str] = None
    category_id: Optional[str] = None
    category_slug: Optional[str] = None  # category_id 가 없을 때 어댑터가 번역
    page: int = 1
    page_size: int = 20


@dataclass
class ProviderProduct:
    """공급사 상품"""
    id: str
    name: str
    price: Optional[Decimal]  # 파싱 불가 시 None (수집 단계에서 해당 상품만 건너뜀)
    description: Optional[str] = None
    compare_at_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    images: List[str] = field(default_factory=list)
    sku: Optional[str] = None
    stock: int = 0
    variants: List[Dict[str, Any]] = field(default_factory=list)
    supplier_info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OrderCreationResult:
    """공급사 주문 생성 결과"""
    external_order_id: str
    status: str
    provider_payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderOrderStatus:
    """공급사 주문 상태 조회 결과 (status 는 ExternalOrderStatus 로 정규화)"""
    external_order_id: str
    status: ExternalOrderStatus
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    provider_status: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ShippingQuote:
    """배송비 / 도착 예정일"""
    cost: Decimal
    estimated_delivery_date: date
    is_estimate: bool = False  # 공급사 물류 API 실패 시 기본 추정치


@dataclass
class InventoryUpdate:
    """재고 변경"""
    provider_product_id: str
    stock: int
    price: Optional[Decimal] = None
    variant_id: Optional[str] = None
    available: bool = True


class ProviderPort(ABC):
    """공급사 연동 인터페이스

    각 연산은 독립적으로 호출/실패할 수 있다. check_health 를 제외한 연산은
    실패 시 ProviderError 계열 예외를 던지고 데이터를 지어내지 않는다.
    """

    name: str = ""
    sku_prefix: str = ""

    @abstractmethod
    async def check_health(self) -> HealthReport:
        """공급사 상태 확인 (예외를 던지지 않음)"""
        pass

    @abstractmethod
    async def get_categories(self) -> List[ProviderCategory]:
        """카테고리 목록 조회"""
        pass

    @abstractmethod
    async def fetch_products(self, params: ProductSearchParams) -> List[ProviderProduct]:
        """상품 검색 (동일 조건이면 동일 결과)"""
        pass

    @abstractmethod
    async def get_product(self, provider_product_id: str) -> Optional[ProviderProduct]:
        """상품 단건 조회 (공급사에 없으면 None)"""
        pass

    @abstractmethod
    async def create_order(self, order: DropshipOrderData) -> OrderCreationResult:
        """공급사 주문 생성 (실패 시 ProviderOrderError)"""
        pass

    @abstractmethod
    async def get_order_status(self, external_order_id: str) -> ProviderOrderStatus:
        """공급사 주문 상태 조회"""
        pass

    @abstractmethod
    async def cancel_order(self, external_order_id: str) -> bool:
        """공급사 주문 취소 (공급사가 거절하면 False)"""
        pass

    @abstractmethod
    async def calculate_shipping(self, order: DropshipOrderData) -> ShippingQuote:
        """배송비 계산 (물류 API 실패 시 기본 추정치)"""
        pass

    @abstractmethod
    async def update_inventory(self, updates: List[InventoryUpdate]) -> InventoryUpdateOutcome:
        """공급사 재고 반영"""
        pass

    async def aclose(self) -> None:
        """리소스 정리"""
        return None
