"""주문 도메인 엔티티"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


class ExternalOrderStatus(Enum):
    """공급사 주문 상태"""
    PENDING = "pending"          # 생성됨, 아직 공급사 요청 전
    SUBMITTED = "submitted"      # 공급사 주문 등록 완료
    FAILED = "failed"            # 공급사 주문 등록 실패
    PROCESSING = "processing"    # 공급사 처리 중 (웹훅)
    SHIPPED = "shipped"          # 발송됨 (웹훅)
    DELIVERED = "delivered"      # 배송 완료 (웹훅)
    CANCELLED = "cancelled"      # 취소됨 (웹훅)


# 웹훅에 의한 상태 전이 규칙
_WEBHOOK_TRANSITIONS = {
    ExternalOrderStatus.SUBMITTED: {
        ExternalOrderStatus.PROCESSING,
        ExternalOrderStatus.SHIPPED,
        ExternalOrderStatus.DELIVERED,
        ExternalOrderStatus.CANCELLED,
    },
    ExternalOrderStatus.PROCESSING: {
        ExternalOrderStatus.SHIPPED,
        ExternalOrderStatus.DELIVERED,
        ExternalOrderStatus.CANCELLED,
    },
    ExternalOrderStatus.SHIPPED: {ExternalOrderStatus.DELIVERED},
}


@dataclass
class CustomerInfo:
    """주문 고객 정보"""
    name: str
    email: str
    phone: Optional[str] = None


@dataclass
class ShippingAddress:
    """배송지"""
    first_name: str
    last_name: str
    address1: str
    city: str
    state: str
    postal_code: str
    country: str
    address2: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class OrderLineItem:
    """내부 주문 상품"""
    product_id: str
    quantity: int
    price: Decimal
    variant_id: Optional[str] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"주문 수량은 1 이상이어야 합니다: {self.quantity}")
        self.price = Decimal(str(self.price))


@dataclass
class InternalOrder:
    """마켓플레이스 내부 주문"""
    id: str
    tenant_id: str
    customer: CustomerInfo
    shipping_address: ShippingAddress
    line_items: List[OrderLineItem] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class DropshipOrderItem:
    """공급사로 보내는 주문 상품 (공급사 상품 ID 기준)"""
    provider_product_id: str
    quantity: int
    price: Decimal
    variant_id: Optional[str] = None
    internal_product_id: Optional[str] = None


@dataclass
class DropshipOrderData:
    """공급사 주문 요청 데이터"""
    internal_order_id: str
    customer: CustomerInfo
    shipping_address: ShippingAddress
    items: List[DropshipOrderItem]
    shipping_method: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class ExternalOrderMapping:
    """내부 주문 - 공급사 주문 매핑 (공급사 그룹당 1건)"""
    tenant_id: str
    internal_order_id: str
    provider: str
    status: ExternalOrderStatus = ExternalOrderStatus.PENDING
    external_order_id: Optional[str] = None
    provider_payload: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    estimated_delivery_date: Optional[date] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def mark_submitted(
        self,
        external_order_id: str,
        provider_payload: Dict[str, Any],
        shipping_cost: Optional[Decimal] = None,
        estimated_delivery_date: Optional[date] = None
    ) -> None:
        """공급사 주문 등록 성공"""
        self._ensure_pending()
        self.status = ExternalOrderStatus.SUBMITTED
        self.external_order_id = external_order_id
        self.provider_payload = provider_payload or {}
        self.shipping_cost = shipping_cost
        self.estimated_delivery_date = estimated_delivery_date
        self.updated_at = datetime.now()

    def mark_failed(self, error_message: str, provider_payload: Optional[Dict[str, Any]] = None) -> None:
        """공급사 주문 등록 실패"""
        self._ensure_pending()
        self.status = ExternalOrderStatus.FAILED
        self.error_message = error_message
        self.provider_payload = provider_payload or {}
        self.updated_at = datetime.now()

    def can_transition_to(self, new_status: ExternalOrderStatus) -> bool:
        """웹훅 상태 전이 가능 여부"""
        if new_status == self.status:
            return True
        return new_status in _WEBHOOK_TRANSITIONS.get(self.status, set())

    def apply_webhook_status(self, new_status: ExternalOrderStatus) -> None:
        """웹훅 상태 반영"""
        if not self.can_transition_to(new_status):
            raise ValueError(
                f"허용되지 않는 상태 전이: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        self.updated_at = datetime.now()

    def record_tracking(self, tracking_number: Optional[str], tracking_url: Optional[str] = None) -> None:
        """송장 정보는 provider_payload 에 합쳐서 보관"""
        if tracking_number:
            self.provider_payload = {**self.provider_payload, 'tracking_number': tracking_number}
        if tracking_url:
            self.provider_payload = {**self.provider_payload, 'tracking_url': tracking_url}

    def _ensure_pending(self) -> None:
        if self.status != ExternalOrderStatus.PENDING:
            raise ValueError(f"이미 처리된 주문 매핑입니다: {self.status.value}")

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환 (직렬화용)"""
        return {
            'tenant_id': self.tenant_id,
            'internal_order_id': self.internal_order_id,
            'provider': self.provider,
            'status': self.status.value,
            'external_order_id': self.external_order_id,
            'provider_payload': self.provider_payload,
            'error_message': self.error_message,
            'shipping_cost': str(self.shipping_cost) if self.shipping_cost is not None else None,
            'estimated_delivery_date': self.estimated_delivery_date.isoformat() if self.estimated_delivery_date else None,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
