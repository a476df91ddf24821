"""상품 도메인 엔티티"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Union
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import uuid

from dropship_sync.core.entities.category import slugify

DEFAULT_MARKUP_FACTOR = Decimal("1.3")

_CENT = Decimal("0.01")

Number = Union[Decimal, float, int, str]


def to_money(value: Number) -> Decimal:
    """금액을 소수 둘째 자리로 반올림"""
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Number, label: str) -> Decimal:
    """유한한 Decimal 로 변환 (NaN / Infinity / 숫자 아닌 값은 ValueError)"""
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{label} 형식 오류: {value!r}")
    if not result.is_finite():
        raise ValueError(f"{label}는 유한한 숫자여야 합니다: {value!r}")
    return result


@dataclass
class PricePolicy:
    """가격 정책 (판매가 = 공급가 × 마크업)"""
    supplier_price: Decimal
    markup_factor: Decimal = DEFAULT_MARKUP_FACTOR
    compare_at_price: Optional[Decimal] = None

    def __post_init__(self):
        self.supplier_price = _to_decimal(self.supplier_price, "공급가")
        self.markup_factor = _to_decimal(self.markup_factor, "마크업 배수")
        if self.compare_at_price is not None:
            self.compare_at_price = _to_decimal(self.compare_at_price, "비교가")
        if self.markup_factor <= 0:
            raise ValueError(f"마크업 배수는 0보다 커야 합니다: {self.markup_factor}")
        if self.supplier_price < 0:
            raise ValueError(f"공급가는 음수일 수 없습니다: {self.supplier_price}")

    def get_final_price(self) -> Decimal:
        """최종 판매가 계산"""
        return to_money(self.supplier_price * self.markup_factor)

    def get_list_price(self) -> Decimal:
        """정가 (비교가가 있으면 비교가 기준)"""
        base = self.compare_at_price if self.compare_at_price else self.supplier_price
        return to_money(base * self.markup_factor)


@dataclass
class Inventory:
    """재고 정보"""
    quantity: int = 0
    low_stock_threshold: int = 10
    in_stock: bool = False

    def __post_init__(self):
        self.quantity = max(0, int(self.quantity))
        self.in_stock = self.quantity > 0

    def set_quantity(self, quantity: int) -> None:
        self.quantity = max(0, int(quantity))
        self.in_stock = self.quantity > 0

    def is_low(self) -> bool:
        return 0 < self.quantity <= self.low_stock_threshold


@dataclass
class Product:
    """테넌트 카탈로그 상품

    드랍십 상품은 (tenant_id, dropship_provider, dropship_product_id) 가 멱등성 키.
    """
    tenant_id: str
    name: str
    slug: str
    price: Decimal
    category_slug: str
    sku: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    list_price: Optional[Decimal] = None
    supplier_price: Optional[Decimal] = None
    markup_factor: Decimal = DEFAULT_MARKUP_FACTOR
    description: Optional[str] = None
    images: List[str] = field(default_factory=list)
    inventory: Inventory = field(default_factory=Inventory)
    is_active: bool = True
    is_dropship: bool = False
    dropship_provider: Optional[str] = None
    dropship_product_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    variants: List[Dict[str, Any]] = field(default_factory=list)
    supplier_info: Dict[str, Any] = field(default_factory=dict)
    inventory_synced_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.is_dropship and not (self.dropship_provider and self.dropship_product_id):
            raise ValueError("드랍십 상품은 공급사와 공급사 상품 ID가 필요합니다")

    @classmethod
    def from_supplier(
        cls,
        tenant_id: str,
        provider: str,
        provider_product_id: str,
        name: str,
        category_slug: str,
        pricing: PricePolicy,
        sku_prefix: str,
        stock: int = 0,
        low_stock_threshold: int = 10,
        **extra: Any
    ) -> "Product":
        """공급사 상품으로부터 드랍십 상품 생성"""
        return cls(
            tenant_id=tenant_id,
            name=name,
            slug=build_product_slug(name, provider_product_id),
            price=pricing.get_final_price(),
            list_price=pricing.get_list_price(),
            supplier_price=to_money(pricing.supplier_price),
            markup_factor=pricing.markup_factor,
            category_slug=category_slug,
            sku=f"{sku_prefix}-{provider_product_id}",
            inventory=Inventory(quantity=stock, low_stock_threshold=low_stock_threshold),
            is_dropship=True,
            dropship_provider=provider,
            dropship_product_id=str(provider_product_id),
            **extra
        )

    @property
    def idempotency_key(self):
        return (self.tenant_id, self.dropship_provider, self.dropship_product_id)

    def apply_supplier_refresh(self, pricing: PricePolicy, stock: int) -> None:
        """공급사 최신 가격/재고 반영 (마크업 재적용)"""
        self.supplier_price = to_money(pricing.supplier_price)
        self.markup_factor = pricing.markup_factor
        self.price = pricing.get_final_price()
        self.list_price = pricing.get_list_price()
        self.inventory.set_quantity(stock)
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환 (직렬화용)"""
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'slug': self.slug,
            'price': str(self.price),
            'list_price': str(self.list_price) if self.list_price is not None else None,
            'supplier_price': str(self.supplier_price) if self.supplier_price is not None else None,
            'category_slug': self.category_slug,
            'sku': self.sku,
            'images': list(self.images),
            'inventory': {
                'quantity': self.inventory.quantity,
                'low_stock_threshold': self.inventory.low_stock_threshold,
                'in_stock': self.inventory.in_stock,
            },
            'is_active': self.is_active,
            'is_dropship': self.is_dropship,
            'dropship_provider': self.dropship_provider,
            'dropship_product_id': self.dropship_product_id,
            'tags': list(self.tags),
            'variants': list(self.variants),
        }


def build_product_slug(name: str, provider_product_id: str) -> str:
    """재수집해도 바뀌지 않는 상품 슬러그"""
    base = slugify(name, max_length=50) or "product"
    return f"{base}-{slugify(str(provider_product_id)) or provider_product_id}"
