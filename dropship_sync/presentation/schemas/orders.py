"""주문 관련 DTO 스키마"""
from typing import List, Optional, Dict, Any
from decimal import Decimal
from datetime import date
from pydantic import BaseModel, Field


class CustomerSchema(BaseModel):
    """주문 고객"""
    name: str
    email: str
    phone: Optional[str] = None


class ShippingAddressSchema(BaseModel):
    """배송지"""
    first_name: str
    last_name: str
    address1: str
    address2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str


class OrderLineItemSchema(BaseModel):
    """주문 상품"""
    product_id: str
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0)
    variant_id: Optional[str] = None


class OrderDispatchRequest(BaseModel):
    """공급사 주문 전달 요청"""
    order_id: str
    customer: CustomerSchema
    shipping_address: ShippingAddressSchema
    line_items: List[OrderLineItemSchema] = Field(..., min_length=1)
    notes: Optional[str] = None


class OrderMappingResponse(BaseModel):
    """공급사 주문 매핑"""
    internal_order_id: str
    provider: str
    status: str
    external_order_id: Optional[str] = None
    error_message: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    estimated_delivery_date: Optional[date] = None
    provider_payload: Dict[str, Any] = {}


class OrderDispatchResponse(BaseModel):
    """공급사 주문 전달 결과"""
    order_id: str
    is_partially_submitted: bool
    mappings: List[OrderMappingResponse]


class OrderStatusWebhookRequest(BaseModel):
    """공급사 주문 상태 웹훅"""
    external_order_id: str
    status: str
