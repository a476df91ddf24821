"""주문 라우트 (공급사 주문 전달, 상태 웹훅, 상태 조회, 취소)"""
from fastapi import APIRouter, Depends, HTTPException, status

from dropship_sync.app.di import get_dispatch_order_usecase
from dropship_sync.core.entities.order import (
    CustomerInfo,
    ExternalOrderMapping,
    InternalOrder,
    OrderLineItem,
    ShippingAddress,
)
from dropship_sync.core.exceptions import DropshippingError, create_http_exception
from dropship_sync.core.usecases.dispatch_order import DispatchOrderUseCase
from dropship_sync.presentation.schemas.orders import (
    OrderDispatchRequest,
    OrderDispatchResponse,
    OrderMappingResponse,
    OrderStatusWebhookRequest,
)
from dropship_sync.shared.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)

_FAILURE_STATUS = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "invalid_status": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "not_submitted": status.HTTP_409_CONFLICT,
    "cancel_rejected": status.HTTP_409_CONFLICT,
}


def _to_response(mapping: ExternalOrderMapping) -> OrderMappingResponse:
    return OrderMappingResponse(
        internal_order_id=mapping.internal_order_id,
        provider=mapping.provider,
        status=mapping.status.value,
        external_order_id=mapping.external_order_id,
        error_message=mapping.error_message,
        shipping_cost=mapping.shipping_cost,
        estimated_delivery_date=mapping.estimated_delivery_date,
        provider_payload=mapping.provider_payload
    )


def _raise_on_failure(result, context: str) -> None:
    if result.is_failure():
        logger.warning(f"{context}: {result.get_error()}")
        raise HTTPException(
            status_code=_FAILURE_STATUS.get(result.code, status.HTTP_400_BAD_REQUEST),
            detail={"code": result.code, "message": result.get_error()}
        )


@router.post("/orders/dispatch", response_model=OrderDispatchResponse)
async def dispatch_order(
    tenant_id: str,
    request: OrderDispatchRequest,
    usecase: DispatchOrderUseCase = Depends(get_dispatch_order_usecase)
):
    """내부 주문을 공급사별로 전달"""
    order = InternalOrder(
        id=request.order_id,
        tenant_id=tenant_id,
        customer=CustomerInfo(**request.customer.model_dump()),
        shipping_address=ShippingAddress(**request.shipping_address.model_dump()),
        line_items=[OrderLineItem(**item.model_dump()) for item in request.line_items],
        notes=request.notes
    )

    try:
        result = await usecase.execute(order)
    except DropshippingError as e:
        logger.error(f"주문 전달 실패 {tenant_id}/{request.order_id}: {e}")
        raise create_http_exception(e)

    return OrderDispatchResponse(
        order_id=result.order_id,
        is_partially_submitted=result.is_partially_submitted,
        mappings=[_to_response(mapping) for mapping in result.mappings]
    )


@router.post("/webhooks/{provider}/orders", response_model=OrderMappingResponse)
async def order_status_webhook(
    tenant_id: str,
    provider: str,
    request: OrderStatusWebhookRequest,
    usecase: DispatchOrderUseCase = Depends(get_dispatch_order_usecase)
):
    """공급사 주문 상태 웹훅"""
    try:
        result = await usecase.update_external_order_status(
            tenant_id, provider, request.external_order_id, request.status
        )
    except DropshippingError as e:
        raise create_http_exception(e)

    _raise_on_failure(result, f"웹훅 상태 반영 실패 {provider}/{request.external_order_id}")
    return _to_response(result.get_value())


@router.post("/orders/{order_id}/providers/{provider}/refresh", response_model=OrderMappingResponse)
async def refresh_order_status(
    tenant_id: str,
    order_id: str,
    provider: str,
    usecase: DispatchOrderUseCase = Depends(get_dispatch_order_usecase)
):
    """공급사 주문 상태 조회 후 반영"""
    try:
        result = await usecase.refresh_order_status(tenant_id, order_id, provider)
    except DropshippingError as e:
        logger.error(f"주문 상태 조회 실패 {order_id}/{provider}: {e}")
        raise create_http_exception(e)

    _raise_on_failure(result, f"주문 상태 반영 실패 {order_id}/{provider}")
    return _to_response(result.get_value())


@router.post("/orders/{order_id}/providers/{provider}/cancel", response_model=OrderMappingResponse)
async def cancel_order(
    tenant_id: str,
    order_id: str,
    provider: str,
    usecase: DispatchOrderUseCase = Depends(get_dispatch_order_usecase)
):
    """공급사 주문 취소"""
    try:
        result = await usecase.cancel_order(tenant_id, order_id, provider)
    except DropshippingError as e:
        logger.error(f"주문 취소 요청 실패 {order_id}/{provider}: {e}")
        raise create_http_exception(e)

    _raise_on_failure(result, f"주문 취소 실패 {order_id}/{provider}")
    return _to_response(result.get_value())
