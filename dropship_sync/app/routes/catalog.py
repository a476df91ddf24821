"""카탈로그/재고 라우트"""
from fastapi import APIRouter, Depends

from dropship_sync.app.di import get_import_catalog_usecase, get_reconcile_inventory_usecase
from dropship_sync.core.exceptions import DropshippingError, create_http_exception
from dropship_sync.core.ports.provider_port import InventoryUpdate
from dropship_sync.core.usecases.import_catalog import ImportCatalogUseCase
from dropship_sync.core.usecases.reconcile_inventory import ReconcileInventoryUseCase
from dropship_sync.presentation.schemas.catalog import (
    CatalogSyncRequest,
    CatalogSyncResponse,
    InventoryReconcileRequest,
    InventoryReconcileResponse,
    InventoryPushRequest,
    InventoryPushResponse,
)
from dropship_sync.shared.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/catalog/sync", response_model=CatalogSyncResponse)
async def sync_catalog(
    tenant_id: str,
    request: CatalogSyncRequest,
    usecase: ImportCatalogUseCase = Depends(get_import_catalog_usecase)
):
    """카테고리 + 상품 수집"""
    try:
        summary = await usecase.execute(
            tenant_id,
            request.provider,
            category_slugs=request.category_slugs,
            max_categories=request.max_categories,
            limit=request.limit
        )
    except DropshippingError as e:
        logger.error(f"카탈로그 수집 실패 {tenant_id}: {e}")
        raise create_http_exception(e)

    return CatalogSyncResponse(**summary.to_dict())


@router.post("/inventory/reconcile", response_model=InventoryReconcileResponse)
async def reconcile_inventory(
    tenant_id: str,
    request: InventoryReconcileRequest,
    usecase: ReconcileInventoryUseCase = Depends(get_reconcile_inventory_usecase)
):
    """공급사 가격/재고 동기화"""
    try:
        summary = await usecase.execute(tenant_id, request.provider, full=request.full)
    except DropshippingError as e:
        logger.error(f"재고 동기화 실패 {tenant_id}: {e}")
        raise create_http_exception(e)

    return InventoryReconcileResponse(**summary.to_dict())


@router.post("/inventory/push", response_model=InventoryPushResponse)
async def push_inventory(
    tenant_id: str,
    request: InventoryPushRequest,
    usecase: ReconcileInventoryUseCase = Depends(get_reconcile_inventory_usecase)
):
    """자체 재고 변경을 공급사로 전달"""
    updates = [InventoryUpdate(**item.model_dump()) for item in request.updates]
    try:
        outcome = await usecase.push_inventory_updates(tenant_id, request.provider, updates)
    except DropshippingError as e:
        raise create_http_exception(e)

    return InventoryPushResponse(provider=request.provider, outcome=outcome.value)
