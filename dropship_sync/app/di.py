"""의존성 주입 설정

구성 요소는 애플리케이션 시작 시 한 번 만들어 app.state 에 두고, 라우트는 여기서 꺼내 쓴다.
"""
from fastapi import Request

from dropship_sync.core.registry import ProviderRegistry
from dropship_sync.core.usecases.import_catalog import ImportCatalogUseCase
from dropship_sync.core.usecases.reconcile_inventory import ReconcileInventoryUseCase
from dropship_sync.core.usecases.dispatch_order import DispatchOrderUseCase
from dropship_sync.shared.config import Settings


def get_app_settings(request: Request) -> Settings:
    """애플리케이션 설정"""
    return request.app.state.settings


def get_provider_registry(request: Request) -> ProviderRegistry:
    """공급사 레지스트리"""
    return request.app.state.registry


# 유즈케이스
def get_import_catalog_usecase(request: Request) -> ImportCatalogUseCase:
    """카탈로그 수집 유즈케이스"""
    return request.app.state.import_catalog


def get_reconcile_inventory_usecase(request: Request) -> ReconcileInventoryUseCase:
    """재고 동기화 유즈케이스"""
    return request.app.state.reconcile_inventory


def get_dispatch_order_usecase(request: Request) -> DispatchOrderUseCase:
    """주문 전달 유즈케이스"""
    return request.app.state.dispatch_order
