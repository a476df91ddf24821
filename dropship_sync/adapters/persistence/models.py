"""SQLAlchemy 모델"""
from typing import Tuple
import uuid

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Integer, JSON, Numeric, String, Text,
    UniqueConstraint, Index,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.sql import func


# 데이터베이스 모델 베이스
class Base(DeclarativeBase):
    pass


def _uuid() -> str:
    return uuid.uuid4().hex


def create_engine_and_session(
    database_url: str,
    echo: bool = False
) -> Tuple[AsyncEngine, async_sessionmaker]:
    """비동기 엔진 + 세션 팩토리 생성"""
    engine = create_async_engine(database_url, echo=echo)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, session_factory


async def init_models(engine: AsyncEngine) -> None:
    """테이블 생성"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# 카테고리 테이블
class CategoryModel(Base):
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("tenant_id", "slug", name="uq_categories_tenant_slug"),
    )

    id = Column(String(32), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    parent_id = Column(String(32), index=True)
    level = Column(Integer, default=0, nullable=False)
    path = Column(String(1024), nullable=False)
    breadcrumbs = Column(JSON, default=list)
    description = Column(Text)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    product_count = Column(Integer, default=0, nullable=False)
    external_mappings = Column(JSON, default=dict)
    source = Column(String(20), default="provider", nullable=False)
    default_set_version = Column(String(20))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# 상품 테이블
class ProductModel(Base):
    __tablename__ = "products"
    __table_args__ = (
        # 드랍십 멱등성 키
        UniqueConstraint(
            "tenant_id", "dropship_provider", "dropship_product_id",
            name="uq_products_dropship_key"
        ),
        Index("ix_products_tenant_category", "tenant_id", "category_slug", "is_active"),
    )

    id = Column(String(32), primary_key=True, default=_uuid)
    tenant_id = Column(String(64), index=True, nullable=False)
    name = Column(String(500), nullable=False)
    slug = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Numeric(12, 2), nullable=False)
    list_price = Column(Numeric(12, 2))
    supplier_price = Column(Numeric(12, 2))
    markup_factor = Column(Numeric(6, 3))
    category_slug = Column(String(255), nullable=False)
    sku = Column(String(255), nullable=False)
    images = Column(JSON, default=list)
    quantity = Column(Integer, default=0, nullable=False)
    low_stock_threshold = Column(Integer, default=10, nullable=False)
    in_stock = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_dropship = Column(Boolean, default=False, nullable=False)
    dropship_provider = Column(String(50))
    dropship_product_id = Column(String(100))
    tags = Column(JSON, default=list)
    variants = Column(JSON, default=list)
    supplier_info = Column(JSON, default=dict)
    inventory_synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# 공급사 주문 매핑 테이블
class ExternalOrderMappingModel(Base):
    __tablename__ = "external_order_mappings"
    __table_args__ = (
        UniqueConstraint("tenant_id", "internal_order_id", "provider", name="uq_order_mapping_group"),
        Index("ix_order_mapping_external", "tenant_id", "provider", "external_order_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    internal_order_id = Column(String(100), nullable=False)
    provider = Column(String(50), nullable=False)
    external_order_id = Column(String(100))
    status = Column(String(20), nullable=False, default="pending")
    provider_payload = Column(JSON, default=dict)
    error_message = Column(Text)
    shipping_cost = Column(Numeric(12, 2))
    estimated_delivery_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# 동기화 상태 테이블
class SyncRunModel(Base):
    __tablename__ = "sync_runs"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider", name="uq_sync_runs_tenant_provider"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    provider = Column(String(50), nullable=False)
    last_category_sync_at = Column(DateTime(timezone=True))
    last_product_import_at = Column(DateTime(timezone=True))
    last_inventory_sync_at = Column(DateTime(timezone=True))
    category_source = Column(String(20))
