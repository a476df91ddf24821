"""카테고리 도메인 엔티티"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
from datetime import datetime
import re
import uuid


class CategorySource:
    """카테고리 출처"""
    PROVIDER = "provider"  # 공급사 카테고리 API
    DEFAULT = "default"    # 공급사 장애/미설정 시 기본 세트


def slugify(name: str, max_length: Optional[int] = None) -> str:
    """이름을 URL 슬러그로 변환"""
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug).strip("-")
    if max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


@dataclass
class Category:
    """테넌트별 카테고리 트리 노드

    path / breadcrumbs 는 parent_id 체인에서 파생되는 값이므로
    부모를 바꿀 때는 반드시 attach_to() 를 통해서 바꾼다.
    """
    tenant_id: str
    name: str
    slug: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    parent_id: Optional[str] = None
    level: int = 0
    path: str = ""
    breadcrumbs: List[str] = field(default_factory=list)
    description: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    product_count: int = 0
    external_mappings: Dict[str, str] = field(default_factory=dict)
    source: str = CategorySource.PROVIDER
    default_set_version: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.path:
            self.path = self.slug

    def attach_to(self, parent: Optional["Category"]) -> None:
        """부모 변경 + 계층 필드 재계산"""
        if parent is None:
            self.parent_id = None
            self.level = 0
            self.path = self.slug
            self.breadcrumbs = []
        else:
            if parent.tenant_id != self.tenant_id:
                raise ValueError("다른 테넌트의 카테고리를 부모로 지정할 수 없습니다")
            if parent.id == self.id or self.slug in parent.path.split("/"):
                raise ValueError(f"순환 카테고리 구조: {parent.path} -> {self.slug}")
            self.parent_id = parent.id
            self.level = parent.level + 1
            self.path = f"{parent.path}/{self.slug}"
            self.breadcrumbs = [*parent.breadcrumbs, parent.name]
        self.updated_at = datetime.now()

    def is_consistent_with(self, parent: Optional["Category"]) -> bool:
        """path / breadcrumbs 가 부모 체인과 일치하는지 확인"""
        if parent is None:
            return self.parent_id is None and self.path == self.slug and not self.breadcrumbs
        return (
            self.parent_id == parent.id
            and self.level == parent.level + 1
            and self.path == f"{parent.path}/{self.slug}"
            and self.breadcrumbs == [*parent.breadcrumbs, parent.name]
        )

    def map_external(self, provider: str, provider_category_id: str) -> None:
        """공급사 카테고리 ID 매핑"""
        self.external_mappings[provider] = str(provider_category_id)

    def external_id_for(self, provider: str) -> Optional[str]:
        return self.external_mappings.get(provider)

    @property
    def is_default(self) -> bool:
        return self.source == CategorySource.DEFAULT

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환 (직렬화용)"""
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'slug': self.slug,
            'parent_id': self.parent_id,
            'level': self.level,
            'path': self.path,
            'breadcrumbs': list(self.breadcrumbs),
            'description': self.description,
            'is_active': self.is_active,
            'is_featured': self.is_featured,
            'product_count': self.product_count,
            'external_mappings': dict(self.external_mappings),
            'source': self.source,
            'default_set_version': self.default_set_version,
        }


# 공급사 카테고리를 가져올 수 없을 때 사용하는 기본 카테고리 세트
DEFAULT_CATEGORY_SET_VERSION = "2024.1"

DEFAULT_CATEGORY_SET = (
    {
        "name": "Electronics & Technology",
        "slug": "electronics-technology",
        "description": "Electronic devices, gadgets, and technology products",
    },
    {
        "name": "Fashion & Apparel",
        "slug": "fashion-apparel",
        "description": "Clothing, shoes, and fashion accessories",
    },
    {
        "name": "Home & Garden",
        "slug": "home-garden",
        "description": "Home improvement, furniture, and garden supplies",
    },
    {
        "name": "Health & Beauty",
        "slug": "health-beauty",
        "description": "Beauty products, skincare, and health supplements",
    },
    {
        "name": "Sports & Outdoors",
        "slug": "sports-outdoors",
        "description": "Sporting goods, fitness equipment, and outdoor gear",
    },
)


def build_default_categories(tenant_id: str) -> List[Category]:
    """기본 카테고리 세트 생성 (결정적, 공급사 매핑 없음)"""
    return [
        Category(
            tenant_id=tenant_id,
            name=entry["name"],
            slug=entry["slug"],
            description=entry["description"],
            is_featured=True,
            source=CategorySource.DEFAULT,
            default_set_version=DEFAULT_CATEGORY_SET_VERSION,
        )
        for entry in DEFAULT_CATEGORY_SET
    ]
