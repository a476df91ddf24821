"""Category 엔티티 단위 테스트"""
import pytest

from dropship_sync.core.entities.category import (
    Category,
    CategorySource,
    DEFAULT_CATEGORY_SET_VERSION,
    build_default_categories,
    slugify,
)


class TestSlugify:
    """슬러그 변환 테스트"""

    def test_basic(self):
        assert slugify("Electronics & Technology") == "electronics-technology"

    def test_collapses_separators(self):
        assert slugify("  Home -- Garden  ") == "home-garden"

    def test_max_length_strips_trailing_dash(self):
        assert slugify("abc def ghi", max_length=4) == "abc"

    def test_non_ascii_only_name(self):
        assert slugify("手机") == ""


class TestCategoryHierarchy:
    """카테고리 계층 테스트"""

    def test_root_category_path(self):
        category = Category(tenant_id="T1", name="Electronics", slug="electronics")

        assert category.path == "electronics"
        assert category.level == 0
        assert category.is_consistent_with(None)

    def test_attach_to_parent(self):
        parent = Category(tenant_id="T1", name="Electronics", slug="electronics")
        child = Category(tenant_id="T1", name="Phones", slug="phones")

        child.attach_to(parent)

        assert child.parent_id == parent.id
        assert child.level == 1
        assert child.path == "electronics/phones"
        assert child.breadcrumbs == ["Electronics"]
        assert child.is_consistent_with(parent)

    def test_reparent_recomputes_path(self):
        electronics = Category(tenant_id="T1", name="Electronics", slug="electronics")
        phones = Category(tenant_id="T1", name="Phones", slug="phones")
        cases = Category(tenant_id="T1", name="Cases", slug="cases")
        phones.attach_to(electronics)
        cases.attach_to(phones)

        cases.attach_to(None)

        assert cases.path == "cases"
        assert cases.breadcrumbs == []
        assert cases.level == 0
        assert not cases.is_consistent_with(phones)

    def test_cross_tenant_parent_rejected(self):
        parent = Category(tenant_id="T1", name="Electronics", slug="electronics")
        child = Category(tenant_id="T2", name="Phones", slug="phones")

        with pytest.raises(ValueError):
            child.attach_to(parent)

    def test_cycle_rejected(self):
        root = Category(tenant_id="T1", name="A", slug="a")
        child = Category(tenant_id="T1", name="B", slug="b")
        child.attach_to(root)

        with pytest.raises(ValueError):
            root.attach_to(child)

    def test_external_mapping(self):
        category = Category(tenant_id="T1", name="Electronics", slug="electronics")
        category.map_external("alibaba", 509)

        assert category.external_id_for("alibaba") == "509"
        assert category.external_id_for("other") is None


class TestDefaultCategories:
    """기본 카테고리 세트 테스트"""

    def test_default_set_is_deterministic(self):
        first = [c.slug for c in build_default_categories("T1")]
        second = [c.slug for c in build_default_categories("T1")]

        assert first == second
        assert len(first) == 5

    def test_default_set_has_no_external_mappings(self):
        for category in build_default_categories("T1"):
            assert category.external_mappings == {}
            assert category.source == CategorySource.DEFAULT
            assert category.is_default
            assert category.default_set_version == DEFAULT_CATEGORY_SET_VERSION
            assert category.is_featured
