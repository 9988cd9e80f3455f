"""Tests for the category hierarchy resolver."""

from unittest.mock import MagicMock

import pytest

from catalogsync.models import Category
from catalogsync.platform.entities import CategoryRecord
from catalogsync.platform.sync.category_hierarchy import (
    CategoryHierarchyResolver,
    order_parents_first,
)
from catalogsync.platform.sync.lookup_cache import EntityLookupCache


def _category(id: int, external_id: str, slug: str, parent_id=None) -> Category:
    return Category(
        id=id,
        platform="asbis",
        external_id=external_id,
        name_en=external_id,
        slug=slug,
        parent_id=parent_id,
    )


def _record(external_id: str, parent=None) -> CategoryRecord:
    return CategoryRecord(external_id=external_id, name_en=external_id, parent_external_id=parent)


@pytest.fixture
def resolver():
    """Resolver with a mock logger."""
    return CategoryHierarchyResolver(MagicMock())


def test_order_parents_first_handles_forward_references():
    """Test that a child listed before its parent is moved after it."""
    records = [_record("child", "root"), _record("grandchild", "child"), _record("root")]

    ordered = [r.external_id for r in order_parents_first(records)]

    assert ordered == ["root", "child", "grandchild"]


def test_order_parents_first_keeps_cycles_at_the_end():
    """Test that records in a cycle are kept, after everything orderable."""
    records = [_record("a", "b"), _record("b", "a"), _record("root")]

    ordered = [r.external_id for r in order_parents_first(records)]

    assert ordered == ["root", "a", "b"]


def test_link_parents_resolves_forward_references(resolver):
    """Test that links are assigned regardless of the order of the source list."""
    laptops = _category(1, "laptops", "laptops")
    gaming = _category(2, "gaming", "laptops-gaming")
    cache = EntityLookupCache({"laptops": laptops, "gaming": gaming})

    outcome = resolver.link_parents([_record("gaming", "laptops"), _record("laptops")], cache)

    assert gaming.parent_id == 1
    assert laptops.parent_id is None
    assert outcome.linked == 1
    assert outcome.unchanged == 1


def test_link_parents_skips_unknown_parent(resolver):
    """Test that a missing parent is a warning, not an error."""
    orphan = _category(1, "orphan", "orphan")
    cache = EntityLookupCache({"orphan": orphan})

    outcome = resolver.link_parents([_record("orphan", "nowhere")], cache)

    assert orphan.parent_id is None
    assert outcome.skipped == 1
    resolver.logger.warning.assert_called_once()


def test_link_parents_skips_self_reference(resolver):
    """Test that a category cannot be its own parent."""
    node = _category(1, "self", "self")
    cache = EntityLookupCache({"self": node})

    outcome = resolver.link_parents([_record("self", "self")], cache)

    assert node.parent_id is None
    assert outcome.skipped == 1


def test_link_parents_refuses_to_close_a_cycle(resolver):
    """Test that the link that would close a cycle is skipped."""
    a = _category(1, "a", "a")
    b = _category(2, "b", "b")
    cache = EntityLookupCache({"a": a, "b": b})

    outcome = resolver.link_parents([_record("a", "b"), _record("b", "a")], cache)

    assert a.parent_id == 2
    assert b.parent_id is None
    assert outcome.linked == 1
    assert outcome.skipped == 1


def test_link_parents_turns_rooted_record_into_root(resolver):
    """Test that a record without parent clears a stale parent link."""
    moved = _category(2, "moved", "moved", parent_id=1)
    cache = EntityLookupCache({"moved": moved, "old": _category(1, "old", "old")})

    outcome = resolver.link_parents([_record("moved", "0")], cache)

    assert moved.parent_id is None
    assert outcome.linked == 1


def test_assign_paths_uses_own_segments(resolver):
    """Test that a child slug prefixed by its parent contributes only its own segment."""
    laptops = _category(1, "laptops", "laptops")
    gaming = _category(2, "gaming", "laptops-gaming", parent_id=1)
    rgb = _category(3, "rgb", "rgb-keyboards", parent_id=2)

    changed = resolver.assign_paths([laptops, gaming, rgb])

    assert laptops.category_path == "laptops"
    assert gaming.category_path == "laptops/gaming"
    assert rgb.category_path == "laptops/gaming/rgb-keyboards"
    assert changed == 3
    assert resolver.assign_paths([laptops, gaming, rgb]) == 0
