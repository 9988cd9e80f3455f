"""Category hierarchy resolution.

Categories are reconciled in two passes. The first pass (the engine) creates or updates
every node without touching parent links. This module holds the second pass, which
runs once all nodes of the run exist, so forward references in the flat source list
resolve regardless of order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from catalogsync.core.logging import ContextualLogger
from catalogsync.models.category import Category
from catalogsync.platform.entities import CategoryRecord
from catalogsync.platform.sync.lookup_cache import EntityLookupCache

PATH_SEPARATOR = "/"


@dataclass
class HierarchyOutcome:
    """Counters of one link pass."""

    linked: int = 0
    unchanged: int = 0
    skipped: int = 0

    def summary(self) -> str:
        """Get a summary string of the pass."""
        return f"{self.linked} linked, {self.unchanged} unchanged, {self.skipped} skipped"


def order_parents_first(records: List[CategoryRecord]) -> List[CategoryRecord]:
    """Order records so that a parent present in the list precedes its children.

    Only an ordering aid for the node pass (hierarchical slugs need the parent's slug);
    records in cycles or with unknown parents keep their relative order at the end.
    """
    by_id = {record.external_id: record for record in records}
    ordered: List[CategoryRecord] = []
    placed: Set[str] = set()

    def depth(record: CategoryRecord) -> Optional[int]:
        seen = set()
        level = 0
        current = record
        while not current.is_root:
            if current.external_id in seen:
                return None
            seen.add(current.external_id)
            parent = by_id.get(current.parent_external_id)
            if parent is None:
                return level
            level += 1
            current = parent
        return level

    depths = {record.external_id: depth(record) for record in records}
    for record in sorted(
        (r for r in records if depths[r.external_id] is not None),
        key=lambda r: depths[r.external_id],
    ):
        ordered.append(record)
        placed.add(record.external_id)
    ordered.extend(r for r in records if r.external_id not in placed)
    return ordered


def _would_cycle(child: Category, parent: Category, by_id: Dict[int, Category]) -> bool:
    """Whether making ``parent`` the parent of ``child`` closes a cycle."""
    seen = set()
    current: Optional[Category] = parent
    while current is not None:
        if current.id == child.id:
            return True
        if current.id in seen:
            return True
        seen.add(current.id)
        current = by_id.get(current.parent_id) if current.parent_id is not None else None
    return False


class CategoryHierarchyResolver:
    """Assigns parent links and materialises category paths."""

    def __init__(self, logger: ContextualLogger):
        """Create the resolver."""
        self.logger = logger

    def link_parents(
        self, records: List[CategoryRecord], cache: EntityLookupCache
    ) -> HierarchyOutcome:
        """Point every category at its parent as described by ``records``.

        Self references, unknown parents and links that would close a cycle are skipped
        with a warning and never fail the run. A record without a parent reference
        becomes a root.

        Args:
            records: The category records of this run
            cache: Categories of the platform keyed by external id

        Returns:
            Counters of the pass
        """
        outcome = HierarchyOutcome()
        by_id: Dict[int, Category] = {c.id: c for c in cache.values()}

        for record in records:
            child: Optional[Category] = cache.get(record.external_id)
            if child is None:
                continue

            if record.is_root:
                if child.parent_id is not None:
                    child.parent_id = None
                    outcome.linked += 1
                else:
                    outcome.unchanged += 1
                continue

            if record.parent_external_id == record.external_id:
                self.logger.warning(
                    f"[Hierarchy] Category {record.external_id} references itself as parent"
                )
                outcome.skipped += 1
                continue

            parent: Optional[Category] = cache.get(record.parent_external_id)
            if parent is None:
                self.logger.warning(
                    f"[Hierarchy] Parent {record.parent_external_id} of category "
                    f"{record.external_id} not found"
                )
                outcome.skipped += 1
                continue

            if child.parent_id == parent.id:
                outcome.unchanged += 1
                continue

            if _would_cycle(child, parent, by_id):
                self.logger.warning(
                    f"[Hierarchy] Linking category {record.external_id} under "
                    f"{record.parent_external_id} would create a cycle"
                )
                outcome.skipped += 1
                continue

            child.parent_id = parent.id
            outcome.linked += 1

        self.logger.info(f"[Hierarchy] Parent pass: {outcome.summary()}")
        return outcome

    def assign_paths(self, categories: List[Category]) -> int:
        """Materialise ``category_path`` for ``categories``.

        A path is the slash-joined chain of each ancestor's own segment: a child slug
        that starts with its parent's slug contributes only the remainder.

        Returns:
            Number of categories whose path changed
        """
        by_id: Dict[int, Category] = {c.id: c for c in categories}
        changed = 0
        for category in categories:
            path = self._path_of(category, by_id)
            if category.category_path != path:
                category.category_path = path
                changed += 1
        return changed

    @staticmethod
    def _segment(category: Category, parent: Optional[Category]) -> str:
        if parent is not None and category.slug.startswith(f"{parent.slug}-"):
            return category.slug[len(parent.slug) + 1 :]
        return category.slug

    def _path_of(self, category: Category, by_id: Dict[int, Category]) -> str:
        segments = []
        seen = set()
        current: Optional[Category] = category
        while current is not None and current.id not in seen:
            seen.add(current.id)
            parent = by_id.get(current.parent_id) if current.parent_id is not None else None
            segments.append(self._segment(current, parent))
            current = parent
        return PATH_SEPARATOR.join(reversed(segments))
