"""Run-local map from external key to persisted entity."""

from typing import Dict, Generic, Hashable, Iterator, Optional, TypeVar

E = TypeVar("E")


class EntityLookupCache(Generic[E]):
    """Entities of one kind keyed by external id (or a scoped tuple key).

    Built with one bulk query at the start of a run and extended by the engine as rows
    are created, so later records of the same run resolve references to them.
    """

    def __init__(self, entries: Optional[Dict[Hashable, E]] = None):
        """Create the cache from preloaded ``entries``."""
        self._entries: Dict[Hashable, E] = dict(entries or {})

    def get(self, key: Hashable) -> Optional[E]:
        """Entity for ``key`` or None."""
        return self._entries.get(key)

    def put(self, key: Hashable, entity: E) -> None:
        """Register ``entity`` under ``key``."""
        self._entries[key] = entity

    def values(self):
        """All cached entities."""
        return self._entries.values()

    def items(self):
        """All ``(key, entity)`` pairs."""
        return self._entries.items()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._entries)
