"""Snapshot store holding the last accepted snapshot per category."""

from types import MappingProxyType
from typing import Iterator, Mapping

from hwwatch.models import Category, Snapshot


class SnapshotStore:
    """
    Immutable mapping of category to its most recently accepted snapshot.

    Updates never mutate a store; replace() returns a new one, so a cycle
    can be run as a pure function of (store, collector output).
    """

    __slots__ = ("_snapshots",)

    def __init__(self, snapshots: Mapping[Category, Snapshot] | None = None) -> None:
        self._snapshots = MappingProxyType(dict(snapshots or {}))

    def get(self, category: Category) -> Snapshot | None:
        """Return the stored snapshot for a category, or None."""
        return self._snapshots.get(category)

    def replace(self, category: Category, snapshot: Snapshot) -> "SnapshotStore":
        """Return a new store with the category's snapshot replaced wholesale."""
        snapshots = dict(self._snapshots)
        snapshots[category] = snapshot
        return SnapshotStore(snapshots)

    def categories(self) -> tuple[Category, ...]:
        """Categories with a snapshot, in evaluation order."""
        return tuple(c for c in Category if c in self._snapshots)

    def as_dict(self) -> dict[Category, Snapshot]:
        return dict(self._snapshots)

    def __contains__(self, category: object) -> bool:
        return category in self._snapshots

    def __iter__(self) -> Iterator[Category]:
        return iter(self.categories())

    def __len__(self) -> int:
        return len(self._snapshots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SnapshotStore):
            return NotImplemented
        return dict(self._snapshots) == dict(other._snapshots)

    def __repr__(self) -> str:
        names = ", ".join(c.value for c in self.categories())
        return f"SnapshotStore({names})"
