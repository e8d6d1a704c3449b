"""Snapshot diff engine.

Compares two snapshots of one category by identity key. Additions and
removals come purely from key-set difference; the only state transition
tracked for devices present in both snapshots is network interface
activation. Other field changes that keep the identity key stable (a USB
device renamed in the same slot, for instance) produce no event.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable

from hwwatch.models import (
    Category,
    ChangeEvent,
    ChangeKind,
    NetworkInterface,
    Snapshot,
    identity_key,
)


@dataclass(slots=True, frozen=True)
class DiffResult:
    """Identity keys added, removed and changed between two snapshots."""

    added: frozenset = field(default_factory=frozenset)
    removed: frozenset = field(default_factory=frozenset)
    changed: frozenset = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def index_snapshot(category: Category, snapshot: Iterable[Any]) -> dict[Hashable, Any]:
    """Map identity key to record. Duplicate keys collapse, last one wins."""
    return {identity_key(category, item): item for item in snapshot}


def _state_changed(category: Category, before: Any, after: Any) -> bool:
    if category is Category.NETWORK and isinstance(after, NetworkInterface):
        return before.is_active != after.is_active
    return False


def diff(category: Category, previous: Snapshot, current: Snapshot) -> DiffResult:
    """
    Compute the difference between two snapshots of a category.

    Args:
        category: Category both snapshots belong to.
        previous: Snapshot from the last accepted observation.
        current: Freshly collected snapshot.

    Returns:
        DiffResult with identity keys. Scalar categories report a change
        as the single key None.
    """
    if category.is_scalar:
        if previous == current:
            return DiffResult()
        return DiffResult(changed=frozenset([None]))

    before = index_snapshot(category, previous)
    after = index_snapshot(category, current)

    added = after.keys() - before.keys()
    removed = before.keys() - after.keys()
    changed = {
        key
        for key in before.keys() & after.keys()
        if _state_changed(category, before[key], after[key])
    }
    return DiffResult(frozenset(added), frozenset(removed), frozenset(changed))


def diff_events(category: Category, previous: Snapshot, current: Snapshot) -> list[ChangeEvent]:
    """
    Diff two snapshots and build ordered change events.

    Events come out removed, then added, then changed; each group is
    sorted by identity key so the output does not depend on the order
    the collector enumerated devices in.
    """
    result = diff(category, previous, current)

    if category.is_scalar:
        if result.is_empty:
            return []
        return [ChangeEvent(category, ChangeKind.CHANGED, None, previous, current)]

    before = index_snapshot(category, previous)
    after = index_snapshot(category, current)

    events: list[ChangeEvent] = []
    for key in sorted(result.removed):
        events.append(ChangeEvent(category, ChangeKind.REMOVED, key, before=before[key]))
    for key in sorted(result.added):
        events.append(ChangeEvent(category, ChangeKind.ADDED, key, after=after[key]))
    for key in sorted(result.changed):
        events.append(ChangeEvent(category, ChangeKind.CHANGED, key, before[key], after[key]))
    return events
