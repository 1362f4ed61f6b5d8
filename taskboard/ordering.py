"""Position arithmetic for ordered sibling collections.

Every function here is pure: it takes the authoritative order of a parent's
children (as a list of ids, index == position) and returns the positions the
store has to write. Positions are always dense, ``0..n-1``. Caller-supplied
orderings are treated as untrusted and validated against the current
membership before anything is produced.
"""
from __future__ import annotations

from collections import Counter
from typing import Iterable, NamedTuple, Optional, Sequence

from .errors import InvalidPermutation


class Sibling(NamedTuple):
    id: str
    position: int


class Assignment(NamedTuple):
    child_id: str
    position: int


class MovePlan(NamedTuple):
    moved_id: str
    source: list[Assignment]
    dest: list[Assignment]


def normalize(siblings: Iterable[Sibling]) -> list[str]:
    """Return sibling ids in their current order.

    Ties on ``position`` cannot happen while the store keeps positions dense,
    but rows are still ordered by ``(position, id)`` so the result never
    depends on the order the database returned them in.
    """
    return [s.id for s in sorted(siblings, key=lambda s: (s.position, s.id))]


def dense(ordered_ids: Sequence[str]) -> list[Assignment]:
    return [Assignment(child_id, index) for index, child_id in enumerate(ordered_ids)]


def clamp(index: int, size: int) -> int:
    return max(0, min(index, size))


def validate_permutation(expected: Sequence[str], supplied: Sequence[str]) -> None:
    """Raise :class:`InvalidPermutation` unless ``supplied`` reorders ``expected``."""
    counts = Counter(supplied)
    duplicates = sorted(child_id for child_id, n in counts.items() if n > 1)
    known = set(expected)
    missing = [child_id for child_id in expected if child_id not in counts]
    extra = [child_id for child_id in counts if child_id not in known]
    if duplicates or missing or extra:
        raise InvalidPermutation(missing=missing, extra=extra, duplicates=duplicates)


def _require_new(current: Sequence[str], child_id: str) -> None:
    if child_id in current:
        raise InvalidPermutation(duplicates=[child_id], message="Child is already a member of the collection")


def append(current: Sequence[str], child_id: str) -> list[Assignment]:
    """Place a new child at the end (``position = len(current)``)."""
    _require_new(current, child_id)
    return dense([*current, child_id])


def insert_at(current: Sequence[str], child_id: str, index: int) -> list[Assignment]:
    """Insert a new child at ``index``; later siblings shift up by one."""
    _require_new(current, child_id)
    ordered = list(current)
    ordered.insert(clamp(index, len(ordered)), child_id)
    return dense(ordered)


def reorder(current: Sequence[str], ordered_ids: Sequence[str]) -> list[Assignment]:
    validate_permutation(current, ordered_ids)
    return dense(ordered_ids)


def remove(current: Sequence[str], child_id: str) -> list[Assignment]:
    """Close the gap a deleted (or moved out) child leaves behind."""
    return dense([c for c in current if c != child_id])


def reposition(current: Sequence[str], child_id: str, index: int) -> list[Assignment]:
    """Move an existing child to ``index`` within the same parent."""
    if child_id not in current:
        raise InvalidPermutation(extra=[child_id], message="Child is not a member of the collection")
    ordered = [c for c in current if c != child_id]
    ordered.insert(clamp(index, len(ordered)), child_id)
    return dense(ordered)


def move_across_parent(
    source: Sequence[str],
    dest: Sequence[str],
    dest_ordered_ids: Sequence[str],
    moved_id: str,
) -> MovePlan:
    """Re-parent ``moved_id`` into ``dest`` using the caller's destination order.

    ``dest_ordered_ids`` must be the destination's current children plus
    ``moved_id``, each exactly once. The source keeps its remaining children
    in their previous relative order.
    """
    if moved_id in dest:
        # already a member: a plain reorder of the destination
        return MovePlan(moved_id, [], reorder(dest, dest_ordered_ids))
    if moved_id not in source:
        raise InvalidPermutation(extra=[moved_id], message="Moved child is not a member of the source collection")
    validate_permutation([*dest, moved_id], dest_ordered_ids)
    return MovePlan(moved_id, remove(source, moved_id), dense(dest_ordered_ids))


def move_to_index(
    source: Sequence[str],
    dest: Sequence[str],
    moved_id: str,
    index: Optional[int] = None,
) -> MovePlan:
    """Cross-parent move to ``index`` in ``dest`` (appended when ``None``)."""
    ordered = [c for c in dest if c != moved_id]
    ordered.insert(len(ordered) if index is None else clamp(index, len(ordered)), moved_id)
    return move_across_parent(source, dest, ordered, moved_id)
