"""Client-side mirror of ordered child lists with optimistic updates.

Each parent's list lives in an :class:`Entry` carrying a local ``revision``
(bumped on every local change) and the ``server_version`` last confirmed by
the service. Mutations take an explicit snapshot first, apply locally, then
run the caller's ``commit``; when that raises, the snapshot is restored and
the error propagates so the caller can refetch.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Entry:
    ids: tuple[str, ...]
    revision: int = 0
    server_version: Optional[int] = None


Snapshot = dict[str, Optional[Entry]]


class OrderedListCache:
    def __init__(self) -> None:
        self._entries: dict[str, Entry] = {}

    def load(self, parent_id: str, ids: Sequence[str], server_version: Optional[int] = None) -> Entry:
        """Replace a list with authoritative server state."""
        previous = self._entries.get(parent_id)
        entry = Entry(tuple(ids), (previous.revision + 1) if previous else 0, server_version)
        self._entries[parent_id] = entry
        return entry

    def get(self, parent_id: str) -> list[str]:
        entry = self._entries.get(parent_id)
        return list(entry.ids) if entry else []

    def entry(self, parent_id: str) -> Optional[Entry]:
        return self._entries.get(parent_id)

    def snapshot(self, *parent_ids: str) -> Snapshot:
        return {parent_id: self._entries.get(parent_id) for parent_id in parent_ids}

    def restore(self, snapshot: Snapshot) -> None:
        for parent_id, entry in snapshot.items():
            if entry is None:
                self._entries.pop(parent_id, None)
            else:
                self._entries[parent_id] = entry

    def _set_local(self, parent_id: str, ids: Sequence[str]) -> None:
        previous = self._entries.get(parent_id) or Entry(())
        # the server version is unknown until the change is confirmed
        self._entries[parent_id] = replace(previous, ids=tuple(ids), revision=previous.revision + 1, server_version=None)

    @contextmanager
    def optimistic(self, *parent_ids: str) -> Iterator[Snapshot]:
        snapshot = self.snapshot(*parent_ids)
        try:
            yield snapshot
        except BaseException:
            self.restore(snapshot)
            raise

    def reorder(self, parent_id: str, ordered_ids: Sequence[str], commit: Callable[[], T]) -> T:
        with self.optimistic(parent_id):
            self._set_local(parent_id, ordered_ids)
            return commit()

    def move(
        self,
        source_id: str,
        dest_id: str,
        dest_ordered_ids: Sequence[str],
        moved_id: str,
        commit: Callable[[], T],
    ) -> T:
        with self.optimistic(source_id, dest_id):
            self._set_local(source_id, [c for c in self.get(source_id) if c != moved_id])
            self._set_local(dest_id, dest_ordered_ids)
            return commit()
