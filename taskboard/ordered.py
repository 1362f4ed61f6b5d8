"""Transactional persistence of sibling positions.

A mutating flow always looks like::

    with store.transaction():
        store.lock(TASKS, column_id)
        current, rows = store.current_order(TASKS, column_id)
        store.apply_reindex(TASKS, column_id, ordering.reorder(current, ids), rows)

``lock`` is the first write of the transaction. It bumps the parent's
``version``, which takes the row lock (or the SQLite write lock) so that two
writers on the same parent never interleave, and the membership read that
follows is the one the write is based on.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Base, Board, ColumnModel, Task, User
from .errors import Conflict, Internal, NotFound
from .ordering import Assignment, Sibling, normalize

logger = logging.getLogger(__name__)

_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "could not serialize",
    "deadlock",
    "lock wait timeout",
    "lock timeout",
)
_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03"}


@dataclass(frozen=True)
class Collection:
    name: str
    model: type[Base]
    parent_attr: str
    parent_model: type[Base]


BOARDS = Collection("boards", Board, "owner", User)
COLUMNS = Collection("columns", ColumnModel, "board_id", Board)
TASKS = Collection("tasks", Task, "column_id", ColumnModel)


def is_contention(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in _CONTENTION_SQLSTATES:
        return True
    text = str(orig or exc).lower()
    return any(marker in text for marker in _CONTENTION_MARKERS)


class OrderedCollectionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[OrderedCollectionStore]:
        """Commit everything done inside the block, or nothing at all."""
        try:
            yield self
            self.session.commit()
        except OperationalError as exc:
            self.session.rollback()
            if is_contention(exc):
                logger.info("write conflict: %s", exc.orig)
                raise Conflict() from exc
            logger.exception("storage failure")
            raise Internal("Storage failure") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("storage failure")
            raise Internal("Storage failure") from exc
        except BaseException:
            self.session.rollback()
            raise

    def lock(self, kind: Collection, parent_id: str, expected_version: Optional[int] = None) -> int:
        """Serialize writers on ``parent_id`` and return its new version."""
        parent = kind.parent_model
        stmt = update(parent).where(parent.id == parent_id)
        if expected_version is not None:
            stmt = stmt.where(parent.version == expected_version)
        stmt = stmt.values(version=parent.version + 1).execution_options(synchronize_session=False)
        if self.session.execute(stmt).rowcount:
            return self.session.scalar(select(parent.version).where(parent.id == parent_id))

        exists = self.session.scalar(select(parent.id).where(parent.id == parent_id)) is not None
        if exists:
            raise Conflict(f"{kind.name} of {parent_id} changed since version {expected_version}")
        if parent is not User:
            raise NotFound(f"{parent.__name__.replace('Model', '')} not found")
        if expected_version not in (None, 0):
            raise Conflict(f"{kind.name} of {parent_id} changed since version {expected_version}")
        # first board mutation of this owner
        self.session.add(User(id=parent_id, version=1))
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise Conflict() from exc
        return 1

    def version(self, kind: Collection, parent_id: str) -> int:
        parent = kind.parent_model
        return self.session.scalar(select(parent.version).where(parent.id == parent_id)) or 0

    def children(self, kind: Collection, parent_id: str) -> list:
        model = kind.model
        stmt = (
            select(model)
            .where(getattr(model, kind.parent_attr) == parent_id)
            .order_by(model.position, model.id)
            .execution_options(populate_existing=True)
        )
        return list(self.session.scalars(stmt))

    def current_order(self, kind: Collection, parent_id: str) -> tuple[list[str], dict]:
        rows = {row.id: row for row in self.children(kind, parent_id)}
        return normalize(Sibling(row.id, row.position) for row in rows.values()), rows

    def apply_reindex(
        self,
        kind: Collection,
        parent_id: str,
        assignments: Sequence[Assignment],
        rows: dict,
    ) -> int:
        """Write the assigned positions; rows under another parent are re-parented."""
        changed = 0
        for child_id, position in assignments:
            row = rows.get(child_id)
            if row is None:
                row = self.session.get(kind.model, child_id)
            if row is None:
                raise NotFound(f"{kind.name} {child_id} vanished during reindex")
            if getattr(row, kind.parent_attr) != parent_id:
                setattr(row, kind.parent_attr, parent_id)
                changed += 1
            if row.position != position:
                row.position = position
                changed += 1
        self.session.flush()
        return changed
