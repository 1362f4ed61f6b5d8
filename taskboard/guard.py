from __future__ import annotations

import logging
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import Board, ColumnModel, Task
from .errors import NotFound

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"


class Decision(NamedTuple):
    allowed: bool
    reason: Optional[str] = None
    board: Optional[Board] = None


def _decide(owner: Optional[str], principal: str) -> Optional[str]:
    if owner is None:
        return NOT_FOUND
    if owner != principal:
        return FORBIDDEN
    return None


class OwnershipGuard:
    """Confirms that a principal owns the board an entity belongs to.

    Both denial reasons are reported to callers as :class:`NotFound` so the
    existence of another user's data never leaks.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def check_board(self, principal: str, board_id: str) -> Decision:
        board = self.session.get(Board, board_id)
        reason = _decide(board.owner if board else None, principal)
        if reason:
            return Decision(False, reason)
        return Decision(True, board=board)

    def board(self, principal: str, board_id: str) -> Board:
        decision = self.check_board(principal, board_id)
        if not decision.allowed:
            self._deny("board", board_id, principal, decision.reason)
        return decision.board

    def column(self, principal: str, column_id: str) -> ColumnModel:
        row = self.session.execute(
            select(ColumnModel, Board.owner)
            .join(Board, ColumnModel.board_id == Board.id)
            .where(ColumnModel.id == column_id)
        ).first()
        reason = _decide(row.owner if row else None, principal)
        if reason:
            self._deny("column", column_id, principal, reason)
        return row[0]

    def task(self, principal: str, task_id: str) -> Task:
        row = self.session.execute(
            select(Task, Board.owner)
            .join(ColumnModel, Task.column_id == ColumnModel.id)
            .join(Board, ColumnModel.board_id == Board.id)
            .where(Task.id == task_id)
        ).first()
        reason = _decide(row.owner if row else None, principal)
        if reason:
            self._deny("task", task_id, principal, reason)
        return row[0]

    def _deny(self, kind: str, entity_id: str, principal: str, reason: Optional[str]) -> None:
        logger.debug("denied %s %s for %s: %s", kind, entity_id, principal, reason)
        raise NotFound(f"{kind.capitalize()} not found")
