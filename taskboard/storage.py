from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from . import ordering
from .db import Board, ColumnModel, Task
from .errors import Conflict, InvalidPermutation, NotFound
from .guard import OwnershipGuard
from .ordered import BOARDS, COLUMNS, TASKS, OrderedCollectionStore
from .utils import clean_text, new_id

logger = logging.getLogger(__name__)


class Storage:
    """Ordered boards, columns and tasks of one database session."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.guard = OwnershipGuard(session)
        self.store = OrderedCollectionStore(session)

    # === Board operations ===
    def list_boards(self, owner: str) -> tuple[list[Board], int]:
        return self.store.children(BOARDS, owner), self.store.version(BOARDS, owner)

    def get_board(self, owner: str, board_id: str) -> Board:
        return self.guard.board(owner, board_id)

    def create_board(
        self,
        owner: str,
        title: str,
        description: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Board:
        with self.store.transaction():
            self.store.lock(BOARDS, owner)
            current, rows = self.store.current_order(BOARDS, owner)
            board = Board(
                id=new_id(),
                owner=owner,
                title=title.strip(),
                description=clean_text(description),
                position=len(current),
            )
            plan = ordering.append(current, board.id) if order is None else ordering.insert_at(current, board.id, order)
            self.session.add(board)
            rows[board.id] = board
            self.store.apply_reindex(BOARDS, owner, plan, rows)
        return board

    def update_board(self, owner: str, board_id: str, fields: dict) -> Board:
        with self.store.transaction():
            board = self.guard.board(owner, board_id)
            if fields.get("title") is not None:
                board.title = fields["title"].strip()
            if "description" in fields:
                board.description = clean_text(fields["description"])
        return board

    def delete_board(self, owner: str, board_id: str) -> None:
        self.guard.board(owner, board_id)
        with self.store.transaction():
            self.store.lock(BOARDS, owner)
            current, rows = self.store.current_order(BOARDS, owner)
            if board_id not in rows:
                raise NotFound("Board not found")
            # columns and tasks go with it through the relationship cascade
            self.session.delete(rows.pop(board_id))
            self.store.apply_reindex(BOARDS, owner, ordering.remove(current, board_id), rows)
        logger.info("deleted board %s of %s", board_id, owner)

    def reorder_boards(self, owner: str, board_ids: Sequence[str], expected_version: Optional[int] = None) -> None:
        with self.store.transaction():
            self.store.lock(BOARDS, owner, expected_version)
            current, rows = self.store.current_order(BOARDS, owner)
            changed = self.store.apply_reindex(BOARDS, owner, ordering.reorder(current, board_ids), rows)
        logger.info("reordered %d boards of %s (%d changed)", len(board_ids), owner, changed)

    # === Column operations ===
    def list_columns(self, owner: str, board_id: str) -> tuple[list[ColumnModel], int]:
        board = self.guard.board(owner, board_id)
        return self.store.children(COLUMNS, board_id), board.version

    def create_column(self, owner: str, board_id: str, title: str, order: Optional[int] = None) -> ColumnModel:
        self.guard.board(owner, board_id)
        with self.store.transaction():
            self.store.lock(COLUMNS, board_id)
            current, rows = self.store.current_order(COLUMNS, board_id)
            column = ColumnModel(id=new_id(), board_id=board_id, title=title.strip(), position=len(current))
            plan = (
                ordering.append(current, column.id)
                if order is None
                else ordering.insert_at(current, column.id, order)
            )
            self.session.add(column)
            rows[column.id] = column
            self.store.apply_reindex(COLUMNS, board_id, plan, rows)
        return column

    def update_column(
        self,
        owner: str,
        column_id: str,
        title: Optional[str] = None,
        order: Optional[int] = None,
    ) -> ColumnModel:
        column = self.guard.column(owner, column_id)
        board_id = column.board_id
        with self.store.transaction():
            if order is not None:
                self.store.lock(COLUMNS, board_id)
                current, rows = self.store.current_order(COLUMNS, board_id)
                if column_id not in rows:
                    raise Conflict("Column moved concurrently")
                self.store.apply_reindex(COLUMNS, board_id, ordering.reposition(current, column_id, order), rows)
            if title is not None:
                column.title = title.strip()
        return column

    def delete_column(self, owner: str, column_id: str) -> None:
        board_id = self.guard.column(owner, column_id).board_id
        with self.store.transaction():
            self.store.lock(COLUMNS, board_id)
            current, rows = self.store.current_order(COLUMNS, board_id)
            if column_id not in rows:
                raise NotFound("Column not found")
            self.session.delete(rows.pop(column_id))
            self.store.apply_reindex(COLUMNS, board_id, ordering.remove(current, column_id), rows)
        logger.info("deleted column %s of board %s", column_id, board_id)

    def reorder_columns(
        self,
        owner: str,
        board_id: str,
        column_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> None:
        self.guard.board(owner, board_id)
        with self.store.transaction():
            self.store.lock(COLUMNS, board_id, expected_version)
            current, rows = self.store.current_order(COLUMNS, board_id)
            changed = self.store.apply_reindex(COLUMNS, board_id, ordering.reorder(current, column_ids), rows)
        logger.info("reordered %d columns of board %s (%d changed)", len(column_ids), board_id, changed)

    # === Task operations ===
    def list_tasks(self, owner: str, column_id: str) -> tuple[list[Task], int]:
        column = self.guard.column(owner, column_id)
        return self.store.children(TASKS, column_id), column.version

    def get_task(self, owner: str, task_id: str) -> Task:
        return self.guard.task(owner, task_id)

    def create_task(
        self,
        owner: str,
        column_id: str,
        title: str,
        description: Optional[str] = None,
        type: str = "task",
        priority: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Task:
        self.guard.column(owner, column_id)
        with self.store.transaction():
            self.store.lock(TASKS, column_id)
            current, rows = self.store.current_order(TASKS, column_id)
            task = Task(
                id=new_id(),
                column_id=column_id,
                title=title.strip(),
                description=clean_text(description),
                type=type,
                priority=priority,
                position=len(current),
            )
            plan = ordering.append(current, task.id) if order is None else ordering.insert_at(current, task.id, order)
            self.session.add(task)
            rows[task.id] = task
            self.store.apply_reindex(TASKS, column_id, plan, rows)
        return task

    def update_task(
        self,
        owner: str,
        task_id: str,
        fields: dict,
        column_id: Optional[str] = None,
        order: Optional[int] = None,
    ) -> Task:
        """Edit a task; ``column_id`` and ``order`` move it like a drag would."""
        task = self.guard.task(owner, task_id)
        source_id = task.column_id
        if column_id is not None and column_id != source_id:
            self.guard.column(owner, column_id)
            with self.store.transaction():
                source, dest = self._lock_pair(source_id, column_id, task_id)
                plan = ordering.move_to_index(source[0], dest[0], task_id, order)
                self._apply_move(source_id, column_id, plan, source[1], dest[1])
                self._set_fields(task, fields)
            return task

        with self.store.transaction():
            if order is not None:
                self.store.lock(TASKS, source_id)
                current, rows = self.store.current_order(TASKS, source_id)
                if task_id not in rows:
                    raise Conflict("Task moved concurrently")
                self.store.apply_reindex(TASKS, source_id, ordering.reposition(current, task_id, order), rows)
            self._set_fields(task, fields)
        return task

    def delete_task(self, owner: str, task_id: str) -> None:
        column_id = self.guard.task(owner, task_id).column_id
        with self.store.transaction():
            self.store.lock(TASKS, column_id)
            current, rows = self.store.current_order(TASKS, column_id)
            if task_id not in rows:
                raise NotFound("Task not found")
            self.session.delete(rows.pop(task_id))
            self.store.apply_reindex(TASKS, column_id, ordering.remove(current, task_id), rows)
        logger.info("deleted task %s of column %s", task_id, column_id)

    def reorder_tasks(
        self,
        owner: str,
        column_id: str,
        task_ids: Sequence[str],
        expected_version: Optional[int] = None,
    ) -> None:
        """Apply a full task order to a column.

        The list either reorders the column's own tasks, or contains exactly
        one task from another column owned by the same user, which is then
        moved here. The case is decided before anything is locked and
        re-checked once the locks are held.
        """
        self.guard.column(owner, column_id)
        members = {task.id for task in self.store.children(TASKS, column_id)}
        foreign = list(dict.fromkeys(task_id for task_id in task_ids if task_id not in members))
        if len(foreign) > 1:
            raise InvalidPermutation(extra=foreign, message="Only one task can be moved into a column at a time")

        if not foreign:
            with self.store.transaction():
                self.store.lock(TASKS, column_id, expected_version)
                current, rows = self.store.current_order(TASKS, column_id)
                changed = self.store.apply_reindex(TASKS, column_id, ordering.reorder(current, task_ids), rows)
            logger.info("reordered %d tasks in column %s (%d changed)", len(task_ids), column_id, changed)
            return

        moved_id = foreign[0]
        try:
            source_id = self.guard.task(owner, moved_id).column_id
        except NotFound:
            raise InvalidPermutation(extra=[moved_id], message="Task not found") from None
        with self.store.transaction():
            source, dest = self._lock_pair(source_id, column_id, moved_id, expected_version)
            plan = ordering.move_across_parent(source[0], dest[0], task_ids, moved_id)
            self._apply_move(source_id, column_id, plan, source[1], dest[1])
        logger.info("moved task %s from column %s to %s", moved_id, source_id, column_id)

    def _lock_pair(
        self,
        source_id: str,
        dest_id: str,
        moved_id: str,
        expected_version: Optional[int] = None,
    ) -> tuple[tuple[list[str], dict], tuple[list[str], dict]]:
        # fixed lock order keeps two opposite moves from deadlocking
        for parent_id in sorted((source_id, dest_id)):
            self.store.lock(TASKS, parent_id, expected_version if parent_id == dest_id else None)
        source = self.store.current_order(TASKS, source_id)
        if moved_id not in source[1]:
            raise Conflict("Task moved concurrently")
        return source, self.store.current_order(TASKS, dest_id)

    def _apply_move(self, source_id: str, dest_id: str, plan: ordering.MovePlan, source_rows: dict, dest_rows: dict) -> None:
        moved = source_rows.pop(plan.moved_id)
        dest_rows[plan.moved_id] = moved
        self.store.apply_reindex(TASKS, source_id, plan.source, source_rows)
        self.store.apply_reindex(TASKS, dest_id, plan.dest, dest_rows)

    @staticmethod
    def _set_fields(task: Task, fields: dict) -> None:
        if "title" in fields and fields["title"] is not None:
            task.title = fields["title"].strip()
        if "description" in fields:
            task.description = clean_text(fields["description"])
        if "type" in fields and fields["type"] is not None:
            task.type = fields["type"]
        if "priority" in fields:
            task.priority = fields["priority"]
