from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .auth import get_current_user
from .config import Settings, get_settings
from .db import Board, ColumnModel, Task, get_session, init_db, make_engine, make_session_factory
from .errors import BadRequest, install_error_handlers
from .schemas import (
    BoardIn,
    BoardOut,
    BoardPatch,
    BoardReorder,
    ColumnIn,
    ColumnOut,
    ColumnPatch,
    ColumnReorder,
    ErrorEnvelope,
    Health,
    ReorderResult,
    TaskIn,
    TaskOut,
    TaskPatch,
    TaskReorder,
)
from .storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        code: {"model": ErrorEnvelope}
        for code in (400, 401, 404, 409, 500)
    }
)


# === Helpers ===


def get_storage(session: Session = Depends(get_session)) -> Storage:
    return Storage(session)


def board_out(board: Board) -> BoardOut:
    return BoardOut(
        id=board.id,
        title=board.title,
        description=board.description,
        owner=board.owner,
        position=board.position,
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


def column_out(column: ColumnModel) -> ColumnOut:
    return ColumnOut(
        id=column.id,
        boardId=column.board_id,
        title=column.title,
        position=column.position,
        createdAt=column.created_at,
        updatedAt=column.updated_at,
    )


def task_out(task: Task) -> TaskOut:
    return TaskOut(
        id=task.id,
        columnId=task.column_id,
        title=task.title,
        description=task.description,
        type=task.type,
        priority=task.priority,
        position=task.position,
        createdAt=task.created_at,
        updatedAt=task.updated_at,
    )


def expected_version(if_match: Optional[str] = Header(default=None, alias="If-Match")) -> Optional[int]:
    if if_match is None or if_match.strip() == "*":
        return None
    try:
        return int(if_match.strip().removeprefix("W/").strip('"'))
    except ValueError:
        raise BadRequest("If-Match must be a collection version") from None


def set_etag(response: Response, version: int) -> None:
    response.headers["ETag"] = f'"{version}"'


# === Health ===


@router.get("/health", response_model=Health)
def health() -> Health:
    return Health()


# === Board endpoints ===


@router.get("/boards", response_model=list[BoardOut])
def list_boards(
    response: Response,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    boards, version = storage.list_boards(user)
    set_etag(response, version)
    return [board_out(b) for b in boards]


@router.post("/boards", response_model=BoardOut, status_code=201)
def create_board(
    payload: BoardIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return board_out(storage.create_board(user, payload.title, payload.description, payload.order))


@router.put("/boards/reorder", response_model=ReorderResult)
def reorder_boards(
    payload: BoardReorder,
    user: str = Depends(get_current_user),
    version: Optional[int] = Depends(expected_version),
    storage: Storage = Depends(get_storage),
):
    storage.reorder_boards(user, payload.boardIds, version)
    return ReorderResult()


@router.get("/boards/{board_id}", response_model=BoardOut)
def get_board(board_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return board_out(storage.get_board(user, board_id))


@router.patch("/boards/{board_id}", response_model=BoardOut)
def update_board(
    board_id: str,
    payload: BoardPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return board_out(storage.update_board(user, board_id, payload.model_dump(exclude_unset=True)))


@router.delete("/boards/{board_id}", status_code=204)
def delete_board(board_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_board(user, board_id)
    return Response(status_code=204)


# === Column endpoints ===


@router.get("/boards/{board_id}/columns", response_model=list[ColumnOut])
def list_columns(
    board_id: str,
    response: Response,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    columns, version = storage.list_columns(user, board_id)
    set_etag(response, version)
    return [column_out(c) for c in columns]


@router.post("/boards/{board_id}/columns", response_model=ColumnOut, status_code=201)
def create_column(
    board_id: str,
    payload: ColumnIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return column_out(storage.create_column(user, board_id, payload.title, payload.order))


@router.put("/boards/{board_id}/columns/reorder", response_model=ReorderResult)
def reorder_columns(
    board_id: str,
    payload: ColumnReorder,
    user: str = Depends(get_current_user),
    version: Optional[int] = Depends(expected_version),
    storage: Storage = Depends(get_storage),
):
    storage.reorder_columns(user, board_id, payload.columnIds, version)
    return ReorderResult()


@router.patch("/columns/{column_id}", response_model=ColumnOut)
def update_column(
    column_id: str,
    payload: ColumnPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return column_out(storage.update_column(user, column_id, payload.title, payload.order))


@router.delete("/columns/{column_id}", status_code=204)
def delete_column(column_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_column(user, column_id)
    return Response(status_code=204)


# === Task endpoints ===


@router.get("/columns/{column_id}/tasks", response_model=list[TaskOut])
def list_tasks(
    column_id: str,
    response: Response,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    tasks, version = storage.list_tasks(user, column_id)
    set_etag(response, version)
    return [task_out(t) for t in tasks]


@router.post("/columns/{column_id}/tasks", response_model=TaskOut, status_code=201)
def create_task(
    column_id: str,
    payload: TaskIn,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    task = storage.create_task(
        user,
        column_id,
        payload.title,
        payload.description,
        payload.type,
        payload.priority,
        payload.order,
    )
    return task_out(task)


@router.put("/columns/{column_id}/tasks/reorder", response_model=ReorderResult)
def reorder_tasks(
    column_id: str,
    payload: TaskReorder,
    user: str = Depends(get_current_user),
    version: Optional[int] = Depends(expected_version),
    storage: Storage = Depends(get_storage),
):
    storage.reorder_tasks(user, column_id, payload.taskIds, version)
    return ReorderResult()


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return task_out(storage.get_task(user, task_id))


@router.patch("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    payload: TaskPatch,
    user: str = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    fields = payload.model_dump(exclude_unset=True, exclude={"columnId", "order"})
    return task_out(storage.update_task(user, task_id, fields, payload.columnId, payload.order))


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: str, user: str = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    storage.delete_task(user, task_id)
    return Response(status_code=204)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    engine = make_engine(settings.database_url, settings.sqlite_busy_timeout)
    init_db(engine)

    app = FastAPI(title="Taskboard API", version="1.0.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    install_error_handlers(app)
    app.include_router(router)
    logger.info("taskboard api ready on %s", engine.url.render_as_string(hide_password=True))
    return app
