from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody


class Health(BaseModel):
    status: str = "ok"


class InputModel(BaseModel):
    # min_length checks apply to the stripped value
    model_config = ConfigDict(str_strip_whitespace=True)


class BoardIn(InputModel):
    title: str = Field(min_length=1, max_length=140)
    description: Optional[str] = Field(default=None, max_length=2000)
    order: Optional[int] = None


class BoardPatch(InputModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=140)
    description: Optional[str] = Field(default=None, max_length=2000)


class BoardOut(BaseModel):
    id: str
    title: str
    description: Optional[str]
    owner: str
    position: int
    createdAt: datetime
    updatedAt: datetime


class BoardReorder(BaseModel):
    boardIds: list[str]


class ColumnIn(InputModel):
    title: str = Field(min_length=1, max_length=80)
    order: Optional[int] = None


class ColumnPatch(InputModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=80)
    order: Optional[int] = None


class ColumnOut(BaseModel):
    id: str
    boardId: str
    title: str
    position: int
    createdAt: datetime
    updatedAt: datetime


class ColumnReorder(BaseModel):
    columnIds: list[str]


class TaskIn(InputModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    type: str = Field(default="task", min_length=1, max_length=40)
    priority: Optional[str] = Field(default=None, max_length=20)
    order: Optional[int] = None


class TaskPatch(InputModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    type: Optional[str] = Field(default=None, min_length=1, max_length=40)
    priority: Optional[str] = Field(default=None, max_length=20)
    columnId: Optional[str] = None
    order: Optional[int] = None


class TaskOut(BaseModel):
    id: str
    columnId: str
    title: str
    description: Optional[str]
    type: str
    priority: Optional[str]
    position: int
    createdAt: datetime
    updatedAt: datetime


class TaskReorder(BaseModel):
    taskIds: list[str]


class ReorderResult(BaseModel):
    success: bool = True
