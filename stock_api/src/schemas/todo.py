from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.db.models.todo import TodoPriority, TodoStatus


class TodoRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    status: TodoStatus = Field(..., description="1 = Todo, 2 = InProgress, 3 = Completed")
    priority: TodoPriority = Field(..., description="1 = Low, 2 = Medium, 3 = High")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TodoCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: TodoStatus = Field(TodoStatus.TODO)
    priority: TodoPriority = Field(TodoPriority.MEDIUM)


class TodoUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TodoStatus] = Field(None)
    priority: Optional[TodoPriority] = Field(None)
