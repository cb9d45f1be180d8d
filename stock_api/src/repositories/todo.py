from __future__ import annotations

from typing import List, Optional

from sqlalchemy import case, select

from src.db.models.todo import TodoItem, TodoStatus
from .base import BaseRepository


class TodoRepository(BaseRepository):
    """Repository for todo items."""

    async def list_todos(
        self,
        *,
        status: Optional[int] = None,
        priority: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[TodoItem]:
        stmt = select(TodoItem)
        if status is not None:
            stmt = stmt.where(TodoItem.status == int(status))
        if priority is not None:
            stmt = stmt.where(TodoItem.priority == int(priority))
        completed_last = case((TodoItem.status == int(TodoStatus.COMPLETED), 1), else_=0)
        stmt = (
            stmt.order_by(completed_last, TodoItem.priority.desc(), TodoItem.created_at.desc(), TodoItem.id.desc())
            .offset(offset)
            .limit(limit)
        )
        res = await self.scalars(stmt)
        return list(res)

    async def get(self, todo_id: int) -> Optional[TodoItem]:
        return await self.scalar_one_or_none(select(TodoItem).where(TodoItem.id == todo_id))
