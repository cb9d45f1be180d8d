from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import NotFoundError
from src.db.base import utcnow
from src.db.models.todo import TodoItem, TodoPriority, TodoStatus
from src.repositories.todo import TodoRepository
from src.schemas.todo import TodoCreate, TodoRead, TodoUpdate
from src.services.base import BaseService


class TodoService(BaseService):
    """Todo use cases. Todos do not affect the dashboard cache."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TodoRepository(session)

    # PUBLIC_INTERFACE
    async def list_todos(
        self,
        *,
        status: Optional[TodoStatus] = None,
        priority: Optional[TodoPriority] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[TodoRead]:
        items = await self.repo.list_todos(status=status, priority=priority, limit=limit, offset=offset)
        return [TodoRead.model_validate(t) for t in items]

    # PUBLIC_INTERFACE
    async def get_todo(self, todo_id: int) -> TodoRead:
        return TodoRead.model_validate(await self._get_or_404(todo_id))

    # PUBLIC_INTERFACE
    async def create_todo(self, payload: TodoCreate) -> TodoRead:
        todo = TodoItem(
            title=payload.title.strip(),
            description=payload.description,
            status=int(payload.status),
            priority=int(payload.priority),
        )
        await self.repo.add(todo)
        await self.commit()

        result = TodoRead.model_validate(todo)
        await self._publish("todo.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_todo(self, todo_id: int, payload: TodoUpdate) -> TodoRead:
        todo = await self._get_or_404(todo_id)
        if payload.title is not None:
            todo.title = payload.title.strip()
        if payload.description is not None:
            todo.description = payload.description
        if payload.status is not None:
            todo.status = int(payload.status)
        if payload.priority is not None:
            todo.priority = int(payload.priority)
        todo.updated_at = utcnow()
        await self.commit()

        result = TodoRead.model_validate(todo)
        await self._publish("todo.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_todo(self, todo_id: int) -> None:
        todo = await self._get_or_404(todo_id)
        await self.repo.delete(todo)
        await self.commit()
        await self._publish("todo.deleted", {"id": todo_id})

    async def _get_or_404(self, todo_id: int) -> TodoItem:
        todo = await self.repo.get(todo_id)
        if not todo:
            raise NotFoundError(f"Todo with ID {todo_id} not found.")
        return todo
