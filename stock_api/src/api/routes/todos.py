from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.models.todo import TodoPriority, TodoStatus
from src.db.session import get_async_session
from src.schemas.todo import TodoCreate, TodoRead, TodoUpdate
from src.services.todo import TodoService

router = APIRouter(prefix="/todos", tags=["Todos"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoRead],
    summary="List todos",
    description="Open items first, then by priority (high to low), then newest.",
    dependencies=[Depends(require_permission("CanViewTodos"))],
)
async def list_todos(
    session: AsyncSession = Depends(get_async_session),
    status_filter: Optional[TodoStatus] = Query(None, alias="status", description="1 = Todo, 2 = InProgress, 3 = Completed"),
    priority: Optional[TodoPriority] = Query(None, description="1 = Low, 2 = Medium, 3 = High"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[TodoRead]:
    return await TodoService(session).list_todos(status=status_filter, priority=priority, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get(
    "/{todo_id}",
    response_model=TodoRead,
    summary="Get todo",
    dependencies=[Depends(require_permission("CanViewTodos"))],
)
async def get_todo(
    todo_id: int = Path(..., description="Todo ID"),
    session: AsyncSession = Depends(get_async_session),
) -> TodoRead:
    return await TodoService(session).get_todo(todo_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TodoRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create todo",
    dependencies=[Depends(require_permission("CanManageTodos"))],
)
async def create_todo(payload: TodoCreate, session: AsyncSession = Depends(get_async_session)) -> TodoRead:
    return await TodoService(session).create_todo(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{todo_id}",
    response_model=TodoRead,
    summary="Update todo",
    description="Partial update; omitted fields are left unchanged.",
    dependencies=[Depends(require_permission("CanManageTodos"))],
)
async def update_todo(
    payload: TodoUpdate,
    todo_id: int = Path(..., description="Todo ID"),
    session: AsyncSession = Depends(get_async_session),
) -> TodoRead:
    return await TodoService(session).update_todo(todo_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete todo",
    dependencies=[Depends(require_permission("CanManageTodos"))],
)
async def delete_todo(
    todo_id: int = Path(..., description="Todo ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await TodoService(session).delete_todo(todo_id)
