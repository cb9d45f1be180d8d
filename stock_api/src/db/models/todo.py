from __future__ import annotations

from enum import IntEnum
from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntPkMixin, TimestampMixin


class TodoStatus(IntEnum):
    TODO = 1
    IN_PROGRESS = 2
    COMPLETED = 3


class TodoPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class TodoItem(IntPkMixin, TimestampMixin, Base):
    """Simple task tracked alongside inventory work."""
    __tablename__ = "todo_items"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(TodoStatus.TODO), server_default=str(int(TodoStatus.TODO))
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(TodoPriority.MEDIUM), server_default=str(int(TodoPriority.MEDIUM))
    )
