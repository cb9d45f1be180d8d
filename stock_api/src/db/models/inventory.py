from __future__ import annotations

from enum import IntEnum
from typing import Optional

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntPkMixin, TimestampMixin
from src.db.models.catalog import Money


class StockMovementType(IntEnum):
    """Direction of a stock movement; stored as its integer value."""
    IN = 1
    OUT = 2


class StockMovement(IntPkMixin, TimestampMixin, Base):
    """Ledger entry recording an inbound or outbound quantity change for a product."""
    __tablename__ = "stock_movements"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Copied from the product at creation so category reporting survives re-categorisation.
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Money, nullable=False, default=0, server_default="0")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
