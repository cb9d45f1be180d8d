from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.db.models.inventory import StockMovementType


class StockMovementRead(BaseModel):
    """Ledger entry with product/category context."""
    id: int = Field(..., description="Movement ID")
    product_id: int = Field(..., description="Product ID")
    product_name: str = Field(..., description="Product name")
    category_id: int = Field(..., description="Category ID captured at creation")
    category_name: str = Field(..., description="Category name")
    type: StockMovementType = Field(..., description="1 = In, 2 = Out")
    type_text: str = Field(..., description="'In' or 'Out'")
    quantity: int = Field(..., description="Moved quantity (always positive)")
    unit_price: float = Field(..., description="Unit price applied to the movement")
    total_value: float = Field(..., description="quantity * unit_price")
    description: Optional[str] = Field(None, description="Free-text description")
    current_stock_quantity: int = Field(..., description="Product's current on-hand quantity")
    low_stock_threshold: int = Field(..., description="Product's low-stock threshold")
    created_at: datetime = Field(..., description="Created timestamp")


class StockMovementCreate(BaseModel):
    """Record an inbound or outbound movement."""
    product_id: int = Field(..., ge=1)
    type: StockMovementType = Field(..., description="1 = In, 2 = Out")
    quantity: int = Field(..., gt=0, description="Quantity to move; must be greater than 0")
    unit_price: Optional[float] = Field(
        None,
        gt=0,
        description="Defaults to the product's purchase price (In) or sale price (Out)",
    )
    description: Optional[str] = Field(None, max_length=1000)
