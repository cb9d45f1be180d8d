from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TrimmedInput(BaseModel):
    """Request body whose strings are stripped before length checks."""

    class Config:
        str_strip_whitespace = True


# Categories

class CategoryRead(BaseModel):
    """Category with the total stock quantity of its products."""
    id: int = Field(..., description="Category ID")
    name: str = Field(..., description="Category name")
    product_count: int = Field(0, description="Total stock quantity across the category's products")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")


class CategoryCreate(TrimmedInput):
    name: str = Field(..., min_length=1, max_length=200, description="Category name")


class CategoryUpdate(TrimmedInput):
    name: str = Field(..., min_length=1, max_length=200, description="New category name")


# Locations

class LocationRead(BaseModel):
    """Storage location with the number of products stored there."""
    id: int = Field(..., description="Location ID")
    name: str = Field(..., description="Location name")
    description: Optional[str] = Field(None, description="Free-text description")
    product_count: int = Field(0, description="Number of products at this location")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")


class LocationCreate(TrimmedInput):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


class LocationUpdate(TrimmedInput):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)


# Product attributes

class ProductAttributeRead(BaseModel):
    id: int = Field(..., description="Attribute ID")
    product_id: int = Field(..., description="Owning product ID")
    product_name: Optional[str] = Field(None, description="Owning product name")
    key: str = Field(..., description="Attribute key, e.g. 'Color'")
    value: str = Field(..., description="Attribute value, e.g. 'Blue'")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")


class ProductAttributeCreate(TrimmedInput):
    product_id: int = Field(..., ge=1)
    key: str = Field(..., min_length=1, max_length=100)
    value: str = Field(..., min_length=1, max_length=500)


class ProductAttributeUpdate(TrimmedInput):
    key: Optional[str] = Field(None, min_length=1, max_length=100)
    value: Optional[str] = Field(None, min_length=1, max_length=500)


# Products

class ProductPriceRead(BaseModel):
    """Price history snapshot."""
    id: int
    product_id: int
    purchase_price: float
    sale_price: float
    effective_date: datetime

    class Config:
        from_attributes = True


class ProductRead(BaseModel):
    """Product listing row."""
    id: int = Field(..., description="Product ID")
    name: str = Field(..., description="Product name")
    stock_code: str = Field(..., description="Generated stock code (AAA999)")
    description: str = Field("", description="Description")
    stock_quantity: int = Field(..., description="Current on-hand quantity")
    low_stock_threshold: int = Field(..., description="Quantity below which the product is critical")
    image_path: Optional[str] = Field(None, description="Image path or URL")
    current_purchase_price: float = Field(..., description="Current purchase (cost) price")
    current_sale_price: float = Field(..., description="Current sale price")
    category_id: int = Field(..., description="Category ID")
    category_name: Optional[str] = Field(None, description="Category name")
    location_id: Optional[int] = Field(None, description="Location ID")
    location_name: Optional[str] = Field(None, description="Location name")
    created_at: datetime = Field(..., description="Created timestamp")
    updated_at: datetime = Field(..., description="Updated timestamp")


class ProductAttributeBrief(BaseModel):
    id: int
    key: str
    value: str


class ProductDetail(ProductRead):
    """Product with attributes and price history (newest first)."""
    attributes: List[ProductAttributeBrief] = Field(default_factory=list)
    price_history: List[ProductPriceRead] = Field(default_factory=list)


class ProductCreate(TrimmedInput):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    stock_quantity: int = Field(0, ge=0, description="Initial quantity; recorded as an inbound movement when > 0")
    low_stock_threshold: int = Field(5, ge=0)
    category_id: int = Field(..., ge=1)
    location_id: Optional[int] = Field(None, ge=1)
    image_path: Optional[str] = Field(None, max_length=500)
    purchase_price: float = Field(..., description="Purchase price; must be greater than 0")
    sale_price: float = Field(..., description="Sale price; must be greater than 0")


class ProductUpdate(TrimmedInput):
    """Partial product update. location_id = -1 clears the location."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = Field(None, ge=1)
    location_id: Optional[int] = Field(None, ge=-1)
    image_path: Optional[str] = Field(None, max_length=500)
    purchase_price: Optional[float] = Field(None)
    sale_price: Optional[float] = Field(None)


class CriticalProductRead(BaseModel):
    """Product under its low-stock threshold."""
    id: int
    name: str
    stock_code: str
    category_name: Optional[str] = None
    location_name: Optional[str] = None
    stock_quantity: int
    low_stock_threshold: int
    shortfall: int = Field(..., description="threshold - quantity")
