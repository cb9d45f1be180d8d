from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CategoryStats(BaseModel):
    category_id: int = Field(..., description="Category ID; 0 for the aggregated 'Other' bucket")
    category_name: str
    product_count: int
    total_stock: int


class ProductStockStatus(BaseModel):
    product_id: int
    product_name: str
    stock_code: str
    stock_quantity: int
    category_name: str
    status: str = Field(..., description="'Out of Stock' or 'Low Stock'")


class StockDistribution(BaseModel):
    status: str = Field(..., description="'In Stock', 'Low Stock' or 'Out of Stock'")
    count: int
    percentage: int = Field(..., description="Truncated integer percentage of all products")


class CategoryValue(BaseModel):
    category_id: int
    category_name: str
    total_cost: float
    total_potential_revenue: float
    total_potential_profit: float


class ProductValue(BaseModel):
    product_id: int
    product_name: str
    stock_code: str
    inventory_cost: float
    inventory_potential_revenue: float
    potential_profit: float


class RecentStockMovement(BaseModel):
    id: int
    product_name: str
    category_name: str
    type: int = Field(..., description="1 = In, 2 = Out")
    type_text: str
    quantity: int
    description: Optional[str] = None
    created_at: datetime


class StockMovementTrend(BaseModel):
    date: datetime
    date_label: str
    stock_in: int
    stock_out: int


class MostActiveProduct(BaseModel):
    product_id: int
    product_name: str
    stock_code: str
    category_name: str
    total_stock_in: int
    total_stock_out: int
    net_change: int
    total_movements: int


# PUBLIC_INTERFACE
class DashboardStats(BaseModel):
    """Aggregated dashboard snapshot (cached for a short TTL and pushed over WebSocket)."""
    total_categories: int = 0
    total_products: int = 0
    total_product_attributes: int = 0
    total_stock_quantity: int = 0
    low_stock_products: int = 0
    out_of_stock_products: int = 0
    total_stock_movements: int = 0
    today_stock_in: int = 0
    today_stock_out: int = 0
    this_week_stock_in: int = 0
    this_week_stock_out: int = 0
    total_inventory_cost: float = 0.0
    total_inventory_potential_revenue: float = 0.0
    total_expected_sales_revenue: float = 0.0
    total_potential_profit: float = 0.0
    total_purchase_spent: float = 0.0
    average_margin_percentage: float = 0.0
    category_stats: List[CategoryStats] = Field(default_factory=list)
    product_stock_status: List[ProductStockStatus] = Field(default_factory=list)
    stock_distribution: List[StockDistribution] = Field(default_factory=list)
    category_value_distribution: List[CategoryValue] = Field(default_factory=list)
    top_valuable_products: List[ProductValue] = Field(default_factory=list)
    recent_stock_movements: List[RecentStockMovement] = Field(default_factory=list)
    stock_movement_trend: List[StockMovementTrend] = Field(default_factory=list)
    last_year_stock_movement_trend: List[StockMovementTrend] = Field(default_factory=list)
    most_active_products: List[MostActiveProduct] = Field(default_factory=list)
