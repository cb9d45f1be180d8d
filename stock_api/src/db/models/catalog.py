from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, IntPkMixin, TimestampMixin, utcnow

# Money columns are returned as float; amounts are rounded to 2 decimals in responses.
Money = Numeric(18, 2, asdecimal=False)

DEFAULT_LOW_STOCK_THRESHOLD = 5


class Category(IntPkMixin, TimestampMixin, Base):
    """Product category."""
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(200), nullable=False)


class Location(IntPkMixin, TimestampMixin, Base):
    """Storage location (warehouse, branch, showroom)."""
    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Product(IntPkMixin, TimestampMixin, Base):
    """Stocked product with its current prices and on-hand quantity."""
    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    stock_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    low_stock_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_LOW_STOCK_THRESHOLD,
        server_default=str(DEFAULT_LOW_STOCK_THRESHOLD),
    )
    image_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_purchase_price: Mapped[float] = mapped_column(Money, nullable=False, default=0, server_default="0")
    current_sale_price: Mapped[float] = mapped_column(Money, nullable=False, default=0, server_default="0")
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), nullable=True, index=True
    )


class ProductAttribute(IntPkMixin, TimestampMixin, Base):
    """Free-form key/value attribute of a product (e.g. Color: Blue)."""
    __tablename__ = "product_attributes"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False)


class ProductPrice(IntPkMixin, TimestampMixin, Base):
    """Price history snapshot written whenever a product's prices are set."""
    __tablename__ = "product_prices"

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    purchase_price: Mapped[float] = mapped_column(Money, nullable=False)
    sale_price: Mapped[float] = mapped_column(Money, nullable=False)
    effective_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
