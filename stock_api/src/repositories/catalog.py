from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update

from src.db.base import utcnow
from src.db.models.catalog import Category, Location, Product, ProductAttribute, ProductPrice
from src.db.models.inventory import StockMovement
from .base import BaseRepository


def _like(term: str) -> str:
    return f"%{term.strip()}%"


class CategoryRepository(BaseRepository):
    """Repository for categories."""

    async def list_with_stock_totals(
        self, *, search: Optional[str], limit: int, offset: int
    ) -> List[Tuple[Category, int]]:
        """Categories with the summed stock quantity of their products, newest-updated first."""
        total = func.coalesce(func.sum(Product.stock_quantity), 0)
        stmt = (
            select(Category, total)
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
        )
        if search and search.strip():
            stmt = stmt.where(Category.name.ilike(_like(search)))
        stmt = stmt.order_by(Category.updated_at.desc(), Category.id.desc()).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(cat, int(qty or 0)) for cat, qty in res.all()]

    async def get(self, category_id: int) -> Optional[Category]:
        return await self.scalar_one_or_none(select(Category).where(Category.id == category_id))

    async def stock_total(self, category_id: int) -> int:
        stmt = select(func.coalesce(func.sum(Product.stock_quantity), 0)).where(Product.category_id == category_id)
        return await self.scalar_int(stmt)

    async def count(self) -> int:
        return await self.scalar_int(select(func.count(Category.id)))

    async def list_all(self) -> List[Category]:
        res = await self.scalars(select(Category).order_by(Category.id))
        return list(res)


class LocationRepository(BaseRepository):
    """Repository for storage locations."""

    async def list_with_product_counts(
        self, *, search: Optional[str], limit: int, offset: int
    ) -> List[Tuple[Location, int]]:
        count = func.count(Product.id)
        stmt = (
            select(Location, count)
            .outerjoin(Product, Product.location_id == Location.id)
            .group_by(Location.id)
        )
        if search and search.strip():
            pattern = _like(search)
            stmt = stmt.where(or_(Location.name.ilike(pattern), Location.description.ilike(pattern)))
        stmt = stmt.order_by(Location.updated_at.desc(), Location.id.desc()).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(loc, int(n or 0)) for loc, n in res.all()]

    async def get(self, location_id: int) -> Optional[Location]:
        return await self.scalar_one_or_none(select(Location).where(Location.id == location_id))

    async def product_count(self, location_id: int) -> int:
        return await self.scalar_int(select(func.count(Product.id)).where(Product.location_id == location_id))

    async def detach_products(self, location_id: int) -> None:
        """Clear location_id on every product stored at the location."""
        await self.execute(
            update(Product)
            .where(Product.location_id == location_id)
            .values(location_id=None)
            .execution_options(synchronize_session="fetch")
        )


# Row shape for product listings: (product, category name, location name)
ProductRow = Tuple[Product, Optional[str], Optional[str]]


class ProductRepository(BaseRepository):
    """Repository for products and their dependent rows."""

    def _with_names(self):
        return (
            select(Product, Category.name, Location.name)
            .join(Category, Category.id == Product.category_id)
            .outerjoin(Location, Location.id == Product.location_id)
        )

    async def list_products(
        self,
        *,
        category_id: Optional[int] = None,
        location_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ProductRow]:
        stmt = self._with_names()
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if location_id is not None:
            stmt = stmt.where(Product.location_id == location_id)
        if search and search.strip():
            pattern = _like(search)
            stmt = stmt.where(
                or_(
                    Product.name.ilike(pattern),
                    Product.description.ilike(pattern),
                    Product.stock_code.ilike(pattern),
                    Location.name.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Product.updated_at.desc(), Product.id.desc()).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(p, cat_name, loc_name) for p, cat_name, loc_name in res.all()]

    async def list_critical(self, limit: Optional[int] = None) -> List[ProductRow]:
        """Products below their low-stock threshold, largest shortfall first."""
        shortfall = Product.low_stock_threshold - Product.stock_quantity
        stmt = (
            self._with_names()
            .where(Product.stock_quantity < Product.low_stock_threshold)
            .order_by(shortfall.desc(), Product.name)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        res = await self.execute(stmt)
        return [(p, cat_name, loc_name) for p, cat_name, loc_name in res.all()]

    async def get(self, product_id: int) -> Optional[Product]:
        return await self.scalar_one_or_none(select(Product).where(Product.id == product_id))

    async def current_stock(self, product_id: int) -> Optional[int]:
        return await self.scalar_one_or_none(select(Product.stock_quantity).where(Product.id == product_id))

    async def apply_stock_delta(self, product_id: int, delta: int) -> Optional[int]:
        """
        Add delta to the stored quantity in a single UPDATE and return the new value.

        A negative delta only applies while the stored quantity covers it, so two
        concurrent stock-outs cannot both succeed; None means no row was changed.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + delta, updated_at=utcnow())
            .returning(Product.stock_quantity)
            .execution_options(synchronize_session=False)
        )
        if delta < 0:
            stmt = stmt.where(Product.stock_quantity >= -delta)
        return await self.scalar_one_or_none(stmt)

    async def get_with_names(self, product_id: int) -> Optional[ProductRow]:
        res = await self.execute(self._with_names().where(Product.id == product_id))
        row = res.first()
        return (row[0], row[1], row[2]) if row else None

    async def find_by_keyword(self, keyword: str) -> Optional[ProductRow]:
        """First product whose name or stock code contains the keyword."""
        pattern = _like(keyword)
        stmt = (
            self._with_names()
            .where(or_(Product.name.ilike(pattern), Product.stock_code.ilike(pattern)))
            .order_by(Product.name)
            .limit(1)
        )
        res = await self.execute(stmt)
        row = res.first()
        return (row[0], row[1], row[2]) if row else None

    async def top_by_stock(
        self,
        *,
        product_keyword: Optional[str] = None,
        category_keyword: Optional[str] = None,
        limit: int = 5,
    ) -> List[ProductRow]:
        """Products with the largest stock quantity, optionally narrowed by name keywords."""
        stmt = self._with_names()
        if product_keyword and product_keyword.strip():
            stmt = stmt.where(Product.name.ilike(_like(product_keyword)))
        if category_keyword and category_keyword.strip():
            stmt = stmt.where(Category.name.ilike(_like(category_keyword)))
        stmt = stmt.order_by(Product.stock_quantity.desc(), Product.name).limit(limit)
        res = await self.execute(stmt)
        return [(p, cat_name, loc_name) for p, cat_name, loc_name in res.all()]

    async def list_all_with_names(self) -> List[ProductRow]:
        res = await self.execute(self._with_names().order_by(Product.id))
        return [(p, cat_name, loc_name) for p, cat_name, loc_name in res.all()]

    async def stock_code_exists(self, stock_code: str) -> bool:
        stmt = select(Product.id).where(Product.stock_code == stock_code).limit(1)
        return await self.scalar_one_or_none(stmt) is not None

    async def ids_in_category(self, category_id: int) -> List[int]:
        res = await self.scalars(select(Product.id).where(Product.category_id == category_id))
        return list(res)

    async def delete_dependents(self, product_ids: Sequence[int]) -> None:
        """Remove movements, attributes and price history of the given products."""
        if not product_ids:
            return
        ids = list(product_ids)
        await self.execute(delete(StockMovement).where(StockMovement.product_id.in_(ids)))
        await self.execute(delete(ProductAttribute).where(ProductAttribute.product_id.in_(ids)))
        await self.execute(delete(ProductPrice).where(ProductPrice.product_id.in_(ids)))

    async def delete_products(self, product_ids: Iterable[int]) -> None:
        ids = list(product_ids)
        if ids:
            await self.execute(delete(Product).where(Product.id.in_(ids)))


class ProductAttributeRepository(BaseRepository):
    """Repository for product key/value attributes."""

    async def list_attributes(
        self,
        *,
        product_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Tuple[ProductAttribute, str]]:
        stmt = select(ProductAttribute, Product.name).join(Product, Product.id == ProductAttribute.product_id)
        if product_id is not None:
            stmt = stmt.where(ProductAttribute.product_id == product_id)
        if search and search.strip():
            pattern = _like(search)
            stmt = stmt.where(
                or_(
                    ProductAttribute.key.ilike(pattern),
                    ProductAttribute.value.ilike(pattern),
                    Product.name.ilike(pattern),
                )
            )
        stmt = stmt.order_by(ProductAttribute.product_id, ProductAttribute.key, ProductAttribute.id).offset(offset).limit(limit)
        res = await self.execute(stmt)
        return [(attr, name) for attr, name in res.all()]

    async def list_for_product(self, product_id: int) -> List[ProductAttribute]:
        stmt = select(ProductAttribute).where(ProductAttribute.product_id == product_id).order_by(ProductAttribute.key)
        res = await self.scalars(stmt)
        return list(res)

    async def get_with_product_name(self, attribute_id: int) -> Optional[Tuple[ProductAttribute, str]]:
        stmt = (
            select(ProductAttribute, Product.name)
            .join(Product, Product.id == ProductAttribute.product_id)
            .where(ProductAttribute.id == attribute_id)
        )
        res = await self.execute(stmt)
        row = res.first()
        return (row[0], row[1]) if row else None

    async def get(self, attribute_id: int) -> Optional[ProductAttribute]:
        return await self.scalar_one_or_none(select(ProductAttribute).where(ProductAttribute.id == attribute_id))

    async def count(self) -> int:
        return await self.scalar_int(select(func.count(ProductAttribute.id)))


class ProductPriceRepository(BaseRepository):
    """Repository for product price history."""

    async def list_for_product(self, product_id: int) -> List[ProductPrice]:
        stmt = (
            select(ProductPrice)
            .where(ProductPrice.product_id == product_id)
            .order_by(ProductPrice.effective_date.desc(), ProductPrice.id.desc())
        )
        res = await self.scalars(stmt)
        return list(res)

    async def record(self, product_id: int, purchase_price: float, sale_price: float) -> ProductPrice:
        price = ProductPrice(product_id=product_id, purchase_price=purchase_price, sale_price=sale_price)
        await self.add(price)
        return price
