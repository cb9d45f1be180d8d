from __future__ import annotations

import logging
import random
import string
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import BusinessRuleError, NotFoundError
from src.db.base import utcnow
from src.db.models.catalog import Category, Location, Product, ProductAttribute
from src.db.models.inventory import StockMovement, StockMovementType
from src.repositories.catalog import (
    CategoryRepository,
    LocationRepository,
    ProductAttributeRepository,
    ProductPriceRepository,
    ProductRepository,
)
from src.repositories.inventory import StockMovementRepository
from src.schemas.catalog import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    CriticalProductRead,
    LocationCreate,
    LocationRead,
    LocationUpdate,
    ProductAttributeBrief,
    ProductAttributeCreate,
    ProductAttributeRead,
    ProductAttributeUpdate,
    ProductCreate,
    ProductDetail,
    ProductPriceRead,
    ProductRead,
    ProductUpdate,
)
from src.services.base import BaseService
from src.services.dashboard import publish_dashboard_refresh

logger = logging.getLogger(__name__)

INITIAL_STOCK_DESCRIPTION = "Initial stock entry"
CLEAR_LOCATION = -1


# PUBLIC_INTERFACE
def generate_stock_code(rng: Optional[random.Random] = None) -> str:
    """Return a stock code of three uppercase letters followed by three digits, e.g. 'ABC433'."""
    rng = rng or random.SystemRandom()
    letters = "".join(rng.choice(string.ascii_uppercase) for _ in range(3))
    digits = "".join(rng.choice(string.digits) for _ in range(3))
    return letters + digits


def _require_positive_price(value: float, label: str) -> None:
    if value is None or value <= 0:
        raise BusinessRuleError(f"{label} must be greater than 0.")


def category_read(category: Category, stock_total: int) -> CategoryRead:
    return CategoryRead(
        id=category.id,
        name=category.name,
        product_count=stock_total,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def location_read(location: Location, product_count: int) -> LocationRead:
    return LocationRead(
        id=location.id,
        name=location.name,
        description=location.description,
        product_count=product_count,
        created_at=location.created_at,
        updated_at=location.updated_at,
    )


def product_read(product: Product, category_name: Optional[str], location_name: Optional[str]) -> ProductRead:
    return ProductRead(
        id=product.id,
        name=product.name,
        stock_code=product.stock_code,
        description=product.description or "",
        stock_quantity=product.stock_quantity,
        low_stock_threshold=product.low_stock_threshold,
        image_path=product.image_path,
        current_purchase_price=round(float(product.current_purchase_price or 0), 2),
        current_sale_price=round(float(product.current_sale_price or 0), 2),
        category_id=product.category_id,
        category_name=category_name,
        location_id=product.location_id,
        location_name=location_name,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def attribute_read(attribute: ProductAttribute, product_name: Optional[str]) -> ProductAttributeRead:
    return ProductAttributeRead(
        id=attribute.id,
        product_id=attribute.product_id,
        product_name=product_name,
        key=attribute.key,
        value=attribute.value,
        created_at=attribute.created_at,
        updated_at=attribute.updated_at,
    )


class CategoryService(BaseService):
    """Category use cases."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = CategoryRepository(session)
        self.products = ProductRepository(session)

    # PUBLIC_INTERFACE
    async def list_categories(self, *, search: Optional[str], limit: int, offset: int) -> List[CategoryRead]:
        rows = await self.repo.list_with_stock_totals(search=search, limit=limit, offset=offset)
        return [category_read(cat, total) for cat, total in rows]

    # PUBLIC_INTERFACE
    async def get_category(self, category_id: int) -> CategoryRead:
        category = await self._get_or_404(category_id)
        return category_read(category, await self.repo.stock_total(category_id))

    # PUBLIC_INTERFACE
    async def create_category(self, payload: CategoryCreate) -> CategoryRead:
        category = Category(name=payload.name.strip())
        await self.repo.add(category)
        await self.commit()
        logger.info("Category created: id=%s name=%s", category.id, category.name)

        result = category_read(category, 0)
        await publish_dashboard_refresh(self.session)
        await self._publish("category.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_category(self, category_id: int, payload: CategoryUpdate) -> CategoryRead:
        category = await self._get_or_404(category_id)
        category.name = payload.name.strip()
        category.updated_at = utcnow()
        await self.commit()

        result = category_read(category, await self.repo.stock_total(category_id))
        await publish_dashboard_refresh(self.session)
        await self._publish("category.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_category(self, category_id: int) -> None:
        """Delete the category together with its products and everything hanging off them."""
        category = await self._get_or_404(category_id)
        product_ids = await self.products.ids_in_category(category_id)
        await self.products.delete_dependents(product_ids)
        await self.products.delete_products(product_ids)
        await self.repo.delete(category)
        await self.commit()
        logger.info("Category deleted: id=%s products_removed=%d", category_id, len(product_ids))

        await publish_dashboard_refresh(self.session)
        await self._publish("category.deleted", {"id": category_id})

    async def _get_or_404(self, category_id: int) -> Category:
        category = await self.repo.get(category_id)
        if not category:
            raise NotFoundError(f"Category with ID {category_id} not found.")
        return category


class LocationService(BaseService):
    """Location use cases."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = LocationRepository(session)

    # PUBLIC_INTERFACE
    async def list_locations(self, *, search: Optional[str], limit: int, offset: int) -> List[LocationRead]:
        rows = await self.repo.list_with_product_counts(search=search, limit=limit, offset=offset)
        return [location_read(loc, count) for loc, count in rows]

    # PUBLIC_INTERFACE
    async def get_location(self, location_id: int) -> LocationRead:
        location = await self._get_or_404(location_id)
        return location_read(location, await self.repo.product_count(location_id))

    # PUBLIC_INTERFACE
    async def create_location(self, payload: LocationCreate) -> LocationRead:
        location = Location(name=payload.name.strip(), description=payload.description)
        await self.repo.add(location)
        await self.commit()

        result = location_read(location, 0)
        await publish_dashboard_refresh(self.session)
        await self._publish("location.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_location(self, location_id: int, payload: LocationUpdate) -> LocationRead:
        location = await self._get_or_404(location_id)
        if payload.name is not None:
            location.name = payload.name.strip()
        if payload.description is not None:
            location.description = payload.description
        location.updated_at = utcnow()
        await self.commit()

        result = location_read(location, await self.repo.product_count(location_id))
        await publish_dashboard_refresh(self.session)
        await self._publish("location.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_location(self, location_id: int) -> None:
        """Delete the location; its products stay, with no location."""
        location = await self._get_or_404(location_id)
        await self.repo.detach_products(location_id)
        await self.repo.delete(location)
        await self.commit()

        await publish_dashboard_refresh(self.session)
        await self._publish("location.deleted", {"id": location_id})

    async def _get_or_404(self, location_id: int) -> Location:
        location = await self.repo.get(location_id)
        if not location:
            raise NotFoundError(f"Location with ID {location_id} not found.")
        return location


class ProductService(BaseService):
    """Product use cases: catalog maintenance, price history and critical stock."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ProductRepository(session)
        self.categories = CategoryRepository(session)
        self.locations = LocationRepository(session)
        self.attributes = ProductAttributeRepository(session)
        self.prices = ProductPriceRepository(session)
        self.movements = StockMovementRepository(session)

    # PUBLIC_INTERFACE
    async def list_products(
        self,
        *,
        category_id: Optional[int] = None,
        location_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[ProductRead]:
        rows = await self.repo.list_products(
            category_id=category_id, location_id=location_id, search=search, limit=limit, offset=offset
        )
        return [product_read(p, cat, loc) for p, cat, loc in rows]

    # PUBLIC_INTERFACE
    async def list_critical(self, limit: Optional[int] = None) -> List[CriticalProductRead]:
        rows = await self.repo.list_critical(limit=limit)
        return [
            CriticalProductRead(
                id=p.id,
                name=p.name,
                stock_code=p.stock_code,
                category_name=cat,
                location_name=loc,
                stock_quantity=p.stock_quantity,
                low_stock_threshold=p.low_stock_threshold,
                shortfall=p.low_stock_threshold - p.stock_quantity,
            )
            for p, cat, loc in rows
        ]

    # PUBLIC_INTERFACE
    async def get_product(self, product_id: int) -> ProductDetail:
        row = await self.repo.get_with_names(product_id)
        if not row:
            raise NotFoundError(f"Product with ID {product_id} not found.")
        product, cat, loc = row
        attributes = await self.attributes.list_for_product(product_id)
        history = await self.prices.list_for_product(product_id)
        return ProductDetail(
            **product_read(product, cat, loc).model_dump(),
            attributes=[ProductAttributeBrief(id=a.id, key=a.key, value=a.value) for a in attributes],
            price_history=[ProductPriceRead.model_validate(h) for h in history],
        )

    # PUBLIC_INTERFACE
    async def price_history(self, product_id: int) -> List[ProductPriceRead]:
        await self._get_or_404(product_id)
        return [ProductPriceRead.model_validate(h) for h in await self.prices.list_for_product(product_id)]

    # PUBLIC_INTERFACE
    async def create_product(self, payload: ProductCreate) -> ProductDetail:
        """
        Create a product with a generated stock code.

        Writes the initial price snapshot and, when an opening quantity is given,
        an inbound movement at the purchase price.
        """
        _require_positive_price(payload.purchase_price, "Purchase price")
        _require_positive_price(payload.sale_price, "Sale price")
        if not await self.categories.get(payload.category_id):
            raise NotFoundError(f"Category with ID {payload.category_id} not found.")
        if payload.location_id is not None and not await self.locations.get(payload.location_id):
            raise NotFoundError(f"Location with ID {payload.location_id} not found.")

        stock_code = await self._unique_stock_code()
        product = Product(
            name=payload.name.strip(),
            stock_code=stock_code,
            description=payload.description or "",
            stock_quantity=payload.stock_quantity,
            low_stock_threshold=payload.low_stock_threshold,
            image_path=payload.image_path,
            category_id=payload.category_id,
            location_id=payload.location_id,
            current_purchase_price=payload.purchase_price,
            current_sale_price=payload.sale_price,
        )
        await self.repo.add(product)
        await self.repo.flush()

        await self.prices.record(product.id, payload.purchase_price, payload.sale_price)
        if payload.stock_quantity > 0:
            await self.movements.add(
                StockMovement(
                    product_id=product.id,
                    category_id=product.category_id,
                    type=int(StockMovementType.IN),
                    quantity=payload.stock_quantity,
                    unit_price=payload.purchase_price,
                    description=INITIAL_STOCK_DESCRIPTION,
                )
            )
        await self.commit()
        logger.info("Product created: id=%s stock_code=%s", product.id, stock_code)

        detail = await self.get_product(product.id)
        await publish_dashboard_refresh(self.session)
        await self._publish("product.created", detail.model_dump(mode="json"))
        return detail

    # PUBLIC_INTERFACE
    async def update_product(self, product_id: int, payload: ProductUpdate) -> ProductDetail:
        """
        Partially update a product. Stock quantity only changes through movements.

        location_id = -1 clears the location; a changed purchase or sale price
        appends a price history snapshot.
        """
        product = await self._get_or_404(product_id)

        if payload.name is not None:
            product.name = payload.name.strip()
        if payload.description is not None:
            product.description = payload.description
        if payload.low_stock_threshold is not None:
            product.low_stock_threshold = payload.low_stock_threshold
        if payload.image_path is not None:
            product.image_path = payload.image_path
        if payload.category_id is not None and payload.category_id != product.category_id:
            if not await self.categories.get(payload.category_id):
                raise NotFoundError(f"Category with ID {payload.category_id} not found.")
            product.category_id = payload.category_id
            await self.movements.reassign_category(product.id, payload.category_id)
        if payload.location_id is not None:
            if payload.location_id == CLEAR_LOCATION:
                product.location_id = None
            else:
                if not await self.locations.get(payload.location_id):
                    raise NotFoundError(f"Location with ID {payload.location_id} not found.")
                product.location_id = payload.location_id

        new_purchase = product.current_purchase_price
        new_sale = product.current_sale_price
        if payload.purchase_price is not None:
            _require_positive_price(payload.purchase_price, "Purchase price")
            new_purchase = payload.purchase_price
        if payload.sale_price is not None:
            _require_positive_price(payload.sale_price, "Sale price")
            new_sale = payload.sale_price
        if new_purchase != product.current_purchase_price or new_sale != product.current_sale_price:
            product.current_purchase_price = new_purchase
            product.current_sale_price = new_sale
            await self.prices.record(product.id, new_purchase, new_sale)

        product.updated_at = utcnow()
        await self.commit()

        detail = await self.get_product(product_id)
        await publish_dashboard_refresh(self.session)
        await self._publish("product.updated", detail.model_dump(mode="json"))
        return detail

    # PUBLIC_INTERFACE
    async def delete_product(self, product_id: int) -> None:
        product = await self._get_or_404(product_id)
        await self.repo.delete_dependents([product_id])
        await self.repo.delete(product)
        await self.commit()
        logger.info("Product deleted: id=%s", product_id)

        await publish_dashboard_refresh(self.session)
        await self._publish("product.deleted", {"id": product_id})

    async def _get_or_404(self, product_id: int) -> Product:
        product = await self.repo.get(product_id)
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found.")
        return product

    async def _unique_stock_code(self) -> str:
        while True:
            code = generate_stock_code()
            if not await self.repo.stock_code_exists(code):
                return code
            logger.debug("Stock code collision on %s; retrying", code)


class ProductAttributeService(BaseService):
    """Product attribute use cases."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ProductAttributeRepository(session)
        self.products = ProductRepository(session)

    # PUBLIC_INTERFACE
    async def list_attributes(
        self, *, product_id: Optional[int], search: Optional[str], limit: int, offset: int
    ) -> List[ProductAttributeRead]:
        rows = await self.repo.list_attributes(product_id=product_id, search=search, limit=limit, offset=offset)
        return [attribute_read(a, name) for a, name in rows]

    # PUBLIC_INTERFACE
    async def get_attribute(self, attribute_id: int) -> ProductAttributeRead:
        row = await self.repo.get_with_product_name(attribute_id)
        if not row:
            raise NotFoundError(f"Product attribute with ID {attribute_id} not found.")
        return attribute_read(*row)

    # PUBLIC_INTERFACE
    async def create_attribute(self, payload: ProductAttributeCreate) -> ProductAttributeRead:
        product = await self.products.get(payload.product_id)
        if not product:
            raise NotFoundError(f"Product with ID {payload.product_id} not found.")
        attribute = ProductAttribute(product_id=product.id, key=payload.key.strip(), value=payload.value.strip())
        await self.repo.add(attribute)
        await self.commit()

        result = attribute_read(attribute, product.name)
        await publish_dashboard_refresh(self.session)
        await self._publish("product_attribute.created", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def update_attribute(self, attribute_id: int, payload: ProductAttributeUpdate) -> ProductAttributeRead:
        attribute = await self.repo.get(attribute_id)
        if not attribute:
            raise NotFoundError(f"Product attribute with ID {attribute_id} not found.")
        if payload.key is not None:
            attribute.key = payload.key.strip()
        if payload.value is not None:
            attribute.value = payload.value.strip()
        attribute.updated_at = utcnow()
        await self.commit()

        result = await self.get_attribute(attribute_id)
        await publish_dashboard_refresh(self.session)
        await self._publish("product_attribute.updated", result.model_dump(mode="json"))
        return result

    # PUBLIC_INTERFACE
    async def delete_attribute(self, attribute_id: int) -> None:
        attribute = await self.repo.get(attribute_id)
        if not attribute:
            raise NotFoundError(f"Product attribute with ID {attribute_id} not found.")
        await self.repo.delete(attribute)
        await self.commit()

        await publish_dashboard_refresh(self.session)
        await self._publish("product_attribute.deleted", {"id": attribute_id})
