"""
Database seeding utilities for reference and sample data.

Seeds:
- Roles Admin, Manager and User (Admin holds every permission claim)
- The admin user from SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD
- When no category exists yet: sample categories, locations, products with
  attributes, price history and stock movements

Every step is idempotent, so the seed can run on each startup.

Usage:
  python -m src.db.run_migrations upgrade head
  python -m src.db.seed
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.security import get_password_hash
from src.core.settings import get_app_settings
from src.db.base import utcnow
from src.db.models.catalog import Category, Location, Product, ProductAttribute, ProductPrice
from src.db.models.inventory import StockMovement, StockMovementType
from src.db.models.todo import TodoItem, TodoPriority, TodoStatus
from src.db.session import get_session_maker
from src.repositories.security import (
    ADMIN_ROLE_NAME,
    MANAGER_ROLE_NAME,
    USER_ROLE_NAME,
    SecurityRepository,
)
from src.services.identity import RoleService

logger = logging.getLogger(__name__)

CATEGORIES = ["Electronics", "Computers", "Phones", "Office Supplies", "Software"]

LOCATIONS: List[Tuple[str, str]] = [
    ("Main Warehouse", "Central warehouse, block A"),
    ("Branch 1", "Kadikoy branch"),
    ("Branch 2", "Besiktas branch"),
    ("Showroom", "Store display"),
]

# name, stock code, description, stock, threshold, category, location, purchase, sale
PRODUCTS: List[Tuple[str, str, str, int, int, str, Optional[str], float, float]] = [
    ('MacBook Pro 16"', "MBP16-001", "Apple MacBook Pro 16 inch, M3 Pro, 18GB RAM, 512GB SSD",
     5, 3, "Computers", "Main Warehouse", 45000, 55000),
    ("iPhone 15 Pro", "IP15P-001", "Apple iPhone 15 Pro, 256GB, Titanium",
     12, 5, "Phones", "Showroom", 42000, 48000),
    ("Samsung Galaxy S24 Ultra", "SGS24U-001", "Samsung Galaxy S24 Ultra, 256GB, S Pen included",
     8, 4, "Phones", "Branch 1", 38000, 45000),
    ("Dell XPS 15", "DXP15-001", "Dell XPS 15, Intel i7, 16GB RAM, 1TB SSD, OLED display",
     3, 2, "Computers", "Main Warehouse", 35000, 42000),
    ("Logitech MX Master 3S", "LMX3S-001", "Wireless ergonomic mouse, 8000 DPI",
     25, 10, "Electronics", "Main Warehouse", 1200, 1800),
    ("Keychron K8 Pro", "KCK8P-001", "Mechanical keyboard, RGB, Bluetooth, Gateron Brown switches",
     15, 5, "Electronics", "Main Warehouse", 2500, 3500),
    ("HP LaserJet Pro", "HPLJP-001", "Laser printer, A4, WiFi, USB",
     7, 3, "Office Supplies", "Branch 2", 4500, 6500),
    ("Visual Studio Code License", "VSCODE-001", "Enterprise edition, 1 year license",
     50, 20, "Software", None, 0, 500),
    ("iPad Air", "IPADA-001", "Apple iPad Air, 11 inch, M2, 128GB",
     2, 2, "Computers", "Showroom", 18000, 22000),
    ("Sony WH-1000XM5", "SNYXM5-001", "Wireless headphones, noise cancelling, 30 hour battery",
     18, 8, "Electronics", "Branch 1", 5500, 7500),
]

ATTRIBUTES: Dict[str, List[Tuple[str, str]]] = {
    "MBP16-001": [("Processor", "M3 Pro"), ("RAM", "18GB"), ("Storage", "512GB SSD"), ("Color", "Space Gray")],
    "IP15P-001": [("Storage", "256GB"), ("Color", "Titanium"), ("Display", "6.1 inch Super Retina XDR")],
    "SGS24U-001": [("Storage", "256GB"), ("RAM", "12GB"), ("S Pen", "Included")],
    "DXP15-001": [("Processor", "Intel Core i7-13700H"), ("Graphics", "NVIDIA RTX 4050")],
    "LMX3S-001": [("Connection", "Bluetooth, USB Receiver"), ("DPI", "8000")],
    "KCK8P-001": [("Switch", "Gateron Brown"), ("Layout", "TKL (87 keys)")],
}

# stock code, purchase, sale, months ago
PRICE_HISTORY: List[Tuple[str, float, float, int]] = [
    ("MBP16-001", 44000, 54000, 2),
    ("IP15P-001", 40000, 46000, 1),
    ("SGS24U-001", 36000, 43000, 1),
]

# stock code, type, quantity, unit price, description, days ago
MOVEMENTS: List[Tuple[str, StockMovementType, int, float, str, int]] = [
    ("MBP16-001", StockMovementType.IN, 5, 45000, "Initial stock entry", 30),
    ("IP15P-001", StockMovementType.IN, 15, 42000, "Bulk purchase", 25),
    ("IP15P-001", StockMovementType.OUT, 3, 48000, "Sale", 10),
    ("SGS24U-001", StockMovementType.IN, 10, 38000, "New product entry", 20),
    ("SGS24U-001", StockMovementType.OUT, 2, 45000, "Sale", 5),
    ("LMX3S-001", StockMovementType.IN, 30, 1200, "Bulk purchase", 15),
    ("LMX3S-001", StockMovementType.OUT, 5, 1800, "Sale", 7),
    ("SNYXM5-001", StockMovementType.IN, 20, 5500, "New product entry", 12),
    ("SNYXM5-001", StockMovementType.OUT, 2, 7500, "Sale", 3),
]

TODOS: List[Tuple[str, str, TodoStatus, TodoPriority]] = [
    ("Prepare the new product catalogue", "Collect photos and descriptions for the new season.",
     TodoStatus.IN_PROGRESS, TodoPriority.HIGH),
    ("Count the main warehouse", "Monthly stock count for block A.", TodoStatus.TODO, TodoPriority.MEDIUM),
    ("Reorder iPad Air", "Stock is at the threshold.", TodoStatus.TODO, TodoPriority.HIGH),
]


# PUBLIC_INTERFACE
async def seed_all() -> None:
    """
    Seed the database with roles, the admin user and sample inventory.

    This function:
      - Ensures the Admin, Manager and User roles exist and Admin holds every permission
      - Creates the admin user when missing
      - Adds sample inventory only when the catalog is still empty
    """
    maker = get_session_maker()
    async with maker() as session:
        await _seed_security(session)
        await session.commit()

        if await _has_catalog(session):
            logger.info("Catalog already has data; sample inventory skipped.")
            return
        await _seed_inventory(session)
        await session.commit()


async def _seed_security(session: AsyncSession) -> None:
    """
    Seed roles, Admin permission claims and the admin user.
    """
    repo = SecurityRepository(session)
    roles = {}
    for name in (ADMIN_ROLE_NAME, MANAGER_ROLE_NAME, USER_ROLE_NAME):
        role = await repo.get_role_by_name(name)
        if role is None:
            role = await repo.create_role(name)
            logger.info("Created role %s", name)
        roles[name] = role

    await RoleService(session).ensure_admin_has_all_permissions()

    settings = get_app_settings()
    if await repo.get_user_by_email(settings.SEED_ADMIN_EMAIL) is not None:
        return
    admin = await repo.create_user(
        email=settings.SEED_ADMIN_EMAIL,
        username=settings.SEED_ADMIN_EMAIL,
        first_name="Admin",
        last_name="User",
        hashed_password=get_password_hash(settings.SEED_ADMIN_PASSWORD),
        must_change_password=True,
    )
    await repo.set_user_role(admin.id, roles[ADMIN_ROLE_NAME].id)
    logger.info("Created admin user %s", settings.SEED_ADMIN_EMAIL)


async def _has_catalog(session: AsyncSession) -> bool:
    res = await session.execute(select(func.count(Category.id)))
    return int(res.scalar_one() or 0) > 0


async def _seed_inventory(session: AsyncSession) -> None:
    """
    Add sample categories, locations, products, attributes, prices, movements and todos.
    """
    now = utcnow()

    categories = {name: Category(name=name) for name in CATEGORIES}
    locations = {name: Location(name=name, description=desc) for name, desc in LOCATIONS}
    session.add_all(list(categories.values()) + list(locations.values()))
    await session.flush()

    products: Dict[str, Product] = {}
    for name, code, desc, stock, threshold, category, location, purchase, sale in PRODUCTS:
        products[code] = Product(
            name=name,
            stock_code=code,
            description=desc,
            stock_quantity=stock,
            low_stock_threshold=threshold,
            category_id=categories[category].id,
            location_id=locations[location].id if location else None,
            current_purchase_price=purchase,
            current_sale_price=sale,
        )
    session.add_all(products.values())
    await session.flush()

    for code, pairs in ATTRIBUTES.items():
        session.add_all(ProductAttribute(product_id=products[code].id, key=k, value=v) for k, v in pairs)

    # Current prices first, then older snapshots
    for product in products.values():
        session.add(
            ProductPrice(
                product_id=product.id,
                purchase_price=product.current_purchase_price,
                sale_price=product.current_sale_price,
                effective_date=now,
            )
        )
    for code, purchase, sale, months in PRICE_HISTORY:
        at = _months_ago(now, months)
        session.add(
            ProductPrice(
                product_id=products[code].id,
                purchase_price=purchase,
                sale_price=sale,
                effective_date=at,
                created_at=at,
                updated_at=at,
            )
        )

    for code, movement_type, quantity, unit_price, desc, days in MOVEMENTS:
        product = products[code]
        at = now - timedelta(days=days)
        session.add(
            StockMovement(
                product_id=product.id,
                category_id=product.category_id,
                type=int(movement_type),
                quantity=quantity,
                unit_price=unit_price,
                description=desc,
                created_at=at,
                updated_at=at,
            )
        )

    session.add_all(
        TodoItem(title=title, description=desc, status=int(st), priority=int(pr))
        for title, desc, st, pr in TODOS
    )
    await session.flush()
    logger.info(
        "Seeded %d categories, %d locations, %d products, %d movements",
        len(categories),
        len(locations),
        len(products),
        len(MOVEMENTS),
    )


def _months_ago(moment: datetime, months: int) -> datetime:
    return moment - timedelta(days=30 * months)


# PUBLIC_INTERFACE
def main() -> None:
    """Entrypoint to run the asynchronous seeding."""
    from src.core.logging import configure_logging

    configure_logging(get_app_settings().LOG_LEVEL)
    asyncio.run(seed_all())


if __name__ == "__main__":
    main()
