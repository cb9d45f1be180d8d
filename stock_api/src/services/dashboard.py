from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.settings import get_app_settings
from src.db.models.catalog import Category, Product
from src.db.models.inventory import StockMovementType
from src.repositories.catalog import CategoryRepository, ProductAttributeRepository, ProductRepository
from src.repositories.inventory import StockMovementRepository
from src.schemas.dashboard import (
    CategoryStats,
    CategoryValue,
    DashboardStats,
    MostActiveProduct,
    ProductStockStatus,
    ProductValue,
    RecentStockMovement,
    StockDistribution,
    StockMovementTrend,
)
from src.services.base import BaseService
from src.services.cache import DASHBOARD_STATS_KEY, cache_service
from src.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

TOP_CATEGORY_COUNT = 7
OTHER_CATEGORY_NAME = "Other"

# (created_at, type, quantity)
MovementPoint = Tuple[datetime, int, int]


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def week_start_sunday(today: date) -> date:
    """First day (Sunday) of the week containing today."""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def add_months(day: date, months: int) -> date:
    """First day of the month `months` away from day's month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def day_label(day: date) -> str:
    return f"{day.day:02d} {MONTH_ABBR[day.month - 1]}"


def month_label(day: date) -> str:
    return f"{MONTH_ABBR[day.month - 1]} {day.year}"


def sum_quantity(movements: Iterable[MovementPoint], since: datetime, movement_type: StockMovementType) -> int:
    return sum(q for at, t, q in movements if t == int(movement_type) and as_utc(at) >= since)


def daily_trend(movements: Iterable[MovementPoint], today: date, days: int = 30) -> List[StockMovementTrend]:
    """Per-day in/out totals for the last `days` days (oldest first), zero-filled."""
    buckets: Dict[date, List[int]] = {}
    for at, t, q in movements:
        key = as_utc(at).date()
        bucket = buckets.setdefault(key, [0, 0])
        bucket[0 if t == int(StockMovementType.IN) else 1] += q
    out: List[StockMovementTrend] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        stock_in, stock_out = buckets.get(day, (0, 0))
        out.append(
            StockMovementTrend(date=start_of_day(day), date_label=day_label(day), stock_in=stock_in, stock_out=stock_out)
        )
    return out


def monthly_trend(movements: Iterable[MovementPoint], today: date, months: int = 12) -> List[StockMovementTrend]:
    """Per-month in/out totals for the last `months` months including the current one, zero-filled."""
    buckets: Dict[Tuple[int, int], List[int]] = {}
    for at, t, q in movements:
        at = as_utc(at)
        bucket = buckets.setdefault((at.year, at.month), [0, 0])
        bucket[0 if t == int(StockMovementType.IN) else 1] += q
    first = add_months(today, -(months - 1))
    out: List[StockMovementTrend] = []
    for i in range(months):
        month = add_months(first, i)
        stock_in, stock_out = buckets.get((month.year, month.month), (0, 0))
        out.append(
            StockMovementTrend(
                date=start_of_day(month), date_label=month_label(month), stock_in=stock_in, stock_out=stock_out
            )
        )
    return out


def average_margin_percentage(products: Iterable[Product]) -> float:
    """Mean of (sale - purchase) / purchase * 100 over products with both prices set."""
    margins = [
        (p.current_sale_price - p.current_purchase_price) / p.current_purchase_price * 100.0
        for p in products
        if (p.current_purchase_price or 0) > 0 and (p.current_sale_price or 0) > 0
    ]
    if not margins:
        return 0.0
    return round(sum(margins) / len(margins), 2)


def category_stats(
    categories: Sequence[Category], products: Sequence[Product], top: int = TOP_CATEGORY_COUNT
) -> List[CategoryStats]:
    """Top categories by product count plus an 'Other' bucket (id 0) for the remainder."""
    counts: Dict[int, List[int]] = {c.id: [0, 0] for c in categories}
    for p in products:
        entry = counts.setdefault(p.category_id, [0, 0])
        entry[0] += 1
        entry[1] += p.stock_quantity
    rows = [
        CategoryStats(category_id=c.id, category_name=c.name, product_count=counts[c.id][0], total_stock=counts[c.id][1])
        for c in categories
    ]
    rows.sort(key=lambda r: r.product_count, reverse=True)
    head, rest = rows[:top], rows[top:]
    if rest:
        head.append(
            CategoryStats(
                category_id=0,
                category_name=OTHER_CATEGORY_NAME,
                product_count=sum(r.product_count for r in rest),
                total_stock=sum(r.total_stock for r in rest),
            )
        )
    return head


def stock_distribution(in_stock: int, low_stock: int, out_of_stock: int, total: int) -> List[StockDistribution]:
    """Three status rows with truncated integer percentages; empty when there are no products."""
    if total <= 0:
        return []

    def pct(n: int) -> int:
        return int(n / total * 100)

    return [
        StockDistribution(status="In Stock", count=in_stock, percentage=pct(in_stock)),
        StockDistribution(status="Low Stock", count=low_stock, percentage=pct(low_stock)),
        StockDistribution(status="Out of Stock", count=out_of_stock, percentage=pct(out_of_stock)),
    ]


def product_stock_status(rows: Sequence[Tuple[Product, Optional[str]]], limit: int = 10) -> List[ProductStockStatus]:
    """Products under their threshold: out-of-stock first, then by ascending quantity."""
    critical = [(p, cat) for p, cat in rows if p.stock_quantity < p.low_stock_threshold]
    critical.sort(key=lambda r: (0 if r[0].stock_quantity == 0 else 1, r[0].stock_quantity))
    return [
        ProductStockStatus(
            product_id=p.id,
            product_name=p.name,
            stock_code=p.stock_code,
            stock_quantity=p.stock_quantity,
            category_name=cat or "",
            status="Out of Stock" if p.stock_quantity == 0 else "Low Stock",
        )
        for p, cat in critical[:limit]
    ]


def category_values(rows: Sequence[Tuple[Product, Optional[str]]]) -> List[CategoryValue]:
    totals: Dict[int, List] = {}
    for p, cat in rows:
        entry = totals.setdefault(p.category_id, [cat or "", 0.0, 0.0])
        entry[1] += p.stock_quantity * (p.current_purchase_price or 0)
        entry[2] += p.stock_quantity * (p.current_sale_price or 0)
    values = [
        CategoryValue(
            category_id=cid,
            category_name=name,
            total_cost=round(cost, 2),
            total_potential_revenue=round(revenue, 2),
            total_potential_profit=round(revenue - cost, 2),
        )
        for cid, (name, cost, revenue) in totals.items()
    ]
    values.sort(key=lambda v: v.total_potential_revenue, reverse=True)
    return values


def top_valuable_products(products: Sequence[Product], limit: int = 10) -> List[ProductValue]:
    values = []
    for p in products:
        cost = p.stock_quantity * (p.current_purchase_price or 0)
        revenue = p.stock_quantity * (p.current_sale_price or 0)
        values.append(
            ProductValue(
                product_id=p.id,
                product_name=p.name,
                stock_code=p.stock_code,
                inventory_cost=round(cost, 2),
                inventory_potential_revenue=round(revenue, 2),
                potential_profit=round(revenue - cost, 2),
            )
        )
    values.sort(key=lambda v: v.inventory_potential_revenue, reverse=True)
    return values[:limit]


def movement_type_text(movement_type: int) -> str:
    return "In" if movement_type == int(StockMovementType.IN) else "Out"


class DashboardService(BaseService):
    """
    Aggregates inventory statistics for the dashboard.

    The snapshot is cached under DASHBOARD_STATS_KEY for DASHBOARD_CACHE_TTL_SECONDS;
    inventory mutations invalidate it through publish_dashboard_refresh.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.categories = CategoryRepository(session)
        self.products = ProductRepository(session)
        self.attributes = ProductAttributeRepository(session)
        self.movements = StockMovementRepository(session)

    # PUBLIC_INTERFACE
    async def get_stats(self) -> DashboardStats:
        """Return the cached snapshot, computing and caching it on a miss."""
        cached = await cache_service.get(DASHBOARD_STATS_KEY)
        if cached is not None:
            return cached
        stats = await self.compute_stats()
        await cache_service.set(DASHBOARD_STATS_KEY, stats, get_app_settings().DASHBOARD_CACHE_TTL_SECONDS)
        return stats

    # PUBLIC_INTERFACE
    async def compute_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        """Compute the full snapshot from the database."""
        now = as_utc(now or datetime.now(tz=timezone.utc))
        today = now.date()

        categories = await self.categories.list_all()
        product_rows = await self.products.list_all_with_names()
        products = [p for p, _, _ in product_rows]
        named = [(p, cat) for p, cat, _ in product_rows]

        total_products = len(products)
        low_stock = sum(1 for p in products if 0 < p.stock_quantity < p.low_stock_threshold)
        out_of_stock = sum(1 for p in products if p.stock_quantity == 0)
        in_stock = sum(1 for p in products if p.stock_quantity >= p.low_stock_threshold)

        cost = sum(p.stock_quantity * (p.current_purchase_price or 0) for p in products)
        revenue = sum(p.stock_quantity * (p.current_sale_price or 0) for p in products)

        year_start = start_of_day(add_months(today, -11))
        points = await self.movements.list_since(year_start)
        today_start = start_of_day(today)
        week_start = start_of_day(week_start_sunday(today))

        recent = [
            RecentStockMovement(
                id=m.id,
                product_name=pname,
                category_name=cname,
                type=m.type,
                type_text=movement_type_text(m.type),
                quantity=m.quantity,
                description=m.description,
                created_at=as_utc(m.created_at),
            )
            for m, pname, cname, _, _ in await self.movements.recent(10)
        ]

        most_active = [
            MostActiveProduct(
                product_id=pid,
                product_name=name,
                stock_code=code,
                category_name=cat,
                total_stock_in=stock_in,
                total_stock_out=stock_out,
                net_change=stock_in - stock_out,
                total_movements=count,
            )
            for pid, name, code, cat, count, stock_in, stock_out in await self.movements.most_active_products(5)
        ]

        return DashboardStats(
            total_categories=len(categories),
            total_products=total_products,
            total_product_attributes=await self.attributes.count(),
            total_stock_quantity=sum(p.stock_quantity for p in products),
            low_stock_products=low_stock,
            out_of_stock_products=out_of_stock,
            total_stock_movements=await self.movements.count(),
            today_stock_in=sum_quantity(points, today_start, StockMovementType.IN),
            today_stock_out=sum_quantity(points, today_start, StockMovementType.OUT),
            this_week_stock_in=sum_quantity(points, week_start, StockMovementType.IN),
            this_week_stock_out=sum_quantity(points, week_start, StockMovementType.OUT),
            total_inventory_cost=round(cost, 2),
            total_inventory_potential_revenue=round(revenue, 2),
            total_expected_sales_revenue=round(revenue, 2),
            total_potential_profit=round(revenue - cost, 2),
            total_purchase_spent=round(await self.movements.total_purchase_spent(), 2),
            average_margin_percentage=average_margin_percentage(products),
            category_stats=category_stats(categories, products),
            product_stock_status=product_stock_status(named),
            stock_distribution=stock_distribution(in_stock, low_stock, out_of_stock, total_products),
            category_value_distribution=category_values(named),
            top_valuable_products=top_valuable_products(products),
            recent_stock_movements=recent,
            stock_movement_trend=daily_trend(points, today),
            last_year_stock_movement_trend=monthly_trend(points, today),
            most_active_products=most_active,
        )


# PUBLIC_INTERFACE
async def publish_dashboard_refresh(session: AsyncSession) -> None:
    """
    Invalidate the cached snapshot, then recompute and broadcast fresh stats.

    Called after every inventory mutation has been committed. Broadcast failures are
    logged and swallowed; the mutation already succeeded.
    """
    await cache_service.remove(DASHBOARD_STATS_KEY)
    try:
        stats = await DashboardService(session).get_stats()
        await broadcast_manager.publish_dashboard_stats(stats.model_dump(mode="json"))
    except Exception:
        logger.exception("Failed to publish dashboard stats")
