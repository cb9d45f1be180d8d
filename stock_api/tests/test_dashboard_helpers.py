import random
import re
from datetime import date, datetime, timezone

from src.db.models.catalog import Category, Product
from src.db.models.inventory import StockMovementType
from src.services.catalog import generate_stock_code
from src.services.dashboard import (
    OTHER_CATEGORY_NAME,
    add_months,
    as_utc,
    average_margin_percentage,
    category_stats,
    daily_trend,
    monthly_trend,
    product_stock_status,
    stock_distribution,
    sum_quantity,
    top_valuable_products,
    week_start_sunday,
)

IN = int(StockMovementType.IN)
OUT = int(StockMovementType.OUT)


def product(pid, qty=0, threshold=5, purchase=0.0, sale=0.0, category_id=1, name=None):
    return Product(
        id=pid,
        name=name or f"P{pid}",
        stock_code=f"AAA{pid:03d}",
        stock_quantity=qty,
        low_stock_threshold=threshold,
        current_purchase_price=purchase,
        current_sale_price=sale,
        category_id=category_id,
    )


def test_generate_stock_code_format():
    rng = random.Random(42)
    codes = {generate_stock_code(rng) for _ in range(50)}
    assert all(re.fullmatch(r"[A-Z]{3}\d{3}", c) for c in codes)
    assert len(codes) > 1


def test_as_utc_treats_naive_as_utc():
    assert as_utc(datetime(2024, 5, 1, 8, 0)).tzinfo == timezone.utc


def test_week_starts_on_sunday():
    assert week_start_sunday(date(2024, 5, 15)) == date(2024, 5, 12)
    assert week_start_sunday(date(2024, 5, 12)) == date(2024, 5, 12)


def test_add_months_crosses_years():
    assert add_months(date(2024, 1, 20), -1) == date(2023, 12, 1)
    assert add_months(date(2023, 12, 5), 1) == date(2024, 1, 1)


def test_sum_quantity_filters_type_and_time():
    since = datetime(2024, 5, 15, tzinfo=timezone.utc)
    points = [
        (datetime(2024, 5, 15, 9, 0), IN, 4),
        (datetime(2024, 5, 15, 10, 0), OUT, 2),
        (datetime(2024, 5, 14, 23, 0), IN, 7),
    ]
    assert sum_quantity(points, since, StockMovementType.IN) == 4
    assert sum_quantity(points, since, StockMovementType.OUT) == 2


def test_daily_trend_is_zero_filled_oldest_first():
    points = [(datetime(2024, 5, 15, 9, 0), IN, 3), (datetime(2024, 5, 13, 9, 0), OUT, 1)]
    trend = daily_trend(points, date(2024, 5, 15), days=3)

    assert [t.date_label for t in trend] == ["13 May", "14 May", "15 May"]
    assert [(t.stock_in, t.stock_out) for t in trend] == [(0, 1), (0, 0), (3, 0)]


def test_monthly_trend_covers_twelve_months():
    points = [(datetime(2023, 6, 3, tzinfo=timezone.utc), IN, 10)]
    trend = monthly_trend(points, date(2024, 5, 15))

    assert len(trend) == 12
    assert trend[0].date_label == "Jun 2023"
    assert trend[0].stock_in == 10
    assert trend[-1].date_label == "May 2024"


def test_average_margin_skips_unpriced_products():
    products = [product(1, purchase=100, sale=150), product(2, purchase=200, sale=220), product(3)]
    assert average_margin_percentage(products) == 30.0
    assert average_margin_percentage([product(4)]) == 0.0


def test_category_stats_groups_the_tail_into_other():
    categories = [Category(id=i, name=f"C{i}") for i in range(1, 10)]
    products = [product(i, qty=2, category_id=i) for i in range(1, 10)]
    products.append(product(99, qty=5, category_id=1))

    stats = category_stats(categories, products)

    assert len(stats) == 8
    assert stats[0].category_id == 1
    assert stats[0].product_count == 2
    assert stats[0].total_stock == 7
    other = stats[-1]
    assert other.category_id == 0
    assert other.category_name == OTHER_CATEGORY_NAME
    assert other.product_count == 2


def test_stock_distribution_truncates_percentages():
    rows = stock_distribution(in_stock=1, low_stock=1, out_of_stock=1, total=3)
    assert [(r.status, r.percentage) for r in rows] == [("In Stock", 33), ("Low Stock", 33), ("Out of Stock", 33)]
    assert stock_distribution(0, 0, 0, 0) == []


def test_product_stock_status_puts_out_of_stock_first():
    rows = [
        (product(1, qty=3, threshold=5), "A"),
        (product(2, qty=0, threshold=5), "B"),
        (product(3, qty=1, threshold=5), "A"),
        (product(4, qty=9, threshold=5), "A"),
    ]
    status = product_stock_status(rows)

    assert [s.product_id for s in status] == [2, 3, 1]
    assert status[0].status == "Out of Stock"
    assert status[1].status == "Low Stock"


def test_top_valuable_products_orders_by_revenue():
    products = [product(1, qty=2, purchase=10, sale=20), product(2, qty=1, purchase=50, sale=100)]
    top = top_valuable_products(products, limit=1)

    assert len(top) == 1
    assert top[0].product_id == 2
    assert top[0].potential_profit == 50.0
