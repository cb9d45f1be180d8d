from datetime import datetime, timedelta, timezone

import pytest

from src.db.models.inventory import StockMovementType
from src.services.chat_intent import (
    ChatIntent,
    ChatIntentDetector,
    DateRange,
    parse_date_range,
    turkish_lower,
)

# Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
END_OF_DAY = timedelta(days=1) - timedelta(microseconds=1)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def detector():
    return ChatIntentDetector()


@pytest.mark.parametrize(
    "question, intent",
    [
        ("Hello there", ChatIntent.SMALL_TALK),
        ("Merhaba, nasılsın?", ChatIntent.SMALL_TALK),
        ("How do I add a product?", ChatIntent.HOW_TO_ADD_PRODUCT),
        ("Ürün nasıl eklenir?", ChatIntent.HOW_TO_ADD_PRODUCT),
        ("What can you do?", ChatIntent.AI_ASSISTANT_INFO),
        ("How can I delete a product?", ChatIntent.HOW_TO_DELETE_PRODUCT),
        ("Where do I add a location?", ChatIntent.HOW_TO_MANAGE_LOCATION),
        ("How does the todo list work?", ChatIntent.HOW_TO_USE_TODOS),
        ("Can I export products to Excel?", ChatIntent.HOW_TO_EXPORT_PRODUCTS_EXCEL),
        ("What is the most profitable category?", ChatIntent.MOST_PROFITABLE_CATEGORY),
        ("What is the total inventory value?", ChatIntent.INVENTORY_VALUE),
        ("Stok değeri nedir?", ChatIntent.INVENTORY_VALUE),
        ("What is our sales potential?", ChatIntent.SALES_POTENTIAL),
        ("Show me the average price of products", ChatIntent.AVERAGE_PRICES),
        ("Tell me a joke about penguins", ChatIntent.UNKNOWN),
    ],
)
def test_detects_intent(detector, question, intent):
    assert detector.analyse(question, now=NOW).intent == intent


def test_empty_question_is_unknown(detector):
    ctx = detector.analyse("   ")
    assert ctx.intent == ChatIntent.UNKNOWN
    assert ctx.original_question == ""


def test_top_stock_in_with_date_range(detector):
    ctx = detector.analyse("Which products had the most stock-in last week?", now=NOW)

    assert ctx.intent == ChatIntent.TOP_STOCK_IN_PRODUCTS
    assert ctx.movement_type == StockMovementType.IN
    assert ctx.date_range == DateRange(utc(2024, 5, 6), utc(2024, 5, 12) + END_OF_DAY)


def test_stock_out_without_top_marker_is_by_type(detector):
    ctx = detector.analyse("Show stock out movements this month", now=NOW)

    assert ctx.intent == ChatIntent.STOCK_MOVEMENT_BY_TYPE
    assert ctx.movement_type == StockMovementType.OUT
    assert ctx.date_range.start == utc(2024, 5, 1)


def test_turkish_stock_in_question(detector):
    ctx = detector.analyse("Bu hafta en çok stok girişi olan ürünler hangileri?", now=NOW)

    assert ctx.intent == ChatIntent.TOP_STOCK_IN_PRODUCTS
    assert ctx.date_range.start == utc(2024, 5, 13)


def test_product_status_uses_quoted_keyword(detector):
    ctx = detector.analyse('What is the stock of "iPhone 15"?', now=NOW)

    assert ctx.intent == ChatIntent.PRODUCT_CURRENT_STATUS
    assert ctx.product_keyword == "iphone 15"


def test_movement_summary_keeps_detail_flag(detector):
    ctx = detector.analyse("List all stock movements yesterday", now=NOW)

    assert ctx.intent == ChatIntent.STOCK_MOVEMENT_SUMMARY
    assert ctx.requires_detailed_list is True
    assert ctx.date_range == DateRange(utc(2024, 5, 14), utc(2024, 5, 14) + END_OF_DAY)


def test_unknown_keeps_extracted_context(detector):
    ctx = detector.analyse("What happened in category phones today?", now=NOW)

    assert ctx.intent == ChatIntent.UNKNOWN
    assert ctx.category_keyword == "phones today?"
    assert ctx.date_range.start == utc(2024, 5, 15)


def test_with_intent_replaces_only_intent(detector):
    ctx = detector.analyse("Tell me a joke about penguins", now=NOW)
    updated = ctx.with_intent(ChatIntent.INVENTORY_VALUE)

    assert updated.intent == ChatIntent.INVENTORY_VALUE
    assert updated.original_question == ctx.original_question


def test_intent_parse_is_case_insensitive():
    assert ChatIntent.parse("topstockinproducts") == ChatIntent.TOP_STOCK_IN_PRODUCTS
    assert ChatIntent.parse("  InventoryValue ") == ChatIntent.INVENTORY_VALUE
    assert ChatIntent.parse("nope") is None


def test_turkish_lower_handles_dotted_i():
    assert turkish_lower("İSTANBUL IĞDIR") == "istanbul ığdır"


class TestParseDateRange:
    def test_today(self):
        assert parse_date_range("today", NOW) == DateRange(utc(2024, 5, 15), utc(2024, 5, 15) + END_OF_DAY)

    def test_this_week_is_monday_based(self):
        rng = parse_date_range("bu hafta", NOW)
        assert rng.start == utc(2024, 5, 13)
        assert rng.end == utc(2024, 5, 19) + END_OF_DAY

    def test_last_month_wraps_year(self):
        rng = parse_date_range("geçen ay", utc(2024, 1, 10))
        assert rng.start == utc(2023, 12, 1)
        assert rng.end == utc(2024, 1, 1) - timedelta(microseconds=1)

    def test_last_year(self):
        rng = parse_date_range("last year", NOW)
        assert rng.start == utc(2023, 1, 1)
        assert rng.end == utc(2024, 1, 1) - timedelta(microseconds=1)

    def test_weekday_in_current_week(self):
        assert parse_date_range("pazartesi", NOW).start == utc(2024, 5, 13)

    def test_weekday_still_ahead_goes_back_a_week(self):
        assert parse_date_range("friday", NOW).start == utc(2024, 5, 10)

    def test_cumartesi_is_not_cuma(self):
        assert parse_date_range("cumartesi", NOW).start == utc(2024, 5, 11)

    def test_explicit_range(self):
        rng = parse_date_range("01.05.2024 - 10.05.2024", NOW)
        assert rng == DateRange(utc(2024, 5, 1), utc(2024, 5, 10) + END_OF_DAY)

    def test_explicit_range_with_two_digit_year(self):
        rng = parse_date_range("1/5/24 to 3/5/24", NOW)
        assert rng.start == utc(2024, 5, 1)

    def test_invalid_explicit_date(self):
        assert parse_date_range("31.02.2024 - 01.03.2024", NOW) is None

    def test_nothing_mentioned(self):
        assert parse_date_range("how is my stock", NOW) is None

    def test_str_format(self):
        rng = DateRange(utc(2024, 5, 1), utc(2024, 5, 1, 23, 59))
        assert str(rng) == "01.05.2024 00:00 - 01.05.2024 23:59"
