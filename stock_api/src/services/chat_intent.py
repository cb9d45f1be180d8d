"""
Keyword-based intent detection for the inventory chat assistant.

Questions may be written in English or Turkish. Detection is pure and synchronous:
it lowercases the text (Turkish-aware), walks the help tables first and then the
data heuristics, and extracts the date range, movement type and product/category
keywords along the way. Anything it cannot place is returned as UNKNOWN with the
extracted context kept, so a model-based classifier can take a second look.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from src.db.models.inventory import StockMovementType


class ChatIntent(str, Enum):
    """Intents understood by the assistant; values are the names used on the wire."""

    UNKNOWN = "Unknown"

    # Data questions
    TOP_STOCK_IN_PRODUCTS = "TopStockInProducts"
    TOP_STOCK_OUT_PRODUCTS = "TopStockOutProducts"
    MOST_PROFITABLE_CATEGORY = "MostProfitableCategory"
    INVENTORY_VALUE = "InventoryValue"
    STOCK_MOVEMENT_SUMMARY = "StockMovementSummary"
    STOCK_MOVEMENT_BY_TYPE = "StockMovementByType"
    AVERAGE_PRICES = "AveragePrices"
    SALES_POTENTIAL = "SalesPotential"
    PRODUCT_CURRENT_STATUS = "ProductCurrentStatus"
    CATEGORY_INVENTORY_SUMMARY = "CategoryInventorySummary"
    TOP_STOCK_QUANTITY_PRODUCT = "TopStockQuantityProduct"

    # Help and guidance
    HOW_TO_ADD_PRODUCT = "HowToAddProduct"
    HOW_TO_USE_DASHBOARD = "HowToUseDashboard"
    GENERAL_APP_HELP = "GeneralAppHelp"
    AI_ASSISTANT_INFO = "AiAssistantInfo"
    HOW_TO_UPDATE_PRODUCT = "HowToUpdateProduct"
    HOW_TO_DELETE_PRODUCT = "HowToDeleteProduct"
    HOW_TO_MANAGE_CATEGORY = "HowToManageCategory"
    HOW_TO_MANAGE_LOCATION = "HowToManageLocation"
    HOW_TO_ADD_ATTRIBUTE = "HowToAddAttribute"
    EXPLAIN_ATTRIBUTE_PURPOSE = "ExplainAttributePurpose"
    HOW_TO_MANAGE_ATTRIBUTE = "HowToManageAttribute"
    HOW_TO_VIEW_STOCK_MOVEMENTS = "HowToViewStockMovements"
    HOW_TO_USE_TODOS = "HowToUseTodos"
    HOW_TO_EXPORT_PRODUCTS_EXCEL = "HowToExportProductsExcel"

    SMALL_TALK = "SmallTalk"

    # PUBLIC_INTERFACE
    @classmethod
    def parse(cls, text: str) -> Optional["ChatIntent"]:
        """Case-insensitive lookup by wire name; None when nothing matches."""
        wanted = (text or "").strip().lower()
        for intent in cls:
            if intent.value.lower() == wanted:
                return intent
        return None


HELP_INTENTS = frozenset(
    {
        ChatIntent.HOW_TO_ADD_PRODUCT,
        ChatIntent.HOW_TO_UPDATE_PRODUCT,
        ChatIntent.HOW_TO_DELETE_PRODUCT,
        ChatIntent.HOW_TO_USE_DASHBOARD,
        ChatIntent.GENERAL_APP_HELP,
        ChatIntent.AI_ASSISTANT_INFO,
        ChatIntent.HOW_TO_MANAGE_CATEGORY,
        ChatIntent.HOW_TO_MANAGE_LOCATION,
        ChatIntent.HOW_TO_ADD_ATTRIBUTE,
        ChatIntent.EXPLAIN_ATTRIBUTE_PURPOSE,
        ChatIntent.HOW_TO_MANAGE_ATTRIBUTE,
        ChatIntent.HOW_TO_VIEW_STOCK_MOVEMENTS,
        ChatIntent.HOW_TO_USE_TODOS,
        ChatIntent.HOW_TO_EXPORT_PRODUCTS_EXCEL,
    }
)

DATE_FORMAT = "%d.%m.%Y %H:%M"


@dataclass(frozen=True)
class DateRange:
    """Inclusive UTC interval."""

    start: datetime
    end: datetime

    def __str__(self) -> str:
        return f"{self.start.strftime(DATE_FORMAT)} - {self.end.strftime(DATE_FORMAT)}"


@dataclass(frozen=True)
class ChatQuestionContext:
    intent: ChatIntent
    original_question: str
    date_range: Optional[DateRange] = None
    movement_type: Optional[StockMovementType] = None
    product_keyword: Optional[str] = None
    category_keyword: Optional[str] = None
    requires_detailed_list: bool = False

    def with_intent(self, intent: ChatIntent) -> "ChatQuestionContext":
        return replace(self, intent=intent)


# Keyword tables. Phrases are matched as substrings of the lowercased question.

SMALL_TALK_PATTERN = re.compile(r"\b(hello|hi|hey|thanks|thank you|good morning|how are you)\b")
SMALL_TALK_KEYWORDS = ("merhaba", "selam", "naber", "nasılsın", "teşekkür", "sağol")

HELP_KEYWORDS: List[Tuple[str, ChatIntent]] = [
    ("how do i add a product", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("how to add a product", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("add a product", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("add product", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("create a product", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("ürün ekle", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("ürün oluştur", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("ürün nasıl eklenir", ChatIntent.HOW_TO_ADD_PRODUCT),
    ("use the dashboard", ChatIntent.HOW_TO_USE_DASHBOARD),
    ("dashboard work", ChatIntent.HOW_TO_USE_DASHBOARD),
    ("dashboard nasıl", ChatIntent.HOW_TO_USE_DASHBOARD),
    ("dashboard kullan", ChatIntent.HOW_TO_USE_DASHBOARD),
    ("how do i use the app", ChatIntent.GENERAL_APP_HELP),
    ("how to use the app", ChatIntent.GENERAL_APP_HELP),
    ("how does the app work", ChatIntent.GENERAL_APP_HELP),
    ("uygulama nasıl", ChatIntent.GENERAL_APP_HELP),
    ("nasıl kullan", ChatIntent.GENERAL_APP_HELP),
    ("what can you do", ChatIntent.AI_ASSISTANT_INFO),
    ("who are you", ChatIntent.AI_ASSISTANT_INFO),
    ("ne yapabilirsin", ChatIntent.AI_ASSISTANT_INFO),
    ("ne yapıyorsun", ChatIntent.AI_ASSISTANT_INFO),
]

MANAGEMENT_HELP: List[Tuple[Sequence[str], ChatIntent]] = [
    (
        ("update a product", "update product", "edit a product", "edit product",
         "ürün güncelle", "ürünü düzenle", "ürün düzenleme"),
        ChatIntent.HOW_TO_UPDATE_PRODUCT,
    ),
    (
        ("delete a product", "delete product", "remove a product", "remove product",
         "ürün sil", "ürünü sil", "ürün silme"),
        ChatIntent.HOW_TO_DELETE_PRODUCT,
    ),
    (
        ("add a category", "add category", "create category", "edit category", "delete category",
         "kategori ekle", "kategori oluştur", "kategori düzenle", "kategori sil"),
        ChatIntent.HOW_TO_MANAGE_CATEGORY,
    ),
    (
        ("add a location", "add location", "add warehouse", "edit location", "delete location",
         "lokasyon ekle", "depo ekle", "lokasyon düzenle", "lokasyon sil"),
        ChatIntent.HOW_TO_MANAGE_LOCATION,
    ),
    (
        ("add an attribute", "add attribute", "öznitelik ekle", "attribute ekle", "ürün özelliği ekle"),
        ChatIntent.HOW_TO_ADD_ATTRIBUTE,
    ),
    (
        ("delete attribute", "edit attribute", "remove attribute",
         "öznitelik sil", "attribute sil", "öznitelik düzenle", "attribute düzenle"),
        ChatIntent.HOW_TO_MANAGE_ATTRIBUTE,
    ),
    (
        ("what are attributes", "attributes for", "purpose of attributes", "öznitelik ne işe yarar",
         "öznitelikler ne işe yarar"),
        ChatIntent.EXPLAIN_ATTRIBUTE_PURPOSE,
    ),
]

WORKFLOW_HELP: List[Tuple[Sequence[str], ChatIntent]] = [
    (
        ("how to view stock movements", "how do i see stock movements", "where are stock movements",
         "stock movement list", "stok hareketleri nasıl", "stok hareketleri görüntüle",
         "stok hareketi nerede", "stok hareketleri listesi"),
        ChatIntent.HOW_TO_VIEW_STOCK_MOVEMENTS,
    ),
    (
        ("todo", "to-do", "task list", "complete a task", "yapılacaklar", "görev nasıl",
         "görev tamamla", "görev sil", "görev güncelle"),
        ChatIntent.HOW_TO_USE_TODOS,
    ),
    (
        ("export products", "products to excel", "ürünleri excel", "excel'e aktar"),
        ChatIntent.HOW_TO_EXPORT_PRODUCTS_EXCEL,
    ),
]

DETAIL_PATTERN = re.compile(r"\b(list|detail|details|detailed|all)\b")
DETAIL_KEYWORDS = ("liste", "detay", "hepsi")
CATEGORY_MARKERS = ("kategorisi", "kategoride", "kategori", "category")

STOCK_IN_PATTERN = re.compile(r"\b(stock[- ]in|incoming|inbound)\b")
STOCK_OUT_PATTERN = re.compile(r"\b(stock[- ]out|outgoing|outbound)\b")
TOP_MARKERS = ("most", "which", "top", "en çok", "hangi")

WEEKDAYS: List[Tuple[str, int]] = [
    # Longer names first: "cumartesi" contains "cuma", "pazartesi" contains "pazar".
    ("cumartesi", 5),
    ("pazartesi", 0),
    ("çarşamba", 2),
    ("perşembe", 3),
    ("cuma", 4),
    ("pazar", 6),
    ("salı", 1),
    ("monday", 0),
    ("tuesday", 1),
    ("wednesday", 2),
    ("thursday", 3),
    ("friday", 4),
    ("saturday", 5),
    ("sunday", 6),
]

EXPLICIT_RANGE = re.compile(
    r"(\d{1,2}[./-]\d{1,2}[./-]\d{2,4})\s*(?:and|to|ile|ve|-|–|—)\s*(\d{1,2}[./-]\d{1,2}[./-]\d{2,4})"
)


# PUBLIC_INTERFACE
def turkish_lower(text: str) -> str:
    """Lowercase with Turkish dotted/dotless I handling."""
    return text.replace("I", "ı").replace("İ", "i").lower()


def _has(text: str, phrases: Sequence[str]) -> bool:
    return any(p in text for p in phrases)


def _day_start(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _week_start_monday(value: datetime) -> datetime:
    return _day_start(value) - timedelta(days=value.weekday())


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _next_month(value: datetime) -> datetime:
    if value.month == 12:
        return _month_start(value.year + 1, 1)
    return _month_start(value.year, value.month + 1)


def _whole_days(start: datetime, days: int) -> DateRange:
    return DateRange(start, start + timedelta(days=days) - timedelta(microseconds=1))


def _parse_day(text: str) -> Optional[datetime]:
    parts = re.split(r"[./-]", text)
    if len(parts) != 3:
        return None
    day, month, year = (int(p) for p in parts)
    if year < 100:
        year += 2000
    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


# PUBLIC_INTERFACE
def parse_date_range(text: str, now: Optional[datetime] = None) -> Optional[DateRange]:
    """
    Resolve a relative or explicit date range mentioned in lowercased text.

    Weeks are Monday-based. Weekday names resolve to that day in the current week,
    or the week before when the day is still ahead. Explicit ranges
    ("01.05.2024 - 10.05.2024") cover the first day through the end of the second.
    """
    now = now or datetime.now(tz=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = _day_start(now)

    if _has(text, ("last year", "geçen yıl")):
        start = _month_start(now.year - 1, 1)
        return DateRange(start, _month_start(now.year, 1) - timedelta(microseconds=1))

    if _has(text, ("last month", "geçen ay")):
        this_month = _month_start(now.year, now.month)
        previous = _month_start(now.year - 1, 12) if now.month == 1 else _month_start(now.year, now.month - 1)
        return DateRange(previous, this_month - timedelta(microseconds=1))

    if _has(text, ("this month", "bu ay")):
        start = _month_start(now.year, now.month)
        return DateRange(start, _next_month(start) - timedelta(microseconds=1))

    if _has(text, ("last week", "geçen hafta")):
        return _whole_days(_week_start_monday(now) - timedelta(days=7), 7)

    if _has(text, ("this week", "bu hafta")):
        return _whole_days(_week_start_monday(now), 7)

    if _has(text, ("yesterday", "dün")):
        return _whole_days(today - timedelta(days=1), 1)

    if _has(text, ("today", "bugün")):
        return _whole_days(today, 1)

    for name, weekday in WEEKDAYS:
        if name in text:
            target = _week_start_monday(now) + timedelta(days=weekday)
            if target > now:
                target -= timedelta(days=7)
            return _whole_days(target, 1)

    match = EXPLICIT_RANGE.search(text)
    if match:
        first = _parse_day(match.group(1))
        second = _parse_day(match.group(2))
        if first is not None and second is not None:
            return DateRange(first, second + timedelta(days=1) - timedelta(microseconds=1))

    return None


def _extract_quoted(text: str) -> Optional[str]:
    for pattern in (r'"([^"]+)"', r"'([^']+)'", r"“([^”]+)”"):
        match = re.search(pattern, text)
        if match:
            return match.group(1).strip()
    return None


def _extract_after_marker(text: str, markers: Sequence[str]) -> Optional[str]:
    for marker in markers:
        index = text.find(marker)
        if index < 0:
            continue
        remainder = text[index + len(marker):].strip().lstrip(":-= ")
        words = remainder.split()
        if words:
            return " ".join(words[:4]).strip()
    return None


def _movement_type(text: str) -> Optional[StockMovementType]:
    has_in = "giriş" in text or bool(STOCK_IN_PATTERN.search(text))
    has_out = "çıkış" in text or bool(STOCK_OUT_PATTERN.search(text))
    if has_in and not has_out:
        return StockMovementType.IN
    if has_out and not has_in:
        return StockMovementType.OUT
    return None


class ChatIntentDetector:
    """Rule-based first pass over a user question."""

    # PUBLIC_INTERFACE
    def analyse(self, question: Optional[str], now: Optional[datetime] = None) -> ChatQuestionContext:
        """Detect the intent and extract filters from a free-text question."""
        normalized = (question or "").strip()
        if not normalized:
            return ChatQuestionContext(ChatIntent.UNKNOWN, "")

        lower = turkish_lower(normalized)

        if SMALL_TALK_PATTERN.search(lower) or _has(lower, SMALL_TALK_KEYWORDS):
            return ChatQuestionContext(ChatIntent.SMALL_TALK, normalized)

        for phrase, intent in HELP_KEYWORDS:
            if phrase in lower:
                return ChatQuestionContext(intent, normalized)

        for phrases, intent in MANAGEMENT_HELP + WORKFLOW_HELP:
            if _has(lower, phrases):
                return ChatQuestionContext(intent, normalized)

        date_range = parse_date_range(lower, now)
        detailed = bool(DETAIL_PATTERN.search(lower)) or _has(lower, DETAIL_KEYWORDS)
        product_keyword = _extract_quoted(lower)
        category_keyword = _extract_after_marker(lower, CATEGORY_MARKERS)
        movement_type = _movement_type(lower)

        def ctx(intent: ChatIntent, **kwargs) -> ChatQuestionContext:
            return ChatQuestionContext(intent, normalized, date_range, **kwargs)

        is_top = _has(lower, TOP_MARKERS)

        if "stok giriş" in lower or STOCK_IN_PATTERN.search(lower):
            if is_top:
                return ctx(
                    ChatIntent.TOP_STOCK_IN_PRODUCTS,
                    movement_type=StockMovementType.IN,
                    product_keyword=product_keyword,
                    requires_detailed_list=detailed,
                )
            return ctx(
                ChatIntent.STOCK_MOVEMENT_BY_TYPE,
                movement_type=StockMovementType.IN,
                product_keyword=product_keyword,
                category_keyword=category_keyword,
                requires_detailed_list=detailed,
            )

        if "stok çıkış" in lower or STOCK_OUT_PATTERN.search(lower):
            if is_top:
                return ctx(
                    ChatIntent.TOP_STOCK_OUT_PRODUCTS,
                    movement_type=StockMovementType.OUT,
                    product_keyword=product_keyword,
                    requires_detailed_list=detailed,
                )
            return ctx(
                ChatIntent.STOCK_MOVEMENT_BY_TYPE,
                movement_type=StockMovementType.OUT,
                product_keyword=product_keyword,
                category_keyword=category_keyword,
                requires_detailed_list=detailed,
            )

        if _has(lower, ("stock movement", "movements", "stok hareket", "hareketleri")):
            return ctx(
                ChatIntent.STOCK_MOVEMENT_SUMMARY,
                movement_type=movement_type,
                product_keyword=product_keyword,
                category_keyword=category_keyword,
                requires_detailed_list=detailed,
            )

        if _has(lower, ("profit", "margin", "kâr", "marj")) or re.search(r"\bkar", lower):
            return ctx(ChatIntent.MOST_PROFITABLE_CATEGORY)

        if _has(lower, ("sales potential", "expected sales", "potential revenue",
                        "satış potansiyeli", "beklenen satış", "potansiyel gelir")):
            return ctx(ChatIntent.SALES_POTENTIAL)

        if (
            _has(lower, ("stock value", "inventory value", "stok değeri", "envanter değeri"))
            or ("total stock" in lower and "value" in lower)
            or ("toplam stok" in lower and "değer" in lower)
        ):
            return ctx(ChatIntent.INVENTORY_VALUE)

        if _has(lower, ("most stock", "highest stock", "largest stock", "en fazla stok", "en çok stok",
                        "stok miktarı en yüksek", "stokları en yüksek")):
            return ctx(
                ChatIntent.TOP_STOCK_QUANTITY_PRODUCT,
                product_keyword=product_keyword,
                category_keyword=category_keyword,
                requires_detailed_list=detailed,
            )

        if (
            _has(lower, ("average price", "ortalama fiyat"))
            or ("purchase price" in lower and "sale price" in lower)
            or ("alış fiyatı" in lower and "satış fiyatı" in lower)
        ):
            return ctx(
                ChatIntent.AVERAGE_PRICES,
                product_keyword=product_keyword,
                category_keyword=category_keyword,
            )

        if product_keyword and _has(lower, ("product status", "status of", "stock of", "ürünün durumu",
                                            "ürünün stoğu", "ürün stoğu")):
            return ctx(ChatIntent.PRODUCT_CURRENT_STATUS, product_keyword=product_keyword)

        if category_keyword and _has(lower, ("category summary", "category stock", "how much in category",
                                             "kategori özeti", "kategori stok", "kategoride ne kadar")):
            return ctx(ChatIntent.CATEGORY_INVENTORY_SUMMARY, category_keyword=category_keyword)

        return ChatQuestionContext(
            ChatIntent.UNKNOWN,
            normalized,
            date_range,
            movement_type,
            product_keyword,
            category_keyword,
            detailed,
        )
