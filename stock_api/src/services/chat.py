from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.catalog import ProductRepository
from src.repositories.inventory import StockMovementRepository
from src.schemas.chat import ChatResponse
from src.services.chat_intent import (
    DATE_FORMAT,
    HELP_INTENTS,
    ChatIntent,
    ChatIntentDetector,
    ChatQuestionContext,
    DateRange,
)
from src.services.dashboard import DashboardService, as_utc, movement_type_text
from src.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

CANNOT_ACCESS_MESSAGE = "Sorry, I can't access that information right now. Is there anything else you'd like to ask?"
GEMINI_FAILED_MESSAGE = "Something went wrong while processing your question. Would you like to ask something else?"
GEMINI_NOT_CONFIGURED_MESSAGE = "The AI service is not configured, so I can't answer this question right now."

HELP_TEXTS: Dict[ChatIntent, str] = {
    ChatIntent.HOW_TO_ADD_PRODUCT: (
        "To add a product:\n"
        "1. Click \"Add New Product\" on the Products page.\n"
        "2. Fill in the required fields: name, stock quantity, category, purchase and sale price.\n"
        "3. Optionally attach an image and set a low-stock threshold.\n"
        "4. Click \"Save\"; the product shows up in every list immediately thanks to live updates."
    ),
    ChatIntent.HOW_TO_UPDATE_PRODUCT: (
        "To update a product:\n"
        "1. Click \"Edit\" next to the product in the Products table.\n"
        "2. Change stock, prices, description, category or location in the form.\n"
        "3. To replace the image, upload a new one in the same form and click \"Update\".\n"
        "4. Lists and stock statistics refresh automatically after saving."
    ),
    ChatIntent.HOW_TO_DELETE_PRODUCT: (
        "To delete a product:\n"
        "1. Click \"Delete\" on the product's row in the Products table.\n"
        "2. Confirm with \"Yes, delete\".\n"
        "3. Be careful: the product's stock movements and price history are removed as well."
    ),
    ChatIntent.HOW_TO_USE_DASHBOARD: (
        "Using the dashboard:\n"
        "- The cards at the top show total inventory value, expected sales and potential profit.\n"
        "- The category chart shows cost, expected sales and profit side by side.\n"
        "- The recent stock movements table lists the latest stock in/out entries."
    ),
    ChatIntent.GENERAL_APP_HELP: (
        "With Stock App you can:\n"
        "- Manage products, categories, locations, stock movements and prices in one place.\n"
        "- Follow your financial position on a dashboard that updates in real time.\n"
        "- See price history and stock movements on each product's detail page."
    ),
    ChatIntent.AI_ASSISTANT_INFO: (
        "What can the Stock App assistant do?\n"
        "- Analyse stock and financial data and write short reports.\n"
        "- Walk you through in-app tasks such as adding products or managing categories.\n"
        "- Understand questions with date ranges and product or category filters."
    ),
    ChatIntent.HOW_TO_MANAGE_CATEGORY: (
        "Products cannot be assigned from the Categories page. A product joins a category when you "
        "pick that category while adding or editing the product."
    ),
    ChatIntent.HOW_TO_MANAGE_LOCATION: (
        "To change a location itself, edit it on the Locations page. To move a product to another "
        "location, click \"Edit\" on the product in the Products page and pick the new location."
    ),
    ChatIntent.HOW_TO_ADD_ATTRIBUTE: (
        "To add a product attribute:\n"
        "1. Click \"New Attribute\" on the Attributes page.\n"
        "2. Select the product and fill in the key and value (e.g. \"Color\": \"Blue\").\n"
        "3. After saving, the attribute appears on the product detail page and in lists."
    ),
    ChatIntent.EXPLAIN_ATTRIBUTE_PURPOSE: (
        "What are attributes for?\n"
        "- Attributes add extra information to products such as color, size or material.\n"
        "- Warehouse and sales staff can find these details quickly on the product page.\n"
        "- You can filter and report by specific attributes (e.g. \"color is blue\").\n"
        "- Attributes can be added, edited or deleted on the Attributes page."
    ),
    ChatIntent.HOW_TO_MANAGE_ATTRIBUTE: (
        "Editing or deleting attributes:\n"
        "1. Click \"Edit\" on the attribute's row on the Attributes page and change the key or value.\n"
        "2. To delete one, use \"Delete\" on the same row and confirm.\n"
        "3. A deleted attribute disappears from the product detail page and from reports."
    ),
    ChatIntent.HOW_TO_VIEW_STOCK_MOVEMENTS: (
        "Open the \"Stock Movements\" page from the top menu. The \"Export to Excel\" button downloads "
        "the stock movements to your device."
    ),
    ChatIntent.HOW_TO_EXPORT_PRODUCTS_EXCEL: (
        "Open the \"Products\" page from the top menu. The \"Export to Excel\" button downloads the "
        "product list to your device."
    ),
    ChatIntent.HOW_TO_USE_TODOS: (
        "The to-do module:\n"
        "1. Click \"New Task\" on the To-dos page and set a title, description, priority and status.\n"
        "2. Use \"Edit\" on a task card to change it, or \"Delete\" to remove it.\n"
        "3. Mark a task \"Completed\" when done; it stays in the list for reference.\n"
        "4. Filter by status or priority to find active tasks quickly."
    ),
}

DEFAULT_HELP_TEXT = "I couldn't prepare a short guide on this topic. Feel free to ask something else."

SUGGESTIONS: Dict[ChatIntent, List[str]] = {
    ChatIntent.INVENTORY_VALUE: ["Stock in over the last 7 days", "Which category is the most profitable?"],
    ChatIntent.MOST_PROFITABLE_CATEGORY: [
        "Can you summarise stock for a specific category?",
        "Which product had the most stock out?",
    ],
    ChatIntent.STOCK_MOVEMENT_SUMMARY: ["Show only stock in movements", "Stock out summary for last month"],
    ChatIntent.HOW_TO_ADD_PRODUCT: ["How do I update a product?", "How do I export products to Excel?"],
    ChatIntent.HOW_TO_UPDATE_PRODUCT: ["How do I delete a product?", "How do I change a product's price?"],
    ChatIntent.HOW_TO_DELETE_PRODUCT: ["Is deleting products permanent?", "Remind me how to add a product"],
    ChatIntent.HOW_TO_MANAGE_CATEGORY: [
        "How is a product assigned to a category?",
        "What happens to products when a category is deleted?",
    ],
    ChatIntent.HOW_TO_MANAGE_LOCATION: [
        "How do I change a location?",
        "How do I move a product to a new location?",
    ],
    ChatIntent.HOW_TO_ADD_ATTRIBUTE: ["How do I edit an attribute?", "Can I filter the attribute list?"],
    ChatIntent.EXPLAIN_ATTRIBUTE_PURPOSE: ["How do I add an attribute?", "Which products have attributes?"],
    ChatIntent.HOW_TO_MANAGE_ATTRIBUTE: ["What are the steps to add an attribute?", "Can I filter attributes?"],
    ChatIntent.HOW_TO_EXPORT_PRODUCTS_EXCEL: [
        "How do I export stock movements to Excel?",
        "What does the Excel export contain?",
    ],
    ChatIntent.HOW_TO_VIEW_STOCK_MOVEMENTS: [
        "Can you show the last 5 stock in entries?",
        "How do I export stock movements to Excel?",
    ],
    ChatIntent.HOW_TO_USE_TODOS: ["How do I filter tasks?", "Can I share tasks with someone else?"],
    ChatIntent.TOP_STOCK_QUANTITY_PRODUCT: [
        "Which products are the most profitable?",
        "Are there any products with a low-stock warning?",
    ],
    ChatIntent.SMALL_TALK: ["How was my stock this week?", "How do I add a product?"],
}

FALLBACK_SUGGESTIONS = [
    "Can you summarise last week's stock movements?",
    "Which category is the most profitable?",
    "What are the steps to add a product?",
]

DASHBOARD_INTENTS = frozenset(
    {
        ChatIntent.INVENTORY_VALUE,
        ChatIntent.MOST_PROFITABLE_CATEGORY,
        ChatIntent.SALES_POTENTIAL,
        ChatIntent.AVERAGE_PRICES,
        ChatIntent.CATEGORY_INVENTORY_SUMMARY,
        ChatIntent.PRODUCT_CURRENT_STATUS,
    }
)

MOVEMENT_INTENTS = frozenset(
    {
        ChatIntent.TOP_STOCK_IN_PRODUCTS,
        ChatIntent.TOP_STOCK_OUT_PRODUCTS,
        ChatIntent.STOCK_MOVEMENT_SUMMARY,
        ChatIntent.STOCK_MOVEMENT_BY_TYPE,
    }
)


# PUBLIC_INTERFACE
def suggestions_for(intent: ChatIntent) -> List[str]:
    """Follow-up suggestions for an intent, falling back to the generic list."""
    return list(SUGGESTIONS.get(intent) or FALLBACK_SUGGESTIONS)


# PUBLIC_INTERFACE
def help_text_for(intent: ChatIntent) -> str:
    return HELP_TEXTS.get(intent, DEFAULT_HELP_TEXT)


def _money(value: float) -> str:
    return f"{value:,.2f}"


class GeminiIntentClassifier:
    """Second-opinion intent classification by the language model."""

    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    @staticmethod
    def build_prompt(question: str) -> str:
        lines = [
            "Below are the intent names supported by the Stock App assistant.",
            "Task: analyse the user's question and return the name of the SINGLE best matching intent on one line.",
            "Reply with the intent name only. No explanation, punctuation or other text.",
            "If no intent fits, reply 'Unknown'.",
            "",
            "Intents:",
        ]
        lines.extend(f"- {intent.value}" for intent in ChatIntent)
        lines.append("")
        lines.append(f'User question: "{question}"')
        return "\n".join(lines)

    # PUBLIC_INTERFACE
    @staticmethod
    def parse_reply(text: Optional[str]) -> ChatIntent:
        """Parse the first line of a model reply into an intent; anything unrecognised is UNKNOWN."""
        for line in (text or "").splitlines():
            candidate = line.strip().strip(". \"'")
            if candidate:
                return ChatIntent.parse(candidate) or ChatIntent.UNKNOWN
        return ChatIntent.UNKNOWN

    # PUBLIC_INTERFACE
    async def classify(self, question: str) -> ChatIntent:
        if not question or not question.strip():
            return ChatIntent.UNKNOWN
        result = await self.client.generate_text(self.build_prompt(question))
        if not result.success:
            return ChatIntent.UNKNOWN
        return self.parse_reply(result.message)


class ChatService:
    """
    Inventory assistant.

    Questions are routed by ChatIntentDetector first and by the model only when the
    keyword pass gives up. Help intents are answered from static text; data intents
    get a prompt enriched with live inventory figures and are answered by Gemini.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: Optional[GeminiClient] = None,
        detector: Optional[ChatIntentDetector] = None,
    ) -> None:
        self.session = session
        self.client = client or GeminiClient()
        self.detector = detector or ChatIntentDetector()
        self.classifier = GeminiIntentClassifier(self.client)
        self.products = ProductRepository(session)
        self.movements = StockMovementRepository(session)

    # PUBLIC_INTERFACE
    async def ask(self, question: str) -> ChatResponse:
        """Answer a free-text question about the inventory or the application."""
        context = self.detector.analyse(question)
        if context.intent == ChatIntent.UNKNOWN:
            classified = await self.classifier.classify(question)
            if classified != ChatIntent.UNKNOWN:
                context = context.with_intent(classified)
        intent = context.intent
        logger.info("Chat question resolved to intent=%s", intent.value)

        if intent in HELP_INTENTS:
            return ChatResponse(
                answer=help_text_for(intent),
                intent=intent.value,
                suggestions=suggestions_for(intent),
                debug_context=f"Help intent handled directly: {intent.value}",
            )

        prompt = [
            "You are the AI assistant of Stock App, a stock management application.",
            "Answer the user's question in English using only the data provided below.",
            "Do not invent information beyond the company data; if you are unsure, say so honestly.",
            "Organise the answer in short paragraphs and bullet points where useful.",
            "End every answer with a suggested next step or a related tip.",
            "",
            f'User question: "{context.original_question}"',
            f"Detected intent: {intent.value}",
        ]
        debug, has_data = await self._append_context_data(context, prompt)

        if intent == ChatIntent.UNKNOWN or not has_data:
            return ChatResponse(
                answer=CANNOT_ACCESS_MESSAGE,
                intent=intent.value,
                suggestions=suggestions_for(intent),
                debug_context=debug,
            )

        prompt.extend(
            [
                "",
                "Answer format:",
                "- Start with a short summary.",
                "- Then list the key findings as bullet points.",
                '- Finish with one line starting with "Suggestion:".',
            ]
        )
        result = await self.client.generate_text("\n".join(prompt))
        if not result.success:
            answer = GEMINI_FAILED_MESSAGE if result.is_configured else GEMINI_NOT_CONFIGURED_MESSAGE
        else:
            answer = result.message
        return ChatResponse(
            answer=answer,
            intent=intent.value,
            suggestions=suggestions_for(intent),
            debug_context=debug,
        )

    async def _append_context_data(self, context: ChatQuestionContext, prompt: List[str]) -> Tuple[str, bool]:
        debug = [f"Intent: {context.intent.value}"]

        if context.date_range is not None:
            debug.append(f"DateRange: {context.date_range}")
            prompt.append(f"Date range: {context.date_range}")
        else:
            prompt.append("Date range: not specified (default: last 30 days)")
        if context.product_keyword:
            prompt.append(f"Product keyword: {context.product_keyword}")
            debug.append(f"ProductKeyword: {context.product_keyword}")
        if context.category_keyword:
            prompt.append(f"Category keyword: {context.category_keyword}")
            debug.append(f"CategoryKeyword: {context.category_keyword}")
        if context.movement_type is not None:
            prompt.append(f"Movement type: {movement_type_text(context.movement_type)}")
            debug.append(f"MovementType: {movement_type_text(context.movement_type)}")

        has_data = True
        if context.intent in DASHBOARD_INTENTS:
            await self._append_dashboard_data(context, prompt, debug)
        elif context.intent in MOVEMENT_INTENTS:
            await self._append_movement_data(context, prompt, debug)
        elif context.intent == ChatIntent.TOP_STOCK_QUANTITY_PRODUCT:
            await self._append_top_stock_products(context, prompt, debug)
        elif context.intent == ChatIntent.SMALL_TALK:
            prompt.append("The user sent a greeting or small talk.")
            debug.append("SmallTalk intent.")
        else:
            prompt.append("No data preparation exists for this intent. Let the user know politely.")
            debug.append("Intent not implemented with data enrichment.")
            has_data = False

        return "\n".join(debug), has_data

    async def _append_dashboard_data(self, context: ChatQuestionContext, prompt: List[str], debug: List[str]) -> None:
        stats = await DashboardService(self.session).get_stats()
        prompt.extend(
            [
                "",
                "Dashboard figures:",
                f"- Total stock quantity: {stats.total_stock_quantity}",
                f"- Total inventory cost: {_money(stats.total_inventory_cost)}",
                f"- Expected total sales revenue: {_money(stats.total_expected_sales_revenue)}",
                f"- Potential profit: {_money(stats.total_potential_profit)}",
                f"- Average margin: {_money(stats.average_margin_percentage)}%",
            ]
        )
        debug.append("Dashboard stats appended.")
        take = 10 if context.requires_detailed_list else 5

        if context.intent in (ChatIntent.MOST_PROFITABLE_CATEGORY, ChatIntent.CATEGORY_INVENTORY_SUMMARY):
            categories = sorted(
                stats.category_value_distribution, key=lambda c: c.total_potential_profit, reverse=True
            )[:take]
            prompt.extend(["", "Values by category:"])
            for cat in categories:
                prompt.append(
                    f"- {cat.category_name}: Cost={_money(cat.total_cost)}, "
                    f"Expected sales={_money(cat.total_potential_revenue)}, Profit={_money(cat.total_potential_profit)}"
                )

        if context.intent == ChatIntent.AVERAGE_PRICES:
            prompt.extend(["", "Price summary of the most valuable products:"])
            for product in stats.top_valuable_products[:take]:
                prompt.append(
                    f"- {product.product_name} ({product.stock_code}): Cost={_money(product.inventory_cost)}, "
                    f"Expected sales={_money(product.inventory_potential_revenue)}, "
                    f"Profit={_money(product.potential_profit)}"
                )

        if context.intent == ChatIntent.PRODUCT_CURRENT_STATUS and context.product_keyword:
            row = await self.products.find_by_keyword(context.product_keyword)
            if row is None:
                prompt.extend(["", "No product matches the given name. Let the user know politely."])
                return
            product, category_name, _ = row
            prompt.extend(
                [
                    "",
                    "Product detail:",
                    f"- Product: {product.name} ({product.stock_code})",
                    f"- Category: {category_name or 'Not specified'}",
                    f"- Current stock: {product.stock_quantity}",
                    f"- Latest purchase price: {_money(product.current_purchase_price or 0)}",
                    f"- Latest sale price: {_money(product.current_sale_price or 0)}",
                ]
            )
            last = await self.movements.last_for_product(product.id)
            if last is not None:
                prompt.append(
                    f"- Last stock movement: {as_utc(last.created_at).strftime(DATE_FORMAT)}, "
                    f"{movement_type_text(last.type)}, quantity {last.quantity}, "
                    f"description: {last.description or '-'}"
                )

    async def _append_movement_data(self, context: ChatQuestionContext, prompt: List[str], debug: List[str]) -> None:
        now = datetime.now(tz=timezone.utc)
        effective = context.date_range or DateRange(now - timedelta(days=30), now)
        debug.append(f"EffectiveRange: {effective}")

        rows = await self.movements.list_movements(
            movement_type=context.movement_type,
            start_date=effective.start,
            end_date=effective.end,
            product_keyword=context.product_keyword,
            category_keyword=context.category_keyword,
            limit=20 if context.requires_detailed_list else 10,
        )
        if not rows:
            prompt.extend(["", "No stock movements match the given criteria."])
            return

        prompt.extend(["", "Matching stock movements (newest first):"])
        totals: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
        for movement, product_name, _, _, _ in rows:
            prompt.append(
                f"- {as_utc(movement.created_at).strftime(DATE_FORMAT)} | {product_name} | "
                f"{movement_type_text(movement.type)} | Qty: {movement.quantity} | "
                f"Unit price: {_money(movement.unit_price or 0)} | Description: {movement.description or '-'}"
            )
            totals[product_name][0] += movement.quantity
            totals[product_name][1] += 1

        grouped = sorted(totals.items(), key=lambda item: item[1][0], reverse=True)[:5]
        prompt.extend(["", "Summary (selected movements):"])
        for product_name, (quantity, count) in grouped:
            prompt.append(f"- {product_name}: total quantity {quantity}, movement count {count}")

    async def _append_top_stock_products(
        self, context: ChatQuestionContext, prompt: List[str], debug: List[str]
    ) -> None:
        rows = await self.products.top_by_stock(
            product_keyword=context.product_keyword,
            category_keyword=context.category_keyword,
            limit=10 if context.requires_detailed_list else 5,
        )
        if not rows:
            prompt.extend(["", "No stock information matches the given criteria."])
            return

        prompt.extend(["", "Products with the highest stock quantity:"])
        for product, category_name, _ in rows:
            prompt.append(
                f"- {product.name} ({product.stock_code}) | Stock: {product.stock_quantity} | "
                f"Category: {category_name or '-'} | Latest sale price: {_money(product.current_sale_price or 0)}"
            )
        top = rows[0][0]
        debug.append(f"TopStockProduct: {top.name} ({top.stock_quantity})")
