from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.catalog import ProductRepository, ProductRow
from src.schemas.dashboard import DashboardStats
from src.schemas.reports import NaturalLanguageReportResponse
from src.services.chat_intent import DATE_FORMAT
from src.services.dashboard import DashboardService
from src.services.gemini import GeminiClient

logger = logging.getLogger(__name__)

CRITICAL_STOCK_COLUMNS = [
    "#",
    "Product",
    "Stock Code",
    "Category",
    "Stock",
    "Threshold",
    "Shortfall",
    "Severity",
]

EMPTY_QUESTION_MESSAGE = "The question cannot be empty."


# PUBLIC_INTERFACE
def severity_for(shortfall: int) -> str:
    """Label a threshold shortfall: > 10 very critical, > 5 critical, otherwise a warning."""
    if shortfall > 10:
        return "Very critical"
    if shortfall > 5:
        return "Critical"
    return "Warning"


# PUBLIC_INTERFACE
def build_critical_stock_frame(rows: Sequence[ProductRow]) -> pd.DataFrame:
    """Tabulate products under their threshold, one row per product in the given order."""
    data = []
    for index, (product, category_name, _) in enumerate(rows, start=1):
        shortfall = max(product.low_stock_threshold - product.stock_quantity, 0)
        data.append(
            {
                "#": index,
                "Product": product.name,
                "Stock Code": product.stock_code,
                "Category": category_name or "-",
                "Stock": product.stock_quantity,
                "Threshold": product.low_stock_threshold,
                "Shortfall": shortfall,
                "Severity": severity_for(shortfall),
            }
        )
    return pd.DataFrame(data, columns=CRITICAL_STOCK_COLUMNS)


# PUBLIC_INTERFACE
def summarize_critical_stock(df: pd.DataFrame) -> List[str]:
    """Summary lines printed under the PDF table."""
    if df.empty:
        return ["No products are below their low-stock threshold."]
    top = df.sort_values("Shortfall", ascending=False).iloc[0]
    lines = [
        f"Critical products: {len(df)}",
        f"Total shortfall: {int(df['Shortfall'].sum())} units",
        f"Most critical product: {top['Product']} ({top['Stock Code']}), short by {int(top['Shortfall'])}",
    ]
    per_category = df.groupby("Category").size().sort_values(ascending=False)
    lines.append(
        "By category: " + ", ".join(f"{name} ({int(count)})" for name, count in per_category.items())
    )
    return lines


# PUBLIC_INTERFACE
def render_csv(df: pd.DataFrame) -> bytes:
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue().encode("utf-8")


# PUBLIC_INTERFACE
def render_critical_stock_pdf(df: pd.DataFrame, generated_at: Optional[datetime] = None) -> bytes:
    """Render the critical stock table plus its summary as a landscape A4 PDF."""
    generated_at = generated_at or datetime.now(tz=timezone.utc)
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=landscape(A4), leftMargin=18, rightMargin=18, topMargin=18, bottomMargin=18
    )
    styles = getSampleStyleSheet()
    elements: list = [
        Paragraph("Critical Stock Report", styles["Title"]),
        Paragraph(f"Generated {generated_at.strftime(DATE_FORMAT)} UTC", styles["Normal"]),
        Spacer(1, 12),
    ]

    data = [list(df.columns)] + df.astype(str).values.tolist()
    table = Table(data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]
        )
    )
    elements.append(table)
    elements.append(Spacer(1, 12))
    elements.append(Paragraph("Summary", styles["Heading2"]))
    for line in summarize_critical_stock(df):
        elements.append(Paragraph(line, styles["Normal"]))

    doc.build(elements)
    return buffer.getvalue()


@dataclass(frozen=True)
class ReportFile:
    content: bytes
    media_type: str
    filename: str


class CriticalStockReportService:
    """Exports products under their low-stock threshold."""

    def __init__(self, session: AsyncSession) -> None:
        self.products = ProductRepository(session)

    # PUBLIC_INTERFACE
    async def export(self, export_format: str = "pdf") -> ReportFile:
        """Build the report as 'pdf' or 'csv' (anything else falls back to csv)."""
        rows = await self.products.list_critical()
        df = build_critical_stock_frame(rows)
        stamp = datetime.now(tz=timezone.utc).strftime("%Y%m%d_%H%M")
        logger.info("Critical stock report: %s products, format=%s", len(df), export_format)
        if (export_format or "").lower() == "pdf":
            return ReportFile(render_critical_stock_pdf(df), "application/pdf", f"critical_stock_{stamp}.pdf")
        return ReportFile(render_csv(df), "text/csv", f"critical_stock_{stamp}.csv")


# PUBLIC_INTERFACE
def build_report_prompt(question: str, stats: DashboardStats) -> str:
    lines = [
        "You are a stock management assistant. Answer the user's question using only the data provided.",
        "Express financial values with two decimals and write the metrics in English.",
        "Summary data from the system:",
        "",
        "General statistics:",
        f"- Total products: {stats.total_products}",
        f"- Total stock quantity: {stats.total_stock_quantity}",
        f"- Total inventory cost: {stats.total_inventory_cost:,.2f}",
        f"- Expected total sales: {stats.total_expected_sales_revenue:,.2f}",
        f"- Potential profit: {stats.total_potential_profit:,.2f}",
        f"- Average margin: {round(stats.average_margin_percentage, 2)}%",
        "",
    ]

    if stats.top_valuable_products:
        lines.append("Most valuable products (top 5):")
        for product in stats.top_valuable_products[:5]:
            lines.append(
                f"- {product.product_name}: inventory cost {product.inventory_cost:,.2f}, "
                f"expected sales {product.inventory_potential_revenue:,.2f}, "
                f"potential profit {product.potential_profit:,.2f}"
            )
        lines.append("")

    categories = sorted(stats.category_value_distribution, key=lambda c: c.total_potential_revenue, reverse=True)
    if categories:
        lines.append("Category summary (top 5):")
        for category in categories[:5]:
            lines.append(
                f"- {category.category_name}: total cost {category.total_cost:,.2f}, "
                f"expected sales {category.total_potential_revenue:,.2f}, "
                f"expected profit {category.total_potential_profit:,.2f}"
            )
        lines.append("")

    movements = sorted(stats.recent_stock_movements, key=lambda m: m.created_at, reverse=True)[:10]
    if movements:
        lines.append("Recent stock movements (10 records):")
        for movement in movements:
            lines.append(
                f"- {movement.created_at.strftime(DATE_FORMAT)} | {movement.product_name} | "
                f"{movement.type_text} | Qty: {movement.quantity} | Description: {movement.description or '-'}"
            )
        lines.append("")

    lines.extend(
        [
            "User question:",
            question.strip(),
            "",
            "Guidelines:",
            "- Answer in English.",
            "- Use short paragraphs or bullet points.",
            "- State your assumptions clearly if you need to estimate.",
            "- End with a short note on the period the data covers.",
        ]
    )
    return "\n".join(lines)


class NaturalLanguageReportService:
    """Free-form report answered by Gemini over the dashboard snapshot."""

    def __init__(self, session: AsyncSession, client: Optional[GeminiClient] = None) -> None:
        self.session = session
        self.client = client or GeminiClient()

    # PUBLIC_INTERFACE
    async def generate(self, question: str) -> NaturalLanguageReportResponse:
        if not question or not question.strip():
            return NaturalLanguageReportResponse(success=False, message=EMPTY_QUESTION_MESSAGE, is_configured=True)

        stats = await DashboardService(self.session).get_stats()
        result = await self.client.generate_text(build_report_prompt(question, stats))
        if not result.success:
            logger.warning("Natural-language report failed: %s", result.message)
        return NaturalLanguageReportResponse(
            success=result.success,
            message=result.message,
            model=result.model,
            is_configured=result.is_configured,
        )
