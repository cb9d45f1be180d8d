from __future__ import annotations

import io

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.reports import NaturalLanguageReportRequest, NaturalLanguageReportResponse
from src.services.reports import CriticalStockReportService, NaturalLanguageReportService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)


# PUBLIC_INTERFACE
@router.get(
    "/critical-stock",
    summary="Critical stock report",
    description="Products under their low-stock threshold with shortfall and severity.",
    response_description="File stream (PDF/CSV)",
    dependencies=[Depends(require_permission("CanViewReports"))],
)
async def critical_stock_report(
    session: AsyncSession = Depends(get_async_session),
    format: str = Query("pdf", description="Export format: pdf | csv"),
) -> StreamingResponse:
    """
    Export the critical stock report.

    The PDF adds a summary with the total shortfall, the most critical product and
    the number of critical products per category.
    """
    report = await CriticalStockReportService(session).export(format)
    headers = {"Content-Disposition": f'attachment; filename="{report.filename}"'}
    return StreamingResponse(io.BytesIO(report.content), media_type=report.media_type, headers=headers)


# PUBLIC_INTERFACE
@router.post(
    "/natural-language",
    response_model=NaturalLanguageReportResponse,
    summary="Natural-language report",
    description="Answer a reporting question with Gemini over the current dashboard statistics.",
    dependencies=[Depends(require_permission("CanViewReports"))],
)
async def natural_language_report(
    payload: NaturalLanguageReportRequest,
    session: AsyncSession = Depends(get_async_session),
) -> NaturalLanguageReportResponse:
    return await NaturalLanguageReportService(session).generate(payload.question)
