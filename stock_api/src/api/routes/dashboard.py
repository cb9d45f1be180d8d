from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.dashboard import DashboardStats
from src.services.dashboard import DashboardService
from src.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Dashboard statistics",
    description=(
        "Aggregated inventory statistics, served from a short-lived cache. "
        "The snapshot is also pushed to WebSocket subscribers as 'dashboard.stats'."
    ),
    dependencies=[Depends(require_permission("CanViewDashboard"))],
)
async def get_dashboard_stats(session: AsyncSession = Depends(get_async_session)) -> DashboardStats:
    stats = await DashboardService(session).get_stats()
    try:
        await broadcast_manager.publish_dashboard_stats(stats.model_dump(mode="json"))
    except Exception:
        logger.exception("Failed to broadcast dashboard stats")
    return stats
