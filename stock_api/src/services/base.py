from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import user_id_var
from src.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds a session for use across multiple repositories.

    Services should keep business logic and orchestration, delegating data access
    to repositories. They own the unit of work: repositories stage changes and the
    service commits.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    async def _publish(self, event_type: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> None:
        """Best-effort realtime notification; failures are logged and never raised."""
        try:
            await broadcast_manager.publish_event(event_type, payload, user_id=user_id or user_id_var.get())
        except Exception:
            logger.exception("Failed to publish %s event", event_type)
