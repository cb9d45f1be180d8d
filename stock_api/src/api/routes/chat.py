from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.chat import ChatRequest, ChatResponse
from src.services.chat import ChatService

router = APIRouter(prefix="/chat", tags=["Chat"])


# PUBLIC_INTERFACE
@router.post(
    "/ask",
    response_model=ChatResponse,
    summary="Ask the inventory assistant",
    description=(
        "Answer a question about the inventory or how to use the application. Help questions are "
        "answered directly; data questions are answered by Gemini from live inventory figures."
    ),
    dependencies=[Depends(require_permission("CanUseChat"))],
)
async def ask(payload: ChatRequest, session: AsyncSession = Depends(get_async_session)) -> ChatResponse:
    return await ChatService(session).ask(payload.question)
