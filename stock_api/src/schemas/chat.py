from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    question: str = Field("", max_length=2000, description="Free-text question about the inventory or the app")


class ChatResponse(BaseModel):
    """Assistant answer with the resolved intent and follow-up suggestions."""
    answer: str = Field(..., description="Answer text (markdown allowed)")
    intent: str = Field(..., description="Resolved intent name")
    suggestions: List[str] = Field(default_factory=list, description="Suggested follow-up questions")
    debug_context: Optional[str] = Field(None, description="Data or handling notes used to build the answer")
