from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class NaturalLanguageReportRequest(BaseModel):
    question: str = Field("", max_length=2000, description="What the report should answer")


class NaturalLanguageReportResponse(BaseModel):
    """Result of an LLM-generated report."""
    success: bool = Field(..., description="True when the model produced an answer")
    message: str = Field(..., description="Report text or the failure reason")
    model: Optional[str] = Field(None, description="Model used for generation")
    is_configured: bool = Field(..., description="False when no API key is configured")
