"""
Thin Gemini REST client used by the chat assistant and natural-language reports.

Calls never raise: every outcome is reported through GeminiTextResult so callers can
fall back to a canned answer when the model is unavailable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from src.core.settings import AppSettings, get_app_settings

logger = logging.getLogger(__name__)

EMPTY_PROMPT_MESSAGE = "The request text cannot be empty."
NOT_CONFIGURED_MESSAGE = "The Gemini API key is not configured, so AI answers are unavailable."
NO_TEXT_MESSAGE = "The Gemini model did not return a meaningful answer."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while contacting the Gemini service."


@dataclass(frozen=True)
class GeminiTextResult:
    """Outcome of a text generation call."""

    success: bool
    message: str
    model: Optional[str] = None
    is_configured: bool = True


# PUBLIC_INTERFACE
def extract_text(body: Dict[str, Any]) -> Optional[str]:
    """Return the first non-blank text part from a generateContent response body."""
    for candidate in body.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            text = part.get("text")
            if text and text.strip():
                return text.strip()
    return None


class GeminiClient:
    """Synchronous generateContent call wrapped for async callers."""

    def __init__(self, settings: Optional[AppSettings] = None) -> None:
        self.settings = settings or get_app_settings()

    @property
    def is_configured(self) -> bool:
        return bool((self.settings.GEMINI_API_KEY or "").strip())

    def _url(self) -> str:
        endpoint = self.settings.GEMINI_API_ENDPOINT.rstrip("/")
        return f"{endpoint}/models/{self.settings.GEMINI_MODEL}:generateContent"

    def _generate(self, prompt: str) -> GeminiTextResult:
        model = self.settings.GEMINI_MODEL
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        # The key travels in a header so request URLs stay safe to log.
        headers = {"x-goog-api-key": self.settings.GEMINI_API_KEY or ""}
        try:
            response = requests.post(
                self._url(),
                headers=headers,
                json=payload,
                timeout=self.settings.GEMINI_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as exc:
            status = getattr(exc.response, "status_code", None)
            logger.warning("Gemini API request failed: %s (status=%s)", type(exc).__name__, status)
            return GeminiTextResult(False, UNEXPECTED_ERROR_MESSAGE, model)
        except ValueError:
            logger.warning("Gemini API returned a non-JSON body")
            return GeminiTextResult(False, UNEXPECTED_ERROR_MESSAGE, model)

        text = extract_text(body) if isinstance(body, dict) else None
        if not text:
            logger.warning("Gemini response contained no text")
            return GeminiTextResult(False, NO_TEXT_MESSAGE, model)
        return GeminiTextResult(True, text, model)

    # PUBLIC_INTERFACE
    async def generate_text(self, prompt: str) -> GeminiTextResult:
        """Generate text for a prompt; blocking I/O runs in the threadpool."""
        if not prompt or not prompt.strip():
            return GeminiTextResult(False, EMPTY_PROMPT_MESSAGE)
        if not self.is_configured:
            logger.warning("Gemini API key not found; set GEMINI_API_KEY to enable AI answers")
            return GeminiTextResult(False, NOT_CONFIGURED_MESSAGE, None, False)
        return await run_in_threadpool(self._generate, prompt)
