import io
import logging
from urllib.parse import urlencode

import pandas as pd
import requests

from src.core.settings import AppSettings
from src.db.models.catalog import Product
from src.services.chat import GeminiIntentClassifier, help_text_for, suggestions_for, FALLBACK_SUGGESTIONS
from src.services.chat_intent import ChatIntent
from src.services.gemini import (
    EMPTY_PROMPT_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    GeminiClient,
    GeminiTextResult,
    extract_text,
)
from src.services.reports import (
    CRITICAL_STOCK_COLUMNS,
    build_critical_stock_frame,
    render_critical_stock_pdf,
    render_csv,
    severity_for,
    summarize_critical_stock,
)


class StubClient:
    """Returns a canned result instead of calling Gemini."""

    def __init__(self, result: GeminiTextResult) -> None:
        self.result = result
        self.prompts = []

    async def generate_text(self, prompt: str) -> GeminiTextResult:
        self.prompts.append(prompt)
        return self.result


def test_extract_text_returns_first_non_blank_part():
    body = {
        "candidates": [
            {"content": {"parts": [{"text": "  "}]}},
            {"content": {"parts": [{"text": " InventoryValue \n"}]}},
        ]
    }
    assert extract_text(body) == "InventoryValue"


def test_extract_text_without_candidates():
    assert extract_text({}) is None
    assert extract_text({"candidates": [{"content": {}}]}) is None


async def test_client_without_key_reports_not_configured():
    client = GeminiClient(AppSettings(GEMINI_API_KEY=None))
    result = await client.generate_text("hello")

    assert result.success is False
    assert result.is_configured is False
    assert result.message == NOT_CONFIGURED_MESSAGE


async def test_client_rejects_empty_prompt():
    client = GeminiClient(AppSettings(GEMINI_API_KEY="key"))
    result = await client.generate_text("   ")
    assert result.success is False
    assert result.message == EMPTY_PROMPT_MESSAGE


def test_client_builds_generate_content_url():
    client = GeminiClient(
        AppSettings(GEMINI_API_KEY="key", GEMINI_MODEL="gemini-x", GEMINI_API_ENDPOINT="https://example.test/v1/")
    )
    assert client._url() == "https://example.test/v1/models/gemini-x:generateContent"


class _ErrorResponse:
    status_code = 400

    def __init__(self, url):
        self.url = url

    def raise_for_status(self):
        raise requests.exceptions.HTTPError(f"400 Client Error: Bad Request for url: {self.url}", response=self)


def test_failed_request_keeps_api_key_out_of_logs(monkeypatch, caplog):
    sent = {}

    def fake_post(url, params=None, headers=None, **kwargs):
        sent.update(params=params, headers=headers)
        return _ErrorResponse(url if not params else f"{url}?{urlencode(params)}")

    monkeypatch.setattr("src.services.gemini.requests.post", fake_post)
    client = GeminiClient(AppSettings(GEMINI_API_KEY="SECRET-KEY-123"))

    with caplog.at_level(logging.DEBUG):
        result = client._generate("hello")

    assert result.success is False
    assert sent["headers"]["x-goog-api-key"] == "SECRET-KEY-123"
    assert not sent["params"]
    assert "HTTPError" in caplog.text
    assert "SECRET-KEY-123" not in caplog.text


def test_parse_reply_reads_first_line():
    assert GeminiIntentClassifier.parse_reply('"TopStockOutProducts."\nbecause...') == ChatIntent.TOP_STOCK_OUT_PRODUCTS
    assert GeminiIntentClassifier.parse_reply("\n\n salespotential") == ChatIntent.SALES_POTENTIAL
    assert GeminiIntentClassifier.parse_reply("I am not sure") == ChatIntent.UNKNOWN
    assert GeminiIntentClassifier.parse_reply(None) == ChatIntent.UNKNOWN


async def test_classifier_falls_back_to_unknown_on_failure():
    classifier = GeminiIntentClassifier(StubClient(GeminiTextResult(False, "boom")))
    assert await classifier.classify("anything") == ChatIntent.UNKNOWN


async def test_classifier_uses_model_reply():
    stub = StubClient(GeminiTextResult(True, "InventoryValue"))
    classifier = GeminiIntentClassifier(stub)

    assert await classifier.classify("how rich are we") == ChatIntent.INVENTORY_VALUE
    assert "how rich are we" in stub.prompts[0]


def test_suggestions_fall_back_for_unknown():
    assert suggestions_for(ChatIntent.UNKNOWN) == list(FALLBACK_SUGGESTIONS)
    assert help_text_for(ChatIntent.HOW_TO_ADD_PRODUCT)


def test_severity_thresholds():
    assert severity_for(11) == "Very critical"
    assert severity_for(10) == "Critical"
    assert severity_for(6) == "Critical"
    assert severity_for(5) == "Warning"
    assert severity_for(0) == "Warning"


def _critical_rows():
    return [
        (Product(name="Mouse", stock_code="MOU001", stock_quantity=1, low_stock_threshold=20), "Electronics", None),
        (Product(name="Paper", stock_code="PAP002", stock_quantity=2, low_stock_threshold=5), None, "Main"),
    ]


def test_critical_stock_frame():
    df = build_critical_stock_frame(_critical_rows())

    assert list(df.columns) == CRITICAL_STOCK_COLUMNS
    assert df["#"].tolist() == [1, 2]
    assert df["Shortfall"].tolist() == [19, 3]
    assert df["Severity"].tolist() == ["Very critical", "Warning"]
    assert df["Category"].tolist() == ["Electronics", "-"]


def test_summary_names_most_critical_product():
    lines = summarize_critical_stock(build_critical_stock_frame(_critical_rows()))

    assert lines[0] == "Critical products: 2"
    assert lines[1] == "Total shortfall: 22 units"
    assert "Mouse (MOU001)" in lines[2]


def test_summary_for_empty_report():
    df = pd.DataFrame([], columns=CRITICAL_STOCK_COLUMNS)
    assert summarize_critical_stock(df) == ["No products are below their low-stock threshold."]


def test_render_csv_has_header_row():
    content = render_csv(build_critical_stock_frame(_critical_rows()))
    df = pd.read_csv(io.BytesIO(content))

    assert list(df.columns) == CRITICAL_STOCK_COLUMNS
    assert len(df) == 2


def test_render_pdf_produces_pdf_bytes():
    content = render_critical_stock_pdf(build_critical_stock_frame(_critical_rows()))
    assert content.startswith(b"%PDF")
