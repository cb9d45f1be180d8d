import io

import pandas as pd

from src.services.chat import CANNOT_ACCESS_MESSAGE, GEMINI_NOT_CONFIGURED_MESSAGE
from src.services.reports import CRITICAL_STOCK_COLUMNS, EMPTY_QUESTION_MESSAGE

API = "/api/v1"


async def _critical_product(client, headers):
    res = await client.post(f"{API}/categories", json={"name": "Cables"}, headers=headers)
    category = res.json()
    res = await client.post(
        f"{API}/products",
        json={
            "name": "HDMI Cable",
            "category_id": category["id"],
            "stock_quantity": 2,
            "low_stock_threshold": 10,
            "purchase_price": 5,
            "sale_price": 9,
        },
        headers=headers,
    )
    return res.json()


async def test_help_question_is_answered_without_the_model(client, admin_headers):
    res = await client.post(f"{API}/chat/ask", json={"question": "How do I add a product?"}, headers=admin_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["intent"] == "HowToAddProduct"
    assert body["answer"]
    assert body["suggestions"]
    assert body["debug_context"] == "Help intent handled directly: HowToAddProduct"


async def test_data_question_without_api_key(client, admin_headers):
    await _critical_product(client, admin_headers)

    res = await client.post(
        f"{API}/chat/ask", json={"question": "What is the total inventory value?"}, headers=admin_headers
    )

    body = res.json()
    assert body["intent"] == "InventoryValue"
    assert body["answer"] == GEMINI_NOT_CONFIGURED_MESSAGE
    assert "Dashboard stats appended." in body["debug_context"]


async def test_unrecognised_question(client, admin_headers):
    res = await client.post(f"{API}/chat/ask", json={"question": "Tell me a joke about penguins"}, headers=admin_headers)

    body = res.json()
    assert body["intent"] == "Unknown"
    assert body["answer"] == CANNOT_ACCESS_MESSAGE


async def test_chat_requires_permission(client, user_headers):
    res = await client.post(f"{API}/chat/ask", json={"question": "hello"}, headers=user_headers)
    assert res.status_code == 403


async def test_critical_stock_csv(client, admin_headers):
    product = await _critical_product(client, admin_headers)

    res = await client.get(f"{API}/reports/critical-stock", params={"format": "csv"}, headers=admin_headers)

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "critical_stock_" in res.headers["content-disposition"]
    df = pd.read_csv(io.BytesIO(res.content))
    assert list(df.columns) == CRITICAL_STOCK_COLUMNS
    assert df["Stock Code"].tolist() == [product["stock_code"]]
    assert df["Shortfall"].tolist() == [8]


async def test_critical_stock_pdf(client, admin_headers):
    await _critical_product(client, admin_headers)

    res = await client.get(f"{API}/reports/critical-stock", headers=admin_headers)

    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")


async def test_natural_language_report_requires_question(client, admin_headers):
    res = await client.post(f"{API}/reports/natural-language", json={"question": "  "}, headers=admin_headers)

    body = res.json()
    assert body["success"] is False
    assert body["message"] == EMPTY_QUESTION_MESSAGE


async def test_natural_language_report_without_api_key(client, admin_headers):
    res = await client.post(
        f"{API}/reports/natural-language", json={"question": "Which category earns most?"}, headers=admin_headers
    )

    body = res.json()
    assert body["success"] is False
    assert body["is_configured"] is False
