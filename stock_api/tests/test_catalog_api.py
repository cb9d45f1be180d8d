import pytest

API = "/api/v1"


async def create_category(client, headers, name="Phones"):
    res = await client.post(f"{API}/categories", json={"name": name}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def create_product(client, headers, category_id, **overrides):
    payload = {
        "name": "iPhone 15",
        "category_id": category_id,
        "stock_quantity": 10,
        "low_stock_threshold": 5,
        "purchase_price": 100.0,
        "sale_price": 150.0,
    }
    payload.update(overrides)
    res = await client.post(f"{API}/products", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_health_is_public(client):
    res = await client.get(f"{API}/health")
    assert res.status_code == 200
    assert res.json()["message"] == "Healthy"
    assert res.headers["X-Correlation-ID"]


async def test_requires_authentication(client):
    res = await client.get(f"{API}/categories")
    assert res.status_code == 401
    assert res.json()["error"]["type"] == "http_error"


async def test_user_without_permission_is_forbidden(client, user_headers):
    res = await client.post(f"{API}/categories", json={"name": "Nope"}, headers=user_headers)
    assert res.status_code == 403


async def test_category_crud(client, admin_headers):
    created = await create_category(client, admin_headers)
    assert created["product_count"] == 0

    res = await client.put(f"{API}/categories/{created['id']}", json={"name": "Smartphones"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["name"] == "Smartphones"

    res = await client.get(f"{API}/categories", params={"search": "smart"}, headers=admin_headers)
    assert [c["name"] for c in res.json()] == ["Smartphones"]

    res = await client.delete(f"{API}/categories/{created['id']}", headers=admin_headers)
    assert res.status_code == 204

    res = await client.get(f"{API}/categories/{created['id']}", headers=admin_headers)
    assert res.status_code == 404
    body = res.json()
    assert body["error"]["type"] == "not_found"
    assert body["correlation_id"] == res.headers["X-Correlation-ID"]
    assert body["path"] == f"{API}/categories/{created['id']}"


async def test_category_name_is_validated(client, admin_headers):
    res = await client.post(f"{API}/categories", json={"name": ""}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["error"]["type"] == "validation_error"


@pytest.mark.parametrize(
    "path, payload",
    [
        ("categories", {"name": "   "}),
        ("locations", {"name": "\t "}),
        ("products", {"name": "  ", "category_id": 1, "purchase_price": 1, "sale_price": 2}),
    ],
)
async def test_blank_names_are_rejected(client, admin_headers, path, payload):
    await create_category(client, admin_headers)

    res = await client.post(f"{API}/{path}", json=payload, headers=admin_headers)

    assert res.status_code == 422
    res = await client.get(f"{API}/{path}", headers=admin_headers)
    assert all(row["name"].strip() for row in res.json())


async def test_names_are_trimmed(client, admin_headers):
    category = await create_category(client, admin_headers, name="  Audio  ")
    assert category["name"] == "Audio"

    res = await client.put(f"{API}/categories/{category['id']}", json={"name": " "}, headers=admin_headers)
    assert res.status_code == 422


async def test_category_product_count_is_stock_total(client, admin_headers):
    category = await create_category(client, admin_headers)
    await create_product(client, admin_headers, category["id"], stock_quantity=4)
    await create_product(client, admin_headers, category["id"], name="Pixel", stock_quantity=6)

    res = await client.get(f"{API}/categories/{category['id']}", headers=admin_headers)
    assert res.json()["product_count"] == 10


async def test_create_product_records_price_and_initial_movement(client, admin_headers):
    category = await create_category(client, admin_headers)
    product = await create_product(client, admin_headers, category["id"])

    assert len(product["stock_code"]) == 6
    assert product["category_name"] == "Phones"
    assert len(product["price_history"]) == 1

    res = await client.get(f"{API}/stock-movements", params={"product_id": product["id"]}, headers=admin_headers)
    movements = res.json()
    assert len(movements) == 1
    assert movements[0]["type"] == 1
    assert movements[0]["quantity"] == 10
    assert movements[0]["unit_price"] == 100.0
    assert movements[0]["description"] == "Initial stock entry"


@pytest.mark.parametrize("field", ["purchase_price", "sale_price"])
async def test_product_prices_must_be_positive(client, admin_headers, field):
    category = await create_category(client, admin_headers)
    payload = {"name": "Bad", "category_id": category["id"], "purchase_price": 10, "sale_price": 10, field: 0}

    res = await client.post(f"{API}/products", json=payload, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"]["type"] == "business_rule"


async def test_product_with_unknown_category(client, admin_headers):
    payload = {"name": "Ghost", "category_id": 999, "purchase_price": 1, "sale_price": 2}
    res = await client.post(f"{API}/products", json=payload, headers=admin_headers)
    assert res.status_code == 404


async def test_price_change_appends_history(client, admin_headers):
    category = await create_category(client, admin_headers)
    product = await create_product(client, admin_headers, category["id"])

    res = await client.put(f"{API}/products/{product['id']}", json={"sale_price": 175.0}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["current_sale_price"] == 175.0

    res = await client.get(f"{API}/products/{product['id']}/price-history", headers=admin_headers)
    assert len(res.json()) == 2


async def test_location_can_be_cleared(client, admin_headers):
    category = await create_category(client, admin_headers)
    res = await client.post(f"{API}/locations", json={"name": "Main Warehouse"}, headers=admin_headers)
    location = res.json()
    product = await create_product(client, admin_headers, category["id"], location_id=location["id"])
    assert product["location_name"] == "Main Warehouse"

    res = await client.put(f"{API}/products/{product['id']}", json={"location_id": -1}, headers=admin_headers)
    assert res.json()["location_id"] is None


async def test_deleting_location_keeps_products(client, admin_headers):
    category = await create_category(client, admin_headers)
    res = await client.post(f"{API}/locations", json={"name": "Branch"}, headers=admin_headers)
    location = res.json()
    product = await create_product(client, admin_headers, category["id"], location_id=location["id"])

    res = await client.delete(f"{API}/locations/{location['id']}", headers=admin_headers)
    assert res.status_code == 204

    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["location_id"] is None


async def test_deleting_category_removes_its_products(client, admin_headers):
    category = await create_category(client, admin_headers)
    product = await create_product(client, admin_headers, category["id"])

    await client.delete(f"{API}/categories/{category['id']}", headers=admin_headers)

    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert res.status_code == 404
    res = await client.get(f"{API}/stock-movements", headers=admin_headers)
    assert res.json() == []


async def test_moved_product_keeps_ledger_when_old_category_is_deleted(client, admin_headers):
    old = await create_category(client, admin_headers, name="Old")
    new = await create_category(client, admin_headers, name="New")
    product = await create_product(client, admin_headers, old["id"])

    res = await client.put(f"{API}/products/{product['id']}", json={"category_id": new["id"]}, headers=admin_headers)
    assert res.json()["category_name"] == "New"
    res = await client.delete(f"{API}/categories/{old['id']}", headers=admin_headers)
    assert res.status_code == 204

    res = await client.get(f"{API}/stock-movements", params={"product_id": product["id"]}, headers=admin_headers)
    movements = res.json()
    assert [(m["category_id"], m["quantity"]) for m in movements] == [(new["id"], 10)]
    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert res.json()["stock_quantity"] == 10


async def test_critical_products(client, admin_headers):
    category = await create_category(client, admin_headers)
    await create_product(client, admin_headers, category["id"], name="Plenty", stock_quantity=50)
    low = await create_product(client, admin_headers, category["id"], name="Scarce", stock_quantity=1)

    res = await client.get(f"{API}/products/critical", headers=admin_headers)
    rows = res.json()
    assert [r["id"] for r in rows] == [low["id"]]
    assert rows[0]["shortfall"] == 4


async def test_product_attributes(client, admin_headers):
    category = await create_category(client, admin_headers)
    product = await create_product(client, admin_headers, category["id"])

    res = await client.post(
        f"{API}/product-attributes",
        json={"product_id": product["id"], "key": "Color", "value": "Blue"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    attribute = res.json()
    assert attribute["product_name"] == "iPhone 15"

    res = await client.put(f"{API}/product-attributes/{attribute['id']}", json={"value": "Red"}, headers=admin_headers)
    assert res.json()["value"] == "Red"

    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert [(a["key"], a["value"]) for a in res.json()["attributes"]] == [("Color", "Red")]

    res = await client.delete(f"{API}/product-attributes/{attribute['id']}", headers=admin_headers)
    assert res.status_code == 204
