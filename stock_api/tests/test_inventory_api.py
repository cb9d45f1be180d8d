API = "/api/v1"


async def _setup_product(client, headers, stock=10):
    res = await client.post(f"{API}/categories", json={"name": "Office"}, headers=headers)
    category = res.json()
    res = await client.post(
        f"{API}/products",
        json={
            "name": "A4 Paper",
            "category_id": category["id"],
            "stock_quantity": stock,
            "low_stock_threshold": 5,
            "purchase_price": 2.5,
            "sale_price": 4.0,
        },
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


async def _move(client, headers, product_id, type_, quantity, **extra):
    payload = {"product_id": product_id, "type": type_, "quantity": quantity}
    payload.update(extra)
    return await client.post(f"{API}/stock-movements", json=payload, headers=headers)


async def test_stock_in_and_out_adjust_quantity(client, admin_headers):
    product = await _setup_product(client, admin_headers)

    res = await _move(client, admin_headers, product["id"], 1, 5)
    assert res.status_code == 201
    body = res.json()
    assert body["type_text"] == "In"
    assert body["unit_price"] == 2.5
    assert body["current_stock_quantity"] == 15

    res = await _move(client, admin_headers, product["id"], 2, 12, description="Sold to customer")
    assert res.status_code == 201
    body = res.json()
    assert body["type_text"] == "Out"
    assert body["unit_price"] == 4.0
    assert body["total_value"] == 48.0
    assert body["current_stock_quantity"] == 3

    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert res.json()["stock_quantity"] == 3


async def test_explicit_unit_price_is_kept(client, admin_headers):
    product = await _setup_product(client, admin_headers)
    res = await _move(client, admin_headers, product["id"], 1, 2, unit_price=3.0)
    assert res.json()["unit_price"] == 3.0


async def test_stock_out_cannot_exceed_stock(client, admin_headers):
    product = await _setup_product(client, admin_headers, stock=3)

    res = await _move(client, admin_headers, product["id"], 2, 4)

    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Insufficient stock! Current: 3, requested: 4"
    res = await client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert res.json()["stock_quantity"] == 3


async def test_stock_out_of_everything_is_allowed(client, admin_headers):
    product = await _setup_product(client, admin_headers, stock=3)
    res = await _move(client, admin_headers, product["id"], 2, 3)
    assert res.json()["current_stock_quantity"] == 0


async def test_quantity_must_be_positive(client, admin_headers):
    product = await _setup_product(client, admin_headers)
    res = await _move(client, admin_headers, product["id"], 1, 0)
    assert res.status_code == 422


async def test_movement_for_unknown_product(client, admin_headers):
    res = await _move(client, admin_headers, 404, 1, 1)
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "Product with ID 404 not found."


async def test_list_filters_by_type(client, admin_headers):
    product = await _setup_product(client, admin_headers)
    await _move(client, admin_headers, product["id"], 2, 1)

    res = await client.get(f"{API}/stock-movements", params={"type": 2}, headers=admin_headers)
    rows = res.json()
    assert len(rows) == 1
    assert rows[0]["type"] == 2

    res = await client.get(f"{API}/stock-movements", headers=admin_headers)
    assert len(res.json()) == 2


async def test_user_claim_grants_view_only(client, seeded, admin_headers, user_headers):
    product = await _setup_product(client, admin_headers)

    res = await client.get(f"{API}/stock-movements", headers=user_headers)
    assert res.status_code == 403

    res = await client.post(
        f"{API}/users/{seeded['user_id']}/claims",
        json={"type": "Permission", "value": "CanViewStockMovements"},
        headers=admin_headers,
    )
    assert res.status_code == 200

    res = await client.get(f"{API}/stock-movements", headers=user_headers)
    assert res.status_code == 200

    res = await _move(client, user_headers, product["id"], 1, 1)
    assert res.status_code == 403


async def test_dashboard_stats_reflect_movements(client, admin_headers):
    product = await _setup_product(client, admin_headers, stock=10)
    await _move(client, admin_headers, product["id"], 2, 8)

    res = await client.get(f"{API}/dashboard/stats", headers=admin_headers)
    assert res.status_code == 200
    stats = res.json()
    assert stats["total_categories"] == 1
    assert stats["total_products"] == 1
    assert stats["total_stock_quantity"] == 2
    assert stats["low_stock_products"] == 1
    assert stats["out_of_stock_products"] == 0
    assert stats["total_stock_movements"] == 2
    assert stats["today_stock_in"] == 10
    assert stats["today_stock_out"] == 8
    assert stats["total_inventory_cost"] == 5.0
    assert stats["total_potential_profit"] == 3.0
    assert len(stats["stock_movement_trend"]) == 30
    assert len(stats["last_year_stock_movement_trend"]) == 12
    assert stats["product_stock_status"][0]["status"] == "Low Stock"


async def test_todo_lifecycle(client, admin_headers):
    res = await client.post(f"{API}/todos", json={"title": "Count shelf B", "priority": 3}, headers=admin_headers)
    assert res.status_code == 201
    todo = res.json()
    assert todo["status"] == 1

    await client.post(f"{API}/todos", json={"title": "Order labels", "priority": 1}, headers=admin_headers)

    res = await client.put(f"{API}/todos/{todo['id']}", json={"status": 3}, headers=admin_headers)
    assert res.json()["status"] == 3
    assert res.json()["title"] == "Count shelf B"

    res = await client.get(f"{API}/todos", params={"status": 3}, headers=admin_headers)
    assert [t["id"] for t in res.json()] == [todo["id"]]

    res = await client.delete(f"{API}/todos/{todo['id']}", headers=admin_headers)
    assert res.status_code == 204
    res = await client.get(f"{API}/todos/{todo['id']}", headers=admin_headers)
    assert res.status_code == 404


async def test_todo_rejects_unknown_status(client, admin_headers):
    res = await client.post(f"{API}/todos", json={"title": "x", "status": 9}, headers=admin_headers)
    assert res.status_code == 422
