from sqlalchemy import func, select

from src.db.models.catalog import Category, Product
from src.db.models.inventory import StockMovement
from src.db.models.security import Role, User
from src.db.seed import CATEGORIES, MOVEMENTS, PRODUCTS, seed_all


async def _count(session_maker, column):
    async with session_maker() as s:
        res = await s.execute(select(func.count(column)))
        return int(res.scalar_one())


async def test_seed_all_is_idempotent(session_maker):
    await seed_all()
    await seed_all()

    assert await _count(session_maker, Role.id) == 3
    assert await _count(session_maker, User.id) == 1
    assert await _count(session_maker, Category.id) == len(CATEGORIES)
    assert await _count(session_maker, Product.id) == len(PRODUCTS)
    assert await _count(session_maker, StockMovement.id) == len(MOVEMENTS)


async def test_seeded_admin_can_log_in(client, session_maker):
    await seed_all()

    res = await client.post("/api/v1/auth/login", json={"email": "admin@stockapp.com", "password": "Admin123!"})

    assert res.status_code == 200
    assert res.json()["user"]["must_change_password"] is True
    res = await client.get(
        "/api/v1/dashboard/stats", headers={"Authorization": f"Bearer {res.json()['access_token']}"}
    )
    assert res.json()["total_products"] == len(PRODUCTS)
