import pytest
from sqlalchemy import func, select, update

from src.core.errors import BusinessRuleError
from src.db.models.catalog import Category, Product
from src.db.models.inventory import StockMovement, StockMovementType
from src.schemas.inventory import StockMovementCreate
from src.services.inventory import StockMovementService


async def _product(session, stock):
    category = Category(name="Tools")
    session.add(category)
    await session.flush()
    product = Product(
        name="Hammer",
        stock_code="HMR001",
        stock_quantity=stock,
        low_stock_threshold=1,
        current_purchase_price=10,
        current_sale_price=15,
        category_id=category.id,
    )
    session.add(product)
    await session.commit()
    return product


async def test_stock_out_checks_the_stored_quantity(session):
    product = await _product(session, stock=5)
    service = StockMovementService(session)
    # Loaded copy still says 5 while another writer has already taken 3.
    assert (await service.products.get(product.id)).stock_quantity == 5
    await session.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(stock_quantity=2)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(BusinessRuleError) as exc:
        await service.create_movement(
            StockMovementCreate(product_id=product.id, type=StockMovementType.OUT, quantity=5)
        )

    assert exc.value.message == "Insufficient stock! Current: 2, requested: 5"
    stored = await session.execute(select(Product.stock_quantity).where(Product.id == product.id))
    assert stored.scalar_one() == 2
    count = await session.execute(select(func.count(StockMovement.id)))
    assert count.scalar_one() == 0


async def test_stock_out_applies_delta_to_stored_quantity(session):
    product = await _product(session, stock=5)
    service = StockMovementService(session)

    result = await service.create_movement(
        StockMovementCreate(product_id=product.id, type=StockMovementType.OUT, quantity=5)
    )

    assert result.current_stock_quantity == 0
    assert result.unit_price == 15.0
    with pytest.raises(BusinessRuleError):
        await service.create_movement(
            StockMovementCreate(product_id=product.id, type=StockMovementType.OUT, quantity=1)
        )
