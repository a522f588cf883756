import pytest
from decimal import Decimal

from app.core.db import init_db, close_db
from app.services.catalog_service import create_business, create_category, create_product

OWNER_ID = "user-owner"
OTHER_OWNER_ID = "user-other"


@pytest.fixture
async def db():
    """Fresh in-memory SQLite database per test, schemas generated from the real models."""
    await init_db("sqlite://:memory:")
    yield
    await close_db()


@pytest.fixture
async def business(db):
    return await create_business("Acme Furniture", OWNER_ID)


@pytest.fixture
async def category(business):
    return await create_category(business.id, "Materials")


@pytest.fixture
async def raw_material(business, category):
    """Product R: 200 units of stock, booked as an initial ledger credit."""
    return await create_product(
        category.id, business.id, "Oak plank", OWNER_ID, price=Decimal("12.50"), initial_qty=200
    )


@pytest.fixture
async def finished_product(business, category):
    return await create_product(category.id, business.id, "Oak table", OWNER_ID, price=Decimal("450.00"))


@pytest.fixture
async def other_business(db):
    """A second tenant, used to check that nothing leaks across businesses."""
    business = await create_business("Rival Workshop", OTHER_OWNER_ID)
    category = await create_category(business.id, "Materials")
    product = await create_product(category.id, business.id, "Pine plank", OTHER_OWNER_ID, initial_qty=10)
    return business, category, product
