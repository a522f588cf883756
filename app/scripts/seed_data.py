# scripts/seed_data.py
import asyncio
import logging
from decimal import Decimal

from app.core.db import init_db, close_db
from app.models.catalog import Business, Category, Product
from app.services.catalog_service import create_business, create_category, create_product
from app.services.production_service import create_production_line

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("seed")

DEMO_OWNER_ID = "demo-owner"


async def seed():
    # Create one business (idempotent on name + owner)
    business = await Business.get_or_none(name="Demo Workshop", owner_id=DEMO_OWNER_ID)
    if not business:
        business = await create_business("Demo Workshop", DEMO_OWNER_ID)
    log.info(f"Business: {business.id}")

    category = await Category.get_or_none(business=business, name="Woodwork")
    if not category:
        category = await create_category(business.id, "Woodwork")

    # Opening stock goes through the ledger as an initial credit
    products = {}
    for name, price, qty in (
        ("Oak plank", Decimal("12.50"), 200),
        ("Wood glue", Decimal("8.00"), 40),
        ("Oak table", Decimal("450.00"), 0),
    ):
        product = await Product.get_or_none(business=business, name=name)
        if not product:
            product = await create_product(category.id, business.id, name, DEMO_OWNER_ID, price=price, initial_qty=qty)
        products[name] = product
    log.info("Products: " + ", ".join(f"{n}={p.id}" for n, p in products.items()))

    line = await create_production_line(
        business_id=business.id,
        finished_product_id=products["Oak table"].id,
        planned_quantity=100,
        name="Oak tables, batch 1",
        manager="Demo Manager",
        resources=[
            {"resource_product_id": products["Oak plank"].id, "needed_quantity": 50, "unit_of_measure": "pcs"},
            {"resource_product_id": products["Wood glue"].id, "needed_quantity": 5, "unit_of_measure": "l"},
        ],
    )
    log.info(f"Production line {line.id} seeded (PENDING).")


async def main():
    # Generates schemas when missing, safe to run against a fresh dev database
    await init_db()
    await seed()
    await close_db()

if __name__ == "__main__":
    asyncio.run(main())
