"""
Business / category / product lookups used by the production workflow, plus
the minimal creation calls needed to set a tenant up.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable
from uuid import UUID

from tortoise.transactions import in_transaction

from app.core.exceptions import NotFoundError
from app.models.catalog import Business, Category, Product
from app.services import ledger

INITIAL_STOCK_REASON = "Initial stock"


async def require_business_owner(business_id: UUID, user_id: str) -> Business:
    """Raises NotFoundError unless ``user_id`` owns the active business."""
    business = await Business.get_or_none(id=business_id, owner_id=user_id, is_active=True)
    if not business:
        raise NotFoundError("Business", business_id)
    return business


async def get_owned_product(product_id: UUID, business_id: UUID, conn: Any = None) -> Product:
    product = await Product.get_or_none(id=product_id, business_id=business_id).using_db(conn)
    if not product:
        raise NotFoundError("Product", product_id)
    return product


async def get_owned_products(
    product_ids: Iterable[UUID], business_id: UUID, conn: Any = None
) -> Dict[UUID, Product]:
    """Fetches all products at once; any id missing from the business raises NotFoundError."""
    wanted = set(product_ids)
    products = await Product.filter(id__in=list(wanted), business_id=business_id).using_db(conn)
    found = {p.id: p for p in products}
    for product_id in wanted:
        if product_id not in found:
            raise NotFoundError("Product", product_id)
    return found


async def create_business(name: str, owner_id: str) -> Business:
    return await Business.create(name=name, owner_id=owner_id)


async def create_category(business_id: UUID, name: str) -> Category:
    business = await Business.get_or_none(id=business_id, is_active=True)
    if not business:
        raise NotFoundError("Business", business_id)
    return await Category.create(business=business, name=name)


async def create_product(
    category_id: UUID,
    business_id: UUID,
    name: str,
    user_id: str,
    price: Decimal = Decimal("0"),
    initial_qty: int = 0,
    is_available: bool = True,
) -> Product:
    """
    Creates the product with zero stock, then books the initial quantity as a
    ledger credit so the transaction log explains every unit on hand.
    """
    async with in_transaction() as conn:
        category = await Category.get_or_none(
            id=category_id, business_id=business_id, is_active=True
        ).using_db(conn)
        if not category:
            raise NotFoundError("Category", category_id)

        product = await Product.create(
            business_id=business_id,
            category=category,
            name=name,
            price=price,
            quantity=0,
            is_available=is_available,
            using_db=conn,
        )
        if initial_qty:
            entry = await ledger.credit(
                product.id, initial_qty, user_id, INITIAL_STOCK_REASON, conn=conn
            )
            product.quantity = entry.new_quantity
    return product
