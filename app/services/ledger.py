"""
Inventory ledger: the only code path that changes ``Product.quantity``.

Each credit/debit runs as one unit inside a database transaction:

1. lock the product row (SELECT ... FOR UPDATE),
2. validate (category active, enough stock for a debit),
3. compare-and-set the quantity (UPDATE ... WHERE quantity = <value read>),
4. insert the InventoryTransaction audit row.

Either all of it commits or none of it does. Callers that already hold a
transaction pass it as ``conn`` and the ledger joins it.
"""
from datetime import datetime
from typing import Any, List, Optional, Tuple
from uuid import UUID
import logging

from tortoise import timezone

from app.core.config import DEFAULT_PAGE_SIZE
from app.core.db import atomic
from app.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.models.catalog import Category, Product
from app.models.inventory import InventoryTransaction, TransactionType
from app.schemas.inventory import ReplayResult

log = logging.getLogger("ledger")

DEFAULT_CREDIT_REASON = "Stock replenishment"
DEFAULT_DEBIT_REASON = "Stock usage"


def _validate_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Quantity must be a positive integer", {"amount": amount})
    return amount


async def _apply(
    transaction_type: TransactionType,
    product_id: UUID,
    amount: int,
    user_id: str,
    reason: Optional[str],
    reference_id: Optional[UUID],
    conn: Any,
) -> InventoryTransaction:
    amount = _validate_amount(amount)
    if not user_id:
        raise ValidationError("User ID is required")

    async with atomic(conn) as tx:
        product = await Product.filter(id=product_id).using_db(tx).select_for_update().first()
        if not product:
            raise NotFoundError("Product", product_id)

        category = await Category.get_or_none(id=product.category_id).using_db(tx)
        if not category or not category.is_active:
            raise InvalidStateError("Cannot modify product - category has been deleted")

        old_quantity = product.quantity
        if transaction_type == TransactionType.DEBIT:
            if old_quantity < amount:
                log.info(
                    f"Debit refused for product {product_id}: requested {amount}, available {old_quantity}"
                )
                raise InsufficientStockError(product_id, amount, old_quantity)
            new_quantity = old_quantity - amount
        else:
            new_quantity = old_quantity + amount

        # Compare-and-set: succeeds only if nobody wrote since our read
        updated = await Product.filter(id=product_id, quantity=old_quantity).using_db(tx).update(
            quantity=new_quantity, updated_at=timezone.now()
        )
        if updated != 1:
            raise ConflictError(
                "Product stock changed concurrently", {"product_id": str(product_id)}
            )

        entry = await InventoryTransaction.create(
            product_id=product.id,
            business_id=product.business_id,
            user_id=user_id,
            transaction_type=transaction_type,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            amount=amount,
            reason=reason or (
                DEFAULT_DEBIT_REASON if transaction_type == TransactionType.DEBIT else DEFAULT_CREDIT_REASON
            ),
            reference_id=reference_id,
            using_db=tx,
        )

    log.info(
        f"{transaction_type.value} product={product_id} amount={amount} "
        f"{old_quantity}->{new_quantity} txn={entry.id} ref={reference_id}"
    )
    return entry


async def credit(
    product_id: UUID,
    amount: int,
    user_id: str,
    reason: Optional[str] = None,
    reference_id: Optional[UUID] = None,
    conn: Any = None,
) -> InventoryTransaction:
    """Adds ``amount`` units to the product and records a CREDIT row."""
    return await _apply(TransactionType.CREDIT, product_id, amount, user_id, reason, reference_id, conn)


async def debit(
    product_id: UUID,
    amount: int,
    user_id: str,
    reason: Optional[str] = None,
    reference_id: Optional[UUID] = None,
    conn: Any = None,
) -> InventoryTransaction:
    """
    Removes ``amount`` units from the product and records a DEBIT row.
    Raises InsufficientStockError without touching anything when stock is short.
    """
    return await _apply(TransactionType.DEBIT, product_id, amount, user_id, reason, reference_id, conn)


# ----------- Reads -----------

def _filter_history(query, transaction_type, start_date, end_date):
    if transaction_type:
        query = query.filter(transaction_type=transaction_type)
    if start_date:
        query = query.filter(created_at__gte=start_date)
    if end_date:
        query = query.filter(created_at__lte=end_date)
    return query


async def get_product_history(
    product_id: UUID,
    business_id: UUID,
    transaction_type: Optional[TransactionType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Tuple[List[InventoryTransaction], int]:
    """Newest-first transactions of one product. Products in deleted categories show no history."""
    product = await Product.get_or_none(id=product_id, business_id=business_id).prefetch_related("category")
    if not product:
        raise NotFoundError("Product", product_id)
    if not product.category.is_active:
        return [], 0

    query = _filter_history(
        InventoryTransaction.filter(product_id=product_id), transaction_type, start_date, end_date
    )
    total = await query.count()
    rows = await query.order_by("-id").offset((page - 1) * limit).limit(limit)
    return rows, total


async def get_business_history(
    business_id: UUID,
    transaction_type: Optional[TransactionType] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> Tuple[List[InventoryTransaction], int]:
    """Newest-first transactions across every product of a business with an active category."""
    query = InventoryTransaction.filter(business_id=business_id, product__category__is_active=True)
    if category_id:
        query = query.filter(product__category_id=category_id)
    query = _filter_history(query, transaction_type, start_date, end_date)

    total = await query.count()
    rows = await query.order_by("-id").offset((page - 1) * limit).limit(limit)
    return rows, total


async def replay_product_history(product_id: UUID, business_id: UUID) -> ReplayResult:
    """
    Rebuilds the quantity from the log and compares it with the stored value.
    ``chain_continuous`` is False if any row's old_quantity differs from the
    previous row's result or a row's own arithmetic is off.
    """
    product = await Product.get_or_none(id=product_id, business_id=business_id)
    if not product:
        raise NotFoundError("Product", product_id)

    rows = await InventoryTransaction.filter(product_id=product_id).order_by("id")
    starting = rows[0].old_quantity if rows else product.quantity
    running = starting
    credits = debits = 0
    continuous = True

    for row in rows:
        if row.old_quantity != running:
            continuous = False
        if row.transaction_type == TransactionType.CREDIT:
            credits += row.amount
            expected = row.old_quantity + row.amount
            running += row.amount
        else:
            debits += row.amount
            expected = row.old_quantity - row.amount
            running -= row.amount
        if row.new_quantity != expected:
            continuous = False

    result = ReplayResult(
        product_id=product.id,
        transaction_count=len(rows),
        starting_quantity=starting,
        total_credits=credits,
        total_debits=debits,
        replayed_quantity=running,
        current_quantity=product.quantity,
        chain_continuous=continuous,
        consistent=continuous and running == product.quantity,
    )
    if not result.consistent:
        log.warning(f"Ledger replay mismatch for product {product_id}: {result.model_dump()}")
    return result
