import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_current_user_id
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.exceptions import InventoryError
from app.models.inventory import TransactionType
from app.schemas.inventory import InventoryTransactionResponse, StockAdjustmentRequest, StockResponse
from app.schemas.response import PageMeta, PaginatedResponse, SuccessResponse
from app.services.catalog_service import get_owned_product, require_business_owner
from app.services.ledger import (
    credit,
    debit,
    get_business_history,
    get_product_history,
    replay_product_history,
)

log = logging.getLogger("uvicorn")
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

router = APIRouter()


# Registered before "/{product_id}" so "business" is never parsed as a product id
@router.get("/business/history", response_model=PaginatedResponse)
async def get_business_history_endpoint(
    business_id: UUID = Query(..., alias="businessId"),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    category_id: Optional[UUID] = Query(None, alias="categoryId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
):
    """Ledger entries across every product of the business, newest first."""
    try:
        await require_business_owner(business_id, user_id)
        rows, total = await get_business_history(
            business_id, transaction_type, start_date, end_date, category_id, page, limit
        )
        return PaginatedResponse(
            data=[InventoryTransactionResponse.model_validate(r).model_dump() for r in rows],
            pagination=PageMeta.build(page, limit, total),
        )
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error fetching inventory history for business {business_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch inventory history.")


@router.get("/{product_id}", response_model=SuccessResponse)
async def get_inventory_stock(
    product_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    """Fetches the current stock of a product."""
    try:
        await require_business_owner(business_id, user_id)
        product = await get_owned_product(product_id, business_id)
        return SuccessResponse(data=StockResponse.model_validate(product).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error fetching inventory for product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch inventory.")


@router.post("/{product_id}/increment", response_model=SuccessResponse)
async def increment_stock(
    product_id: UUID, payload: StockAdjustmentRequest, user_id: str = Depends(get_current_user_id)
):
    """Adds stock to a product and returns the ledger entry."""
    try:
        await require_business_owner(payload.business_id, user_id)
        await get_owned_product(product_id, payload.business_id)
        entry = await credit(
            product_id, payload.quantity, user_id, payload.reason, reference_id=payload.reference_id
        )
        return SuccessResponse(data=InventoryTransactionResponse.model_validate(entry).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error incrementing stock of product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to increment stock.")


@router.post("/{product_id}/decrement", response_model=SuccessResponse)
async def decrement_stock(
    product_id: UUID, payload: StockAdjustmentRequest, user_id: str = Depends(get_current_user_id)
):
    """Removes stock from a product. Answers 400 insufficient_stock if it would go negative."""
    try:
        await require_business_owner(payload.business_id, user_id)
        await get_owned_product(product_id, payload.business_id)
        entry = await debit(
            product_id, payload.quantity, user_id, payload.reason, reference_id=payload.reference_id
        )
        return SuccessResponse(data=InventoryTransactionResponse.model_validate(entry).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error decrementing stock of product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to decrement stock.")


@router.get("/{product_id}/history", response_model=PaginatedResponse)
async def get_product_history_endpoint(
    product_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        rows, total = await get_product_history(
            product_id, business_id, transaction_type, start_date, end_date, page, limit
        )
        return PaginatedResponse(
            data=[InventoryTransactionResponse.model_validate(r).model_dump() for r in rows],
            pagination=PageMeta.build(page, limit, total),
        )
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error fetching inventory history for product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch inventory history.")


@router.get("/{product_id}/replay", response_model=SuccessResponse)
async def replay_product_history_endpoint(
    product_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    """Rebuilds the quantity from the transaction log and compares it with the stored stock."""
    try:
        await require_business_owner(business_id, user_id)
        result = await replay_product_history(product_id, business_id)
        return SuccessResponse(data=result.model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error replaying inventory history for product {product_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to replay inventory history.")
