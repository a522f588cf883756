import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_current_user_id
from app.core.exceptions import InventoryError
from app.schemas.catalog import (
    BusinessRequest,
    BusinessResponse,
    CategoryRequest,
    CategoryResponse,
    ProductRequest,
    ProductResponse,
)
from app.schemas.response import SuccessResponse
from app.services.catalog_service import (
    create_business,
    create_category,
    create_product,
    require_business_owner,
)

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.post("/businesses", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_business(business_data: BusinessRequest, user_id: str = Depends(get_current_user_id)):
    """Creates a business owned by the calling user."""
    try:
        business = await create_business(business_data.name, user_id)
        log.info(f"Business '{business.name}' ({business.id}) created for user {user_id}.")
        return SuccessResponse(data=BusinessResponse.model_validate(business).model_dump())
    except Exception as e:
        log.error(f"Error creating business: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server failed to create business."
        )


@router.post(
    "/businesses/{business_id}/categories",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse,
)
async def add_category(
    business_id: UUID, category_data: CategoryRequest, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(business_id, user_id)
        category = await create_category(business_id, category_data.name)
        return SuccessResponse(data=CategoryResponse.model_validate(category).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error creating category for business {business_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server failed to create category."
        )


@router.post(
    "/categories/{category_id}/products",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse,
)
async def add_product(
    category_id: UUID, item_data: ProductRequest, user_id: str = Depends(get_current_user_id)
):
    """
    Adds a product to a category. Its opening stock is booked as an
    "Initial stock" ledger credit rather than written directly.
    """
    try:
        await require_business_owner(item_data.business_id, user_id)
        product = await create_product(
            category_id,
            item_data.business_id,
            name=item_data.name,
            user_id=user_id,
            price=item_data.price,
            initial_qty=item_data.initial_qty,
            is_available=item_data.is_available,
        )
        log.info(f"Product '{product.name}' ({product.id}) added with stock {product.quantity}.")
        return SuccessResponse(data=ProductResponse.model_validate(product).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error adding product to category {category_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server failed to add product."
        )
