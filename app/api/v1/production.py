import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_current_user_id
from app.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.exceptions import InventoryError
from app.models.production import LineStatus, RequestStatus
from app.schemas.inventory import InventoryTransactionResponse
from app.schemas.production import (
    BusinessScopedRequest,
    CompleteProductionRequest,
    CompletionResponse,
    FulfillmentResponse,
    ProductionLineCreate,
    ProductionLineDetail,
    ProductionLineResponse,
    ProductionLineUpdate,
    ProductionRequestCreate,
    ProductionRequestResponse,
    ProductionResourceResponse,
    RequestSummary,
    ResourceCreate,
    ResourceUpdate,
)
from app.schemas.response import PageMeta, PaginatedResponse, SuccessResponse
from app.services.catalog_service import require_business_owner
from app.services.production_service import (
    add_resource,
    cancel_request,
    complete_production_line,
    create_production_line,
    create_request,
    delete_production_line,
    delete_request,
    delete_resource,
    fulfill_request,
    get_production_line,
    list_production_lines,
    list_requests,
    list_resources,
    start_production_line,
    update_production_line,
    update_resource,
)

router = APIRouter()
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


def _line_detail(line) -> dict:
    resources = [ProductionResourceResponse.model_validate(r) for r in line.resources]
    requests = [ProductionRequestResponse.model_validate(r) for r in line.requests]
    summary = RequestSummary(
        total_requests=len(requests),
        fulfilled_requests=sum(1 for r in requests if r.status == RequestStatus.FULFILLED),
        pending_requests=sum(1 for r in requests if r.status == RequestStatus.PENDING),
        cancelled_requests=sum(1 for r in requests if r.status == RequestStatus.CANCELLED),
        total_resources=len(resources),
    )
    return ProductionLineDetail(
        **ProductionLineResponse.model_validate(line).model_dump(),
        resources=resources,
        requests=requests,
        summary=summary,
    ).model_dump()


# ----------- Production lines -----------

@router.post("/production-lines", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_production_line_endpoint(
    payload: ProductionLineCreate, user_id: str = Depends(get_current_user_id)
):
    """Creates a PENDING production line together with the resources it consumes."""
    try:
        await require_business_owner(payload.business_id, user_id)
        line = await create_production_line(
            business_id=payload.business_id,
            finished_product_id=payload.item_id,
            planned_quantity=payload.actual_items_number,
            name=payload.name,
            manager=payload.manager,
            description=payload.description,
            resources=[
                {
                    "resource_product_id": r.resource_item_id,
                    "resource_name": r.resource_name,
                    "needed_quantity": r.actual_needed_quantity,
                    "unit_of_measure": r.unit_of_measure,
                    "notes": r.notes,
                }
                for r in payload.resources
            ],
        )
        log.info(f"Production line {line.id} created by user {user_id}.")
        return SuccessResponse(data=ProductionLineResponse.model_validate(line).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error creating production line for business {payload.business_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to create production line.")


@router.get("/production-lines", response_model=PaginatedResponse)
async def list_production_lines_endpoint(
    business_id: UUID = Query(..., alias="businessId"),
    line_status: Optional[LineStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        lines, total = await list_production_lines(
            business_id, status=line_status, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
        )
        return PaginatedResponse(
            data=[ProductionLineResponse.model_validate(line).model_dump() for line in lines],
            pagination=PageMeta.build(page, limit, total),
        )
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error listing production lines for business {business_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to list production lines.")


@router.get("/production-lines/{line_id}", response_model=SuccessResponse)
async def get_production_line_endpoint(
    line_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    """Line details with its resources, requests and a request summary."""
    try:
        await require_business_owner(business_id, user_id)
        line = await get_production_line(line_id, business_id)
        return SuccessResponse(data=_line_detail(line))
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error fetching production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fetch production line.")


@router.put("/production-lines/{line_id}", response_model=SuccessResponse)
async def update_production_line_endpoint(
    line_id: UUID, payload: ProductionLineUpdate, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(payload.business_id, user_id)
        updates = payload.model_dump(exclude_unset=True, exclude={"business_id"})
        line = await update_production_line(line_id, payload.business_id, updates)
        log.info(f"Production line {line_id} updated: {sorted(updates)}")
        return SuccessResponse(data=ProductionLineResponse.model_validate(line).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error updating production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update production line.")


@router.put("/production-lines/{line_id}/start", response_model=SuccessResponse)
async def start_production_line_endpoint(
    line_id: UUID, payload: BusinessScopedRequest, user_id: str = Depends(get_current_user_id)
):
    """PENDING -> IN_PROGRESS. A second concurrent start answers 409."""
    try:
        await require_business_owner(payload.business_id, user_id)
        line = await start_production_line(line_id, payload.business_id)
        return SuccessResponse(data=ProductionLineResponse.model_validate(line).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error starting production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to start production line.")


@router.put("/production-lines/{line_id}/complete", response_model=SuccessResponse)
async def complete_production_line_endpoint(
    line_id: UUID, payload: CompleteProductionRequest, user_id: str = Depends(get_current_user_id)
):
    """
    Marks the line COMPLETED and credits the finished product with the units
    actually produced. Returns the line, the variance against plan and the
    ledger entry.
    """
    try:
        await require_business_owner(payload.business_id, user_id)
        result = await complete_production_line(
            line_id, payload.business_id, payload.final_items_produced, user_id
        )
        data = CompletionResponse(
            production_line=ProductionLineResponse.model_validate(result.production_line),
            variance=result.variance,
            variance_percentage=result.variance_percentage,
            transaction=(
                InventoryTransactionResponse.model_validate(result.transaction)
                if result.transaction else None
            ),
        ).model_dump()
        return SuccessResponse(data=data)
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error completing production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to complete production line.")


@router.delete("/production-lines/{line_id}", response_model=SuccessResponse)
async def delete_production_line_endpoint(
    line_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        await delete_production_line(line_id, business_id)
        return SuccessResponse(data={"message": "Production line deleted successfully."})
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error deleting production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to delete production line.")


# ----------- Resources -----------

@router.post(
    "/production-lines/{line_id}/resources",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse,
)
async def add_resource_endpoint(
    line_id: UUID, payload: ResourceCreate, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(payload.business_id, user_id)
        resource = await add_resource(
            line_id,
            payload.business_id,
            resource_product_id=payload.resource_item_id,
            needed_quantity=payload.actual_needed_quantity,
            unit_of_measure=payload.unit_of_measure,
            resource_name=payload.resource_name,
            notes=payload.notes,
        )
        return SuccessResponse(data=ProductionResourceResponse.model_validate(resource).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error adding resource to production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to add resource.")


@router.get("/production-lines/{line_id}/resources", response_model=SuccessResponse)
async def list_resources_endpoint(
    line_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        resources = await list_resources(line_id, business_id)
        return SuccessResponse(
            data=[ProductionResourceResponse.model_validate(r).model_dump() for r in resources]
        )
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error listing resources of production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to list resources.")


@router.put("/production-resources/{resource_id}", response_model=SuccessResponse)
async def update_resource_endpoint(
    resource_id: UUID, payload: ResourceUpdate, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(payload.business_id, user_id)
        fields = payload.model_dump(exclude_unset=True, exclude={"business_id"})
        if "actual_needed_quantity" in fields:
            fields["needed_quantity"] = fields.pop("actual_needed_quantity")
        resource = await update_resource(resource_id, payload.business_id, fields)
        return SuccessResponse(data=ProductionResourceResponse.model_validate(resource).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error updating resource {resource_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to update resource.")


@router.delete("/production-resources/{resource_id}", response_model=SuccessResponse)
async def delete_resource_endpoint(
    resource_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    """Refused with 409 while any request references the resource."""
    try:
        await require_business_owner(business_id, user_id)
        await delete_resource(resource_id, business_id)
        return SuccessResponse(data={"message": "Resource deleted successfully."})
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error deleting resource {resource_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to delete resource.")


# ----------- Requests -----------

@router.post(
    "/production-lines/{line_id}/requests",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse,
)
async def create_request_endpoint(
    line_id: UUID, payload: ProductionRequestCreate, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(payload.business_id, user_id)
        request = await create_request(
            line_id,
            payload.business_id,
            resource_id=payload.resource_used_id,
            day_number=payload.day_number,
            requested_quantity=payload.requested_quantity,
            user_id=user_id,
            material_description=payload.material_description,
        )
        return SuccessResponse(data=ProductionRequestResponse.model_validate(request).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error creating request on production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to create request.")


@router.get("/production-lines/{line_id}/requests", response_model=SuccessResponse)
async def list_requests_endpoint(
    line_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    resource_id: Optional[UUID] = Query(None, alias="resourceId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        requests = await list_requests(line_id, business_id, status=request_status, resource_id=resource_id)
        return SuccessResponse(
            data=[ProductionRequestResponse.model_validate(r).model_dump() for r in requests]
        )
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error listing requests of production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to list requests.")


@router.put("/production-requests/{request_id}/fulfill", response_model=SuccessResponse)
async def fulfill_request_endpoint(
    request_id: UUID, payload: BusinessScopedRequest, user_id: str = Depends(get_current_user_id)
):
    """Debits the resource stock and marks the request FULFILLED, atomically."""
    try:
        await require_business_owner(payload.business_id, user_id)
        result = await fulfill_request(request_id, payload.business_id, user_id)
        data = FulfillmentResponse(
            request=ProductionRequestResponse.model_validate(result.request),
            transaction=InventoryTransactionResponse.model_validate(result.transaction),
        ).model_dump()
        return SuccessResponse(data=data)
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error fulfilling request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to fulfill request.")


@router.put("/production-requests/{request_id}/cancel", response_model=SuccessResponse)
async def cancel_request_endpoint(
    request_id: UUID, payload: BusinessScopedRequest, user_id: str = Depends(get_current_user_id)
):
    try:
        await require_business_owner(payload.business_id, user_id)
        request = await cancel_request(request_id, payload.business_id)
        return SuccessResponse(data=ProductionRequestResponse.model_validate(request).model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error cancelling request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to cancel request.")


@router.delete("/production-requests/{request_id}", response_model=SuccessResponse)
async def delete_request_endpoint(
    request_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        await delete_request(request_id, business_id)
        return SuccessResponse(data={"message": "Request deleted successfully."})
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error deleting request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to delete request.")
