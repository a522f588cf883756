import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.deps import get_current_user_id
from app.core.exceptions import InventoryError, ValidationError
from app.schemas.response import SuccessResponse
from app.services.analytics_service import (
    as_utc,
    production_efficiency,
    production_summary,
    resource_variance_report,
)
from app.services.catalog_service import require_business_owner

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.get("/analytics/summary", response_model=SuccessResponse)
async def production_summary_endpoint(
    business_id: UUID = Query(..., alias="businessId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    user_id: str = Depends(get_current_user_id),
):
    """Counts per status and planned vs produced totals, optionally within a creation window."""
    try:
        if start_date and end_date and as_utc(start_date) > as_utc(end_date):
            raise ValidationError("startDate must not be after endDate")
        await require_business_owner(business_id, user_id)
        summary = await production_summary(business_id, start_date, end_date)
        return SuccessResponse(data=summary.model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error building production summary for business {business_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to build production summary.")


@router.get("/analytics/efficiency", response_model=SuccessResponse)
async def production_efficiency_endpoint(
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        metrics = await production_efficiency(business_id)
        return SuccessResponse(data=[m.model_dump() for m in metrics])
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error building efficiency metrics for business {business_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to build efficiency metrics.")


@router.get("/{line_id}/variance", response_model=SuccessResponse)
async def resource_variance_endpoint(
    line_id: UUID,
    business_id: UUID = Query(..., alias="businessId"),
    user_id: str = Depends(get_current_user_id),
):
    try:
        await require_business_owner(business_id, user_id)
        report = await resource_variance_report(line_id, business_id)
        return SuccessResponse(data=report.model_dump())
    except (HTTPException, InventoryError):
        raise
    except Exception as e:
        log.error(f"Error building variance report for production line {line_id}: {e}")
        raise HTTPException(status_code=500, detail="Server failed to build variance report.")
