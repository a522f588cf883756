"""Read-only production reports computed from the production line and request rows."""
from datetime import datetime, timezone as dt_timezone
from typing import List, Optional
from uuid import UUID
import logging
import math

from app.core.exceptions import NotFoundError
from app.models.production import (
    LineStatus,
    ProductionLine,
    ProductionRequest,
    ProductionResource,
    RequestStatus,
)
from app.schemas.production import (
    LineEfficiency,
    ProductionLineResponse,
    ProductionSummary,
    ResourceVariance,
    VarianceReport,
)
from app.services.production_service import compute_variance

log = logging.getLogger("analytics_service")

SECONDS_PER_DAY = 24 * 60 * 60


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes, Postgres aware ones
    if value.tzinfo is None:
        return value
    return value.astimezone(dt_timezone.utc).replace(tzinfo=None)


def duration_days(started: datetime, finished: Optional[datetime]) -> Optional[int]:
    """Whole days between creation and completion, rounded up."""
    if not started or not finished:
        return None
    seconds = (as_utc(finished) - as_utc(started)).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


async def production_summary(
    business_id: UUID,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> ProductionSummary:
    query = ProductionLine.filter(business_id=business_id)
    if start_date:
        query = query.filter(created_at__gte=start_date)
    if end_date:
        query = query.filter(created_at__lte=end_date)
    lines = await query

    counts = {status: 0 for status in LineStatus}
    for line in lines:
        counts[LineStatus(line.status)] += 1

    completed = [
        line for line in lines
        if line.status == LineStatus.COMPLETED and line.final_quantity is not None
    ]
    average_variance = 0.0
    if completed:
        total_variance = sum(line.final_quantity - line.planned_quantity for line in completed)
        average_variance = round(total_variance / len(completed), 2)

    return ProductionSummary(
        total_productions=len(lines),
        pending=counts[LineStatus.PENDING],
        in_progress=counts[LineStatus.IN_PROGRESS],
        completed=counts[LineStatus.COMPLETED],
        cancelled=counts[LineStatus.CANCELLED],
        total_items_planned=sum(line.planned_quantity for line in lines),
        total_items_produced=sum(line.final_quantity for line in completed),
        average_variance=average_variance,
    )


async def production_efficiency(business_id: UUID) -> List[LineEfficiency]:
    """One entry per completed line, most recently completed first."""
    lines = await ProductionLine.filter(
        business_id=business_id, status=LineStatus.COMPLETED, final_quantity__isnull=False
    ).order_by("-completed_at")

    metrics = []
    for line in lines:
        variance, percentage = compute_variance(line.planned_quantity, line.final_quantity)
        metrics.append(LineEfficiency(
            id=line.id,
            name=line.name,
            manager=line.manager,
            planned_quantity=line.planned_quantity,
            final_quantity=line.final_quantity,
            efficiency=round(line.final_quantity / line.planned_quantity * 100, 2),
            variance=variance,
            variance_percentage=percentage,
            duration_days=duration_days(line.created_at, line.completed_at),
            created_at=line.created_at,
            completed_at=line.completed_at,
        ))
    return metrics


async def resource_variance_report(line_id: UUID, business_id: UUID) -> VarianceReport:
    """Planned need of every resource against what fulfilled requests actually consumed."""
    line = await ProductionLine.get_or_none(id=line_id, business_id=business_id)
    if not line:
        raise NotFoundError("Production line", line_id)

    resources = await ProductionResource.filter(production_line_id=line_id).order_by("created_at")
    requests = await ProductionRequest.filter(
        production_line_id=line_id, status__in=[RequestStatus.FULFILLED, RequestStatus.PENDING]
    )

    variances = []
    for resource in resources:
        fulfilled = sum(
            r.requested_quantity for r in requests
            if r.resource_id == resource.id and r.status == RequestStatus.FULFILLED
        )
        pending = sum(
            r.requested_quantity for r in requests
            if r.resource_id == resource.id and r.status == RequestStatus.PENDING
        )
        variance, percentage = compute_variance(resource.needed_quantity, fulfilled)
        if variance > 0:
            consumption = "OVER"
        elif variance < 0:
            consumption = "UNDER"
        else:
            consumption = "EXACT"

        variances.append(ResourceVariance(
            resource_id=resource.id,
            resource_product_id=resource.resource_product_id,
            resource_name=resource.resource_name,
            unit_of_measure=resource.unit_of_measure,
            needed_quantity=resource.needed_quantity,
            fulfilled_quantity=fulfilled,
            pending_quantity=pending,
            variance=variance,
            variance_percentage=percentage,
            consumption=consumption,
        ))

    log.info(f"Variance report for line {line_id}: {len(variances)} resources")
    return VarianceReport(
        production_line=ProductionLineResponse.model_validate(line),
        variances=variances,
    )
