"""
Production lines, their resource catalog and the per-day resource requests.

Status changes are driven by the tables in ``app.services.transitions`` and
written with conditional UPDATE/DELETE statements whose affected-row count is
checked, so two concurrent callers can never both move a row out of the same
state. Every stock movement goes through ``app.services.ledger`` inside the
same database transaction as the status change it belongs to.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from tortoise import timezone
from tortoise.transactions import in_transaction

from app.core.config import DEFAULT_PAGE_SIZE
from app.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.models.inventory import InventoryTransaction
from app.models.production import (
    LineStatus,
    ProductionLine,
    ProductionRequest,
    ProductionResource,
    RequestStatus,
)
from app.services import ledger
from app.services.catalog_service import get_owned_product, get_owned_products
from app.services.transitions import (
    LineAction,
    RequestAction,
    line_sources,
    line_transition,
    request_sources,
    request_transition,
)

log = logging.getLogger("production_service")

PRODUCTION_COMPLETED_REASON = "production completed"
PRODUCTION_USAGE_REASON = "production usage"

LINE_SORT_FIELDS = {"created_at", "updated_at", "completed_at", "name", "status", "planned_quantity"}
LINE_EDITABLE_FIELDS = {"name", "manager", "description"}
RESOURCE_EDITABLE_FIELDS = {"resource_name", "needed_quantity", "unit_of_measure", "notes"}


@dataclass
class Completion:
    production_line: ProductionLine
    variance: int
    variance_percentage: float
    transaction: Optional[InventoryTransaction]


@dataclass
class Fulfillment:
    request: ProductionRequest
    transaction: InventoryTransaction


# ----------- Validation helpers -----------

def _positive_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", {"field": field})
    return value


def _required_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", {"field": field})
    return value.strip()


def _checked_updates(updates: Dict[str, Any], allowed: set) -> Dict[str, Any]:
    unknown = set(updates) - allowed
    if unknown:
        raise ValidationError(
            f"Fields cannot be updated: {', '.join(sorted(unknown))}", {"fields": sorted(unknown)}
        )
    return {k: v for k, v in updates.items() if v is not None}


def compute_variance(planned: int, final: int) -> Tuple[int, float]:
    """Variance of actual vs planned output, and the same as a percentage of plan (2 dp)."""
    variance = final - planned
    percentage = round(variance / planned * 100, 2) if planned else 0.0
    return variance, percentage


# ----------- Lookups -----------

async def _get_line(line_id: UUID, business_id: UUID, conn: Any = None, lock: bool = False) -> ProductionLine:
    query = ProductionLine.filter(id=line_id, business_id=business_id).using_db(conn)
    if lock:
        query = query.select_for_update()
    line = await query.first()
    if not line:
        raise NotFoundError("Production line", line_id)
    return line


async def _get_resource(resource_id: UUID, business_id: UUID, conn: Any = None) -> Tuple[ProductionResource, ProductionLine]:
    """Returns the resource and its line, locking the line row against concurrent status changes."""
    resource = await ProductionResource.get_or_none(id=resource_id).using_db(conn)
    if not resource:
        raise NotFoundError("Resource", resource_id)
    line = await ProductionLine.filter(
        id=resource.production_line_id, business_id=business_id
    ).using_db(conn).select_for_update().first()
    if not line:
        # Another business's resource looks exactly like a missing one
        raise NotFoundError("Resource", resource_id)
    return resource, line


async def _get_request(request_id: UUID, business_id: UUID, conn: Any = None, lock: bool = False) -> ProductionRequest:
    query = ProductionRequest.filter(id=request_id).using_db(conn)
    if lock:
        query = query.select_for_update()
    request = await query.first()
    if not request:
        raise NotFoundError("Request", request_id)
    owned = await ProductionLine.filter(
        id=request.production_line_id, business_id=business_id
    ).using_db(conn).exists()
    if not owned:
        raise NotFoundError("Request", request_id)
    return request


# ----------- Production lines -----------

async def create_production_line(
    business_id: UUID,
    finished_product_id: UUID,
    planned_quantity: int,
    name: str,
    manager: str,
    resources: List[Dict[str, Any]],
    description: Optional[str] = None,
) -> ProductionLine:
    """
    Creates a PENDING line together with its resource catalog. Each resource is
    a dict with ``resource_product_id``, ``needed_quantity``, ``unit_of_measure``
    and optionally ``resource_name`` / ``notes``. Nothing is written unless every
    resource is valid.
    """
    planned_quantity = _positive_int(planned_quantity, "actualItemsNumber")
    name = _required_text(name, "name")
    manager = _required_text(manager, "manager")
    if not resources:
        raise ValidationError("At least one resource is required")

    cleaned = []
    for index, resource in enumerate(resources, start=1):
        product_id = resource.get("resource_product_id")
        if not product_id:
            raise ValidationError(f"Resource {index}: resourceItemId is required")
        if product_id == finished_product_id:
            raise ValidationError(f"Resource {index}: a product cannot be consumed to produce itself")
        cleaned.append({
            "resource_product_id": product_id,
            "needed_quantity": _positive_int(
                resource.get("needed_quantity"), f"Resource {index}: actualNeededQuantity"
            ),
            "unit_of_measure": _required_text(
                resource.get("unit_of_measure"), f"Resource {index}: unitOfMeasure"
            ),
            "resource_name": resource.get("resource_name"),
            "notes": resource.get("notes"),
        })

    async with in_transaction() as conn:
        finished = await get_owned_product(finished_product_id, business_id, conn)
        products = await get_owned_products(
            [r["resource_product_id"] for r in cleaned], business_id, conn
        )

        line = await ProductionLine.create(
            business_id=business_id,
            finished_product=finished,
            planned_quantity=planned_quantity,
            name=name,
            manager=manager,
            description=description,
            status=LineStatus.PENDING,
            using_db=conn,
        )
        for resource in cleaned:
            product = products[resource["resource_product_id"]]
            await ProductionResource.create(
                production_line=line,
                resource_product=product,
                resource_name=resource["resource_name"] or product.name,
                needed_quantity=resource["needed_quantity"],
                unit_of_measure=resource["unit_of_measure"],
                notes=resource["notes"],
                using_db=conn,
            )

    log.info(f"Production line {line.id} created for business {business_id} with {len(cleaned)} resources")
    return line


async def get_production_line(line_id: UUID, business_id: UUID) -> ProductionLine:
    """Fetches a line with its resources and requests prefetched."""
    line = await ProductionLine.get_or_none(id=line_id, business_id=business_id).prefetch_related(
        "resources", "requests"
    )
    if not line:
        raise NotFoundError("Production line", line_id)
    return line


async def list_production_lines(
    business_id: UUID,
    status: Optional[LineStatus] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[ProductionLine], int]:
    if sort_by not in LINE_SORT_FIELDS:
        raise ValidationError(f"Cannot sort by {sort_by}", {"allowed": sorted(LINE_SORT_FIELDS)})
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be 'asc' or 'desc'")

    query = ProductionLine.filter(business_id=business_id)
    if status:
        query = query.filter(status=status)
    total = await query.count()
    ordering = sort_by if sort_order == "asc" else f"-{sort_by}"
    lines = await query.order_by(ordering).offset((page - 1) * limit).limit(limit)
    return lines, total


async def update_production_line(line_id: UUID, business_id: UUID, updates: Dict[str, Any]) -> ProductionLine:
    changes = _checked_updates(updates, LINE_EDITABLE_FIELDS)
    for field in ("name", "manager"):
        if field in changes:
            changes[field] = _required_text(changes[field], field)

    async with in_transaction() as conn:
        line = await _get_line(line_id, business_id, conn, lock=True)
        line_transition(line.status, LineAction.EDIT)
        if changes:
            line.update_from_dict(changes)
            await line.save(update_fields=[*changes, "updated_at"], using_db=conn)
    return line


async def start_production_line(line_id: UUID, business_id: UUID) -> ProductionLine:
    """PENDING -> IN_PROGRESS as one conditional UPDATE; exactly one concurrent caller wins."""
    target = line_transition(LineStatus.PENDING, LineAction.START)
    updated = await ProductionLine.filter(
        id=line_id, business_id=business_id, status__in=line_sources(LineAction.START)
    ).update(status=target, updated_at=timezone.now())

    line = await _get_line(line_id, business_id)
    if updated != 1:
        # Raises InvalidStateError carrying the status that blocked us
        line_transition(line.status, LineAction.START)
        raise InvalidStateError("Production line not found or already started", line.status, LineAction.START)

    log.info(f"Production line {line_id} started")
    return line


async def complete_production_line(
    line_id: UUID, business_id: UUID, final_quantity: int, user_id: str
) -> Completion:
    """
    IN_PROGRESS -> COMPLETED and credit of the finished product, in one
    transaction: if the credit fails the status flip is rolled back.
    """
    if isinstance(final_quantity, bool) or not isinstance(final_quantity, int) or final_quantity < 0:
        raise ValidationError("finalItemsProduced must be a non-negative integer")

    async with in_transaction() as conn:
        line = await _get_line(line_id, business_id, conn)
        target = line_transition(line.status, LineAction.COMPLETE)

        now = timezone.now()
        updated = await ProductionLine.filter(
            id=line_id, business_id=business_id, status__in=line_sources(LineAction.COMPLETE)
        ).using_db(conn).update(
            status=target, final_quantity=final_quantity, completed_at=now, updated_at=now
        )
        if updated != 1:
            raise InvalidStateError(
                "Production line must be in progress to complete", line.status, LineAction.COMPLETE
            )

        entry = None
        if final_quantity > 0:
            entry = await ledger.credit(
                line.finished_product_id,
                final_quantity,
                user_id,
                PRODUCTION_COMPLETED_REASON,
                reference_id=line.id,
                conn=conn,
            )

    line.status = target
    line.final_quantity = final_quantity
    line.completed_at = now
    line.updated_at = now
    variance, percentage = compute_variance(line.planned_quantity, final_quantity)
    log.info(
        f"Production line {line_id} completed: final={final_quantity} planned={line.planned_quantity} "
        f"variance={variance}"
    )
    return Completion(
        production_line=line, variance=variance, variance_percentage=percentage, transaction=entry
    )


async def delete_production_line(line_id: UUID, business_id: UUID) -> None:
    """Removes a PENDING line with its resources and requests."""
    async with in_transaction() as conn:
        line = await _get_line(line_id, business_id, conn, lock=True)
        line_transition(line.status, LineAction.DELETE)

        consumed = await ProductionRequest.filter(
            production_line_id=line_id, status=RequestStatus.FULFILLED
        ).using_db(conn).exists()
        if consumed:
            raise ConflictError("Cannot delete a production line that has already consumed stock")

        await ProductionRequest.filter(production_line_id=line_id).using_db(conn).delete()
        await ProductionResource.filter(production_line_id=line_id).using_db(conn).delete()
        deleted = await ProductionLine.filter(
            id=line_id, business_id=business_id, status__in=line_sources(LineAction.DELETE)
        ).using_db(conn).delete()
        if deleted != 1:
            raise InvalidStateError("Only pending production lines can be deleted", line.status, LineAction.DELETE)

    log.info(f"Production line {line_id} deleted")


# ----------- Resources -----------

async def add_resource(
    line_id: UUID,
    business_id: UUID,
    resource_product_id: UUID,
    needed_quantity: int,
    unit_of_measure: str,
    resource_name: Optional[str] = None,
    notes: Optional[str] = None,
) -> ProductionResource:
    needed_quantity = _positive_int(needed_quantity, "actualNeededQuantity")
    unit_of_measure = _required_text(unit_of_measure, "unitOfMeasure")

    async with in_transaction() as conn:
        # Row lock serializes against a concurrent completion of the same line
        line = await _get_line(line_id, business_id, conn, lock=True)
        line_transition(line.status, LineAction.EDIT)
        if resource_product_id == line.finished_product_id:
            raise ValidationError("A product cannot be consumed to produce itself")
        product = await get_owned_product(resource_product_id, line.business_id, conn)

        resource = await ProductionResource.create(
            production_line=line,
            resource_product=product,
            resource_name=resource_name or product.name,
            needed_quantity=needed_quantity,
            unit_of_measure=unit_of_measure,
            notes=notes,
            using_db=conn,
        )
    log.info(f"Resource {resource.id} (product {resource_product_id}) added to line {line_id}")
    return resource


async def list_resources(line_id: UUID, business_id: UUID) -> List[ProductionResource]:
    await _get_line(line_id, business_id)
    return await ProductionResource.filter(production_line_id=line_id).order_by("created_at")


async def update_resource(resource_id: UUID, business_id: UUID, updates: Dict[str, Any]) -> ProductionResource:
    changes = _checked_updates(updates, RESOURCE_EDITABLE_FIELDS)
    if "needed_quantity" in changes:
        _positive_int(changes["needed_quantity"], "actualNeededQuantity")
    for field in ("unit_of_measure", "resource_name"):
        if field in changes:
            changes[field] = _required_text(changes[field], field)

    async with in_transaction() as conn:
        resource, line = await _get_resource(resource_id, business_id, conn)
        line_transition(line.status, LineAction.EDIT)
        if changes:
            resource.update_from_dict(changes)
            await resource.save(update_fields=[*changes, "updated_at"], using_db=conn)
    return resource


async def delete_resource(resource_id: UUID, business_id: UUID) -> None:
    """Refused with ConflictError while any request, in any status, references the resource."""
    async with in_transaction() as conn:
        resource, line = await _get_resource(resource_id, business_id, conn)
        line_transition(line.status, LineAction.EDIT)
        if await ProductionRequest.filter(resource_id=resource.id).using_db(conn).exists():
            raise ConflictError(
                "Cannot delete resource with existing requests", {"resource_id": str(resource_id)}
            )
        await ProductionResource.filter(id=resource.id).using_db(conn).delete()
    log.info(f"Resource {resource_id} deleted from line {line.id}")


# ----------- Requests -----------

async def create_request(
    line_id: UUID,
    business_id: UUID,
    resource_id: UUID,
    day_number: int,
    requested_quantity: int,
    user_id: str,
    material_description: Optional[str] = None,
) -> ProductionRequest:
    day_number = _positive_int(day_number, "dayNumber")
    requested_quantity = _positive_int(requested_quantity, "requestedQuantity")

    async with in_transaction() as conn:
        line = await _get_line(line_id, business_id, conn, lock=True)
        line_transition(line.status, LineAction.EDIT)
        resource = await ProductionResource.get_or_none(
            id=resource_id, production_line_id=line.id
        ).using_db(conn)
        if not resource:
            raise NotFoundError("Resource", resource_id)

        request = await ProductionRequest.create(
            production_line=line,
            resource=resource,
            day_number=day_number,
            requested_quantity=requested_quantity,
            unit_of_measure=resource.unit_of_measure,
            material_description=material_description,
            status=RequestStatus.PENDING,
            user_id=user_id,
            using_db=conn,
        )
    log.info(f"Request {request.id} created on line {line_id}: day {day_number}, qty {requested_quantity}")
    return request


async def list_requests(
    line_id: UUID,
    business_id: UUID,
    status: Optional[RequestStatus] = None,
    resource_id: Optional[UUID] = None,
) -> List[ProductionRequest]:
    await _get_line(line_id, business_id)
    query = ProductionRequest.filter(production_line_id=line_id)
    if status:
        query = query.filter(status=status)
    if resource_id:
        query = query.filter(resource_id=resource_id)
    return await query.order_by("day_number", "created_at")


async def fulfill_request(request_id: UUID, business_id: UUID, user_id: str) -> Fulfillment:
    """
    Debits the resource product and marks the request FULFILLED in one
    transaction. On InsufficientStockError nothing changes and the request
    stays PENDING.
    """
    async with in_transaction() as conn:
        request = await _get_request(request_id, business_id, conn, lock=True)
        target = request_transition(request.status, RequestAction.FULFILL)
        resource = await ProductionResource.get(id=request.resource_id).using_db(conn)

        entry = await ledger.debit(
            resource.resource_product_id,
            request.requested_quantity,
            user_id,
            PRODUCTION_USAGE_REASON,
            reference_id=request.id,
            conn=conn,
        )

        now = timezone.now()
        updated = await ProductionRequest.filter(
            id=request.id, status__in=request_sources(RequestAction.FULFILL)
        ).using_db(conn).update(status=target, fulfilled_at=now, updated_at=now)
        if updated != 1:
            raise InvalidStateError("Request is not pending", request.status, RequestAction.FULFILL)

    request.status = target
    request.fulfilled_at = now
    log.info(f"Request {request_id} fulfilled: txn={entry.id}")
    return Fulfillment(request=request, transaction=entry)


async def _finish_request(request_id: UUID, business_id: UUID, action: RequestAction) -> Optional[ProductionRequest]:
    async with in_transaction() as conn:
        request = await _get_request(request_id, business_id, conn)
        target = request_transition(request.status, action)
        query = ProductionRequest.filter(
            id=request.id, status__in=request_sources(action)
        ).using_db(conn)
        if target is None:
            changed = await query.delete()
        else:
            changed = await query.update(status=target, updated_at=timezone.now())
        if changed != 1:
            current = await ProductionRequest.filter(id=request.id).using_db(conn).first()
            if not current:
                raise NotFoundError("Request", request_id)
            request_transition(current.status, action)
            raise InvalidStateError("Request changed concurrently", current.status, action)

    if target is None:
        return None
    request.status = target
    return request


async def cancel_request(request_id: UUID, business_id: UUID) -> ProductionRequest:
    """PENDING -> CANCELLED. Nothing was debited, so stock is untouched."""
    request = await _finish_request(request_id, business_id, RequestAction.CANCEL)
    log.info(f"Request {request_id} cancelled")
    return request


async def delete_request(request_id: UUID, business_id: UUID) -> None:
    await _finish_request(request_id, business_id, RequestAction.DELETE)
    log.info(f"Request {request_id} deleted")
