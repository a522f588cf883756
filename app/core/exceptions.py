"""
Typed errors raised by the ledger and the production workflow.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with, so callers catch by type and never parse messages:

    InventoryError (base)
    +-- ValidationError         400  missing or malformed input, raised before any write
    +-- InsufficientStockError  400  a debit would drive stock negative
    +-- NotFoundError           404  absent, or owned by another business
    +-- InvalidStateError       409  operation illegal for the current status
    +-- ConflictError           409  dependent rows block the operation

NotFoundError deliberately covers both "does not exist" and "belongs to
another business" so that tenants cannot probe each other's ids.
"""
from typing import Any, Dict, Optional
from uuid import UUID


class InventoryError(Exception):
    code = "inventory_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(InventoryError):
    code = "validation_error"
    status_code = 400


class NotFoundError(InventoryError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None):
        message = f"{entity} not found"
        super().__init__(message, {"entity": entity, "id": str(entity_id) if entity_id else None})
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(InventoryError):
    code = "invalid_state"
    status_code = 409

    def __init__(self, message: str, current_status: Any = None, action: Any = None):
        details = {}
        if current_status is not None:
            details["current_status"] = getattr(current_status, "value", current_status)
        if action is not None:
            details["action"] = getattr(action, "value", action)
        super().__init__(message, details)
        self.current_status = current_status
        self.action = action


class ConflictError(InventoryError):
    code = "conflict"
    status_code = 409


class InsufficientStockError(InventoryError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(self, product_id: UUID, requested: int, available: int):
        super().__init__(
            f"Insufficient quantity available. Requested: {requested}, Current stock: {available}",
            {"product_id": str(product_id), "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
