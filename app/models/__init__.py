# app/models/__init__.py
from .catalog import Business, Category, Product
from .inventory import InventoryTransaction, TransactionType
from .production import (
    LineStatus,
    ProductionLine,
    ProductionRequest,
    ProductionResource,
    RequestStatus,
)

# Export all models
__all__ = [
    "Business",
    "Category",
    "Product",
    "InventoryTransaction",
    "TransactionType",
    "LineStatus",
    "ProductionLine",
    "ProductionRequest",
    "ProductionResource",
    "RequestStatus",
]
