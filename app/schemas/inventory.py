import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.inventory import TransactionType


class StockAdjustmentRequest(BaseModel):
    """Body of the increment/decrement endpoints."""
    model_config = ConfigDict(populate_by_name=True)

    business_id: uuid.UUID = Field(..., alias="businessId")
    quantity: int = Field(..., gt=0, description="Units to add or remove.")
    reason: Optional[str] = Field(None, max_length=255)
    reference_id: Optional[uuid.UUID] = Field(None, alias="referenceId")


class InventoryTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: uuid.UUID
    business_id: uuid.UUID
    user_id: str
    transaction_type: TransactionType
    old_quantity: int
    new_quantity: int
    amount: int
    reason: str
    reference_id: Optional[uuid.UUID] = None
    created_at: datetime


class StockResponse(BaseModel):
    """Schema for fetching product stock."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    quantity: int
    is_available: bool
    updated_at: datetime


class ReplayResult(BaseModel):
    """Outcome of replaying a product's transaction log in order."""
    product_id: uuid.UUID
    transaction_count: int
    starting_quantity: int
    total_credits: int
    total_debits: int
    replayed_quantity: int
    current_quantity: int
    chain_continuous: bool
    consistent: bool
