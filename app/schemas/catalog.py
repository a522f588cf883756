import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BusinessRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the business.")


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the category (e.g., Raw materials).")


class ProductRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    business_id: uuid.UUID = Field(..., alias="businessId")
    name: str = Field(..., min_length=1, max_length=200, description="Name of the product (e.g., Steel sheet).")
    price: Decimal = Field(Decimal("0"), ge=0, description="Unit price of the product.")
    initial_qty: int = Field(0, ge=0, alias="initialQty", description="Opening stock, booked as a ledger credit.")
    is_available: bool = Field(True, alias="isAvailable")


class BusinessResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    owner_id: str
    is_active: bool
    created_at: datetime


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_id: uuid.UUID
    name: str
    is_active: bool


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_id: uuid.UUID
    category_id: uuid.UUID
    name: str
    price: Decimal
    quantity: int
    is_available: bool
