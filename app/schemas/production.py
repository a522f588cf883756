import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.production import LineStatus, RequestStatus
from app.schemas.inventory import InventoryTransactionResponse


# ----------- Request bodies -----------

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class BusinessScopedRequest(_Body):
    """Body carrying only the business the caller acts for (e.g. start, fulfill)."""
    business_id: uuid.UUID = Field(..., alias="businessId")


class ResourceInput(_Body):
    """One raw material a production line consumes."""
    resource_item_id: uuid.UUID = Field(..., alias="resourceItemId")
    resource_name: Optional[str] = Field(None, alias="resourceName", max_length=255)
    actual_needed_quantity: int = Field(..., alias="actualNeededQuantity", gt=0)
    unit_of_measure: str = Field(..., alias="unitOfMeasure", min_length=1, max_length=32)
    notes: Optional[str] = None


class ProductionLineCreate(_Body):
    item_id: uuid.UUID = Field(..., alias="itemId", description="Finished product to manufacture.")
    business_id: uuid.UUID = Field(..., alias="businessId")
    actual_items_number: int = Field(..., alias="actualItemsNumber", gt=0, description="Planned output.")
    name: str = Field(..., min_length=1, max_length=255)
    manager: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    resources: List[ResourceInput] = Field(..., min_length=1)


class ProductionLineUpdate(_Body):
    """Only descriptive fields; status and quantities change through their own endpoints."""
    business_id: uuid.UUID = Field(..., alias="businessId")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    manager: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None


class CompleteProductionRequest(_Body):
    business_id: uuid.UUID = Field(..., alias="businessId")
    final_items_produced: int = Field(..., alias="finalItemsProduced", ge=0)


class ResourceCreate(ResourceInput):
    business_id: uuid.UUID = Field(..., alias="businessId")


class ResourceUpdate(_Body):
    business_id: uuid.UUID = Field(..., alias="businessId")
    resource_name: Optional[str] = Field(None, alias="resourceName", min_length=1, max_length=255)
    actual_needed_quantity: Optional[int] = Field(None, alias="actualNeededQuantity", gt=0)
    unit_of_measure: Optional[str] = Field(None, alias="unitOfMeasure", min_length=1, max_length=32)
    notes: Optional[str] = None


class ProductionRequestCreate(_Body):
    business_id: uuid.UUID = Field(..., alias="businessId")
    resource_used_id: uuid.UUID = Field(..., alias="resourceUsedId")
    day_number: int = Field(..., alias="dayNumber", gt=0)
    requested_quantity: int = Field(..., alias="requestedQuantity", gt=0)
    material_description: Optional[str] = Field(None, alias="materialDescription")


# ----------- Responses -----------

class ProductionLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_id: uuid.UUID
    finished_product_id: uuid.UUID
    planned_quantity: int
    final_quantity: Optional[int] = None
    name: str
    manager: str
    description: Optional[str] = None
    status: LineStatus
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class ProductionResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    production_line_id: uuid.UUID
    resource_product_id: uuid.UUID
    resource_name: str
    needed_quantity: int
    unit_of_measure: str
    notes: Optional[str] = None
    created_at: datetime


class ProductionRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    production_line_id: uuid.UUID
    resource_id: uuid.UUID
    day_number: int
    requested_quantity: int
    unit_of_measure: str
    material_description: Optional[str] = None
    status: RequestStatus
    user_id: str
    created_at: datetime
    fulfilled_at: Optional[datetime] = None


class RequestSummary(BaseModel):
    total_requests: int
    fulfilled_requests: int
    pending_requests: int
    cancelled_requests: int
    total_resources: int


class ProductionLineDetail(ProductionLineResponse):
    resources: List[ProductionResourceResponse]
    requests: List[ProductionRequestResponse]
    summary: RequestSummary


class CompletionResponse(BaseModel):
    production_line: ProductionLineResponse
    variance: int
    variance_percentage: float
    transaction: Optional[InventoryTransactionResponse] = None


class FulfillmentResponse(BaseModel):
    request: ProductionRequestResponse
    transaction: InventoryTransactionResponse


# ----------- Analytics -----------

class ProductionSummary(BaseModel):
    total_productions: int
    pending: int
    in_progress: int
    completed: int
    cancelled: int
    total_items_planned: int
    total_items_produced: int
    average_variance: float


class LineEfficiency(BaseModel):
    id: uuid.UUID
    name: str
    manager: str
    planned_quantity: int
    final_quantity: int
    efficiency: float
    variance: int
    variance_percentage: float
    duration_days: Optional[int] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class ResourceVariance(BaseModel):
    resource_id: uuid.UUID
    resource_product_id: uuid.UUID
    resource_name: str
    unit_of_measure: str
    needed_quantity: int
    fulfilled_quantity: int
    pending_quantity: int
    variance: int
    variance_percentage: float
    consumption: str # OVER, UNDER or EXACT


class VarianceReport(BaseModel):
    production_line: ProductionLineResponse
    variances: List[ResourceVariance]
