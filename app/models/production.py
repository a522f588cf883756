from enum import Enum
from tortoise import fields, models
import uuid


class LineStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED" # Reported by analytics; no action leads here


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    FULFILLED = "FULFILLED"
    CANCELLED = "CANCELLED"


class ProductionLine(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="production_lines")
    finished_product = fields.ForeignKeyField("models.Product", related_name="production_lines")
    planned_quantity = fields.IntField()
    final_quantity = fields.IntField(null=True) # Set once, at completion
    name = fields.CharField(max_length=255)
    manager = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    status = fields.CharEnumField(LineStatus, default=LineStatus.PENDING)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)
    completed_at = fields.DatetimeField(null=True)

    class Meta:
        table = "production_lines"
        indexes = [
            ("business_id", "status"),
            ("business_id", "created_at"),
        ]


class ProductionResource(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    production_line = fields.ForeignKeyField(
        "models.ProductionLine", related_name="resources"
    )
    resource_product = fields.ForeignKeyField("models.Product", related_name="used_as_resource")
    resource_name = fields.CharField(max_length=255)
    needed_quantity = fields.IntField()
    unit_of_measure = fields.CharField(max_length=32)
    notes = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "production_resources"
        indexes = [
            ("production_line_id",),
        ]


class ProductionRequest(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    production_line = fields.ForeignKeyField(
        "models.ProductionLine", related_name="requests"
    )
    # Deleting a referenced resource is refused by the service (ConflictError)
    resource = fields.ForeignKeyField(
        "models.ProductionResource", related_name="requests"
    )
    day_number = fields.IntField()
    requested_quantity = fields.IntField()
    unit_of_measure = fields.CharField(max_length=32)
    material_description = fields.TextField(null=True)
    status = fields.CharEnumField(RequestStatus, default=RequestStatus.PENDING)
    user_id = fields.CharField(max_length=64)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)
    fulfilled_at = fields.DatetimeField(null=True)

    class Meta:
        table = "production_requests"
        indexes = [
            ("production_line_id", "day_number"),
            ("resource_id", "status"),
        ]
