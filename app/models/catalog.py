from tortoise import fields, models
from tortoise.validators import MinValueValidator
import uuid


class Business(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    name = fields.CharField(max_length=255)
    owner_id = fields.CharField(max_length=64) # Supplied by the identity layer
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "businesses"
        indexes = [
            ("owner_id",),
        ]


class Category(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="categories")
    name = fields.CharField(max_length=255)
    is_active = fields.BooleanField(default=True) # False once the category is deleted
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "categories"
        unique_together = (("business", "name"),)
        indexes = [
            ("business_id", "is_active"),
        ]


class Product(models.Model):
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    business = fields.ForeignKeyField("models.Business", related_name="products")
    category = fields.ForeignKeyField("models.Category", related_name="products")
    name = fields.CharField(max_length=200)
    price = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    # Written only through app.services.ledger
    quantity = fields.IntField(default=0, validators=[MinValueValidator(0)])
    is_available = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "products"
        unique_together = (("business", "name"),)
        indexes = [
            ("business_id",),
            ("category_id",),
        ]
