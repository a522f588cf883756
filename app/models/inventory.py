from enum import Enum
from tortoise import fields, models


class TransactionType(str, Enum):
    CREDIT = "CREDIT" # Stock added (top-up, production output)
    DEBIT = "DEBIT"   # Stock consumed (usage, production input)


class InventoryTransaction(models.Model):
    """
    Append-only audit row written together with every stock change.
    The auto-increment id gives the replay order of the log.
    """
    id = fields.BigIntField(pk=True)
    product = fields.ForeignKeyField("models.Product", related_name="transactions")
    business = fields.ForeignKeyField("models.Business", related_name="inventory_transactions")
    user_id = fields.CharField(max_length=64)
    transaction_type = fields.CharEnumField(TransactionType)
    old_quantity = fields.IntField()
    new_quantity = fields.IntField()
    amount = fields.IntField()
    reason = fields.CharField(max_length=255)
    reference_id = fields.UUIDField(null=True) # e.g. the production request or line
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "inventory_transactions"
        indexes = [
            ("product_id", "id"),          # Replay order per product
            ("business_id", "created_at"), # Business-wide history
            ("reference_id",),
        ]
