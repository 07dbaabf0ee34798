"""Domain events for the InventoryBatch aggregate."""

from protean.fields import Date, DateTime, Float, Identifier, String

from inventory.domain import inventory


@inventory.event(part_of="InventoryBatch")
class BatchCreated:
    """A new lot entered a warehouse."""

    __version__ = 1

    batch_id = Identifier(required=True)
    batch_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    unit_cost = Float(default=0.0)
    expiry_date = Date()
    created_at = DateTime(required=True)


@inventory.event(part_of="InventoryBatch")
class BatchDepleted:
    """A lot's remaining quantity reached zero."""

    __version__ = 1

    batch_id = Identifier(required=True)
    batch_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    depleted_at = DateTime(required=True)


@inventory.event(part_of="InventoryBatch")
class BatchExpired:
    """A lot passed its expiry date with stock remaining."""

    __version__ = 1

    batch_id = Identifier(required=True)
    batch_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    remaining_quantity = Float(default=0.0)
    expiry_date = Date()
    expired_at = DateTime(required=True)
