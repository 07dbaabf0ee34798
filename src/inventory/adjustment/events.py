"""Domain events for the InventoryAdjustment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from inventory.domain import inventory


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentSubmitted:
    """A large adjustment is waiting for a second pair of eyes."""

    __version__ = 1

    adjustment_id = Identifier(required=True)
    adjustment_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    adjustment_type = String(required=True)
    quantity_change = Float(required=True)
    created_by = String(required=True)
    submitted_at = DateTime(required=True)


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentApproved:
    """An adjustment was approved and its stock change applied."""

    __version__ = 1

    adjustment_id = Identifier(required=True)
    adjustment_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity_change = Float(required=True)
    total_value_impact = Float(default=0.0)
    approved_by = String(required=True)
    auto_approved = Boolean(default=False)
    approved_at = DateTime(required=True)


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentRejected:
    """A pending adjustment was turned down; stock is untouched."""

    __version__ = 1

    adjustment_id = Identifier(required=True)
    adjustment_number = String(required=True)
    rejected_by = String(required=True)
    notes = String()
    rejected_at = DateTime(required=True)
