"""Domain events for the InventoryRecord aggregate.

Quantity changes are captured in the movement ledger; these events cover
the reservation counter and low-stock signalling that other contexts
(ordering, purchasing) react to.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from inventory.domain import inventory


@inventory.event(part_of="InventoryRecord")
class StockReserved:
    """Stock was promised to an open order, decreasing available quantity."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    previous_reserved = Float(default=0.0)
    new_reserved = Float(default=0.0)
    new_available = Float(default=0.0)
    reserved_by = String()
    reserved_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class ReservationReleased:
    """Reserved stock was returned to available."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    previous_reserved = Float(default=0.0)
    new_reserved = Float(default=0.0)
    over_released = Float(default=0.0)
    released_by = String()
    released_at = DateTime(required=True)


@inventory.event(part_of="InventoryRecord")
class LowStockDetected:
    """On-hand quantity fell to or below the product's reorder level."""

    __version__ = 1

    inventory_record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    current_quantity = Float(default=0.0)
    reorder_level = Float(default=0.0)
    is_critical = Boolean(default=False)
    detected_at = DateTime(required=True)
