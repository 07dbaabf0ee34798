"""Domain events for the StockMovement ledger."""

from protean.fields import DateTime, Float, Identifier, String

from inventory.domain import inventory


@inventory.event(part_of="StockMovement")
class StockMovementRecorded:
    """A quantity change was appended to the movement ledger."""

    __version__ = 1

    movement_id = Identifier(required=True)
    reference_number = String(required=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Float(required=True)
    quantity_before = Float(default=0.0)
    quantity_after = Float(default=0.0)
    total_value = Float()
    batch_id = Identifier()
    reference = String()  # "kind:document_id" of the causing document
    created_by = String()
    recorded_at = DateTime(required=True)
