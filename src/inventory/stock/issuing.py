"""Stock issuing: command and handler.

Deductions through this command always respect available stock; forcing a
warehouse negative is reserved for approved adjustments.
"""

from protean import handle
from protean.fields import Float, Identifier, String, Text

from inventory.domain import inventory
from inventory.services.inventory_service import InventoryService
from inventory.shared.document_reference import reference_from
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class DeductStock:
    """Issue stock out of a warehouse (sale, production consumption, loss...)."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    movement_type = String(required=True, max_length=30)  # Outbound types only
    reason = Text()
    reference_kind = String(max_length=50)
    reference_id = Identifier()
    batch_id = Identifier()
    user_id = String(max_length=100)


@inventory.command_handler(part_of=InventoryRecord)
class IssueStockHandler:
    @handle(DeductStock)
    def deduct_stock(self, command):
        movement = InventoryService().deduct_stock(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            movement_type=command.movement_type,
            user_id=command.user_id,
            reason=command.reason,
            reference=reference_from(command.reference_kind, command.reference_id),
            batch_id=command.batch_id,
        )
        return str(movement.id)
