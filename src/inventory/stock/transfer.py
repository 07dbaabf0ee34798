"""Inter-warehouse transfer: command and handler."""

from protean import handle
from protean.fields import Float, Identifier, String, Text

from inventory.domain import inventory
from inventory.services.inventory_service import InventoryService
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class TransferStock:
    """Move stock from one warehouse to another."""

    product_id = Identifier(required=True)
    from_warehouse_id = Identifier(required=True)
    to_warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    reason = Text()
    batch_id = Identifier()
    user_id = String(max_length=100)


@inventory.command_handler(part_of=InventoryRecord)
class TransferStockHandler:
    @handle(TransferStock)
    def transfer_stock(self, command):
        movements = InventoryService().transfer_stock(
            product_id=command.product_id,
            from_warehouse_id=command.from_warehouse_id,
            to_warehouse_id=command.to_warehouse_id,
            quantity=command.quantity,
            user_id=command.user_id,
            reason=command.reason,
            batch_id=command.batch_id,
        )
        return {"out": str(movements["out"].id), "in": str(movements["in"].id)}
