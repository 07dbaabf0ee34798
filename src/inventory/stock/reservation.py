"""Stock reservation: commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, String

from inventory.domain import inventory
from inventory.services.inventory_service import InventoryService
from inventory.stock.record import InventoryRecord


@inventory.command(part_of="InventoryRecord")
class ReserveStock:
    """Hold available stock for an open order."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    user_id = String(max_length=100)


@inventory.command(part_of="InventoryRecord")
class ReleaseReservation:
    """Return held stock to available."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    user_id = String(max_length=100)


@inventory.command_handler(part_of=InventoryRecord)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        record = InventoryService().reserve_stock(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            user_id=command.user_id,
        )
        return str(record.id)

    @handle(ReleaseReservation)
    def release_reservation(self, command):
        record = InventoryService().release_reservation(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            user_id=command.user_id,
        )
        return str(record.id)
