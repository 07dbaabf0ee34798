"""Batch management: commands and handler."""

from protean import handle
from protean.fields import Date, Float, Identifier, String, Text

from inventory.batch.batch import InventoryBatch
from inventory.domain import inventory
from inventory.services.inventory_service import InventoryService
from inventory.shared.document_reference import reference_from


@inventory.command(part_of="InventoryBatch")
class CreateBatch:
    """Register a new lot of a product in a warehouse."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(required=True)
    unit_cost = Float(default=0.0)
    production_date = Date()
    expiry_date = Date()
    source_kind = String(max_length=50)
    source_id = Identifier()
    notes = Text()
    user_id = String(max_length=100)


@inventory.command(part_of="InventoryBatch")
class ExpireBatches:
    """Mark active batches past their expiry date as expired."""

    as_of = Date()
    user_id = String(max_length=100)


@inventory.command_handler(part_of=InventoryBatch)
class BatchManagementHandler:
    @handle(CreateBatch)
    def create_batch(self, command):
        batch = InventoryService().create_batch(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            quantity=command.quantity,
            unit_cost=command.unit_cost or 0.0,
            user_id=command.user_id,
            production_date=command.production_date,
            expiry_date=command.expiry_date,
            source=reference_from(command.source_kind, command.source_id),
            notes=command.notes,
        )
        return str(batch.id)

    @handle(ExpireBatches)
    def expire_batches(self, command):
        return InventoryService().expire_batches(as_of=command.as_of, user_id=command.user_id)
