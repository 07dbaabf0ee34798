"""Adjustment workflow: commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, String, Text

from inventory.adjustment.adjustment import InventoryAdjustment
from inventory.domain import inventory
from inventory.services.inventory_service import InventoryService


@inventory.command(part_of="InventoryAdjustment")
class CreateAdjustment:
    """Propose a manual correction to stock."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    adjustment_type = String(required=True, max_length=30)
    quantity_change = Float(required=True)  # Signed
    reason = Text(required=True)
    batch_id = Identifier()
    notes = Text()
    user_id = String(required=True, max_length=100)


@inventory.command(part_of="InventoryAdjustment")
class ApproveAdjustment:
    """Approve a pending adjustment and apply it."""

    adjustment_id = Identifier(required=True)
    notes = Text()
    user_id = String(required=True, max_length=100)


@inventory.command(part_of="InventoryAdjustment")
class RejectAdjustment:
    """Turn down a pending adjustment."""

    adjustment_id = Identifier(required=True)
    notes = Text()
    user_id = String(required=True, max_length=100)


@inventory.command_handler(part_of=InventoryAdjustment)
class AdjustmentWorkflowHandler:
    @handle(CreateAdjustment)
    def create_adjustment(self, command):
        adjustment = InventoryService().create_adjustment(
            product_id=command.product_id,
            warehouse_id=command.warehouse_id,
            adjustment_type=command.adjustment_type,
            quantity_change=command.quantity_change,
            reason=command.reason,
            user_id=command.user_id,
            batch_id=command.batch_id,
            notes=command.notes,
        )
        return str(adjustment.id)

    @handle(ApproveAdjustment)
    def approve_adjustment(self, command):
        InventoryService().approve_adjustment(
            adjustment_id=command.adjustment_id,
            user_id=command.user_id,
            notes=command.notes,
        )

    @handle(RejectAdjustment)
    def reject_adjustment(self, command):
        InventoryService().reject_adjustment(
            adjustment_id=command.adjustment_id,
            user_id=command.user_id,
            notes=command.notes,
        )
