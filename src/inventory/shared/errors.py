"""Inventory-specific error kinds.

All of them extend Protean's exception hierarchy so that generic handlers
(e.g. the FastAPI exception mapping) still recognise them, while callers can
catch the narrower kinds to render a precise message.
"""

from protean.exceptions import InvalidOperationError, ValidationError

from inventory.shared.precision import format_quantity, round_quantity


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the stock that can be used."""

    def __init__(self, product_name, requested, available, warehouse_name=None):
        self.product_name = product_name
        self.requested = round_quantity(requested)
        self.available = round_quantity(available)
        self.warehouse_name = warehouse_name
        self.shortage = round_quantity(self.requested - self.available)

        location = f" in {warehouse_name}" if warehouse_name else ""
        self.message = (
            f"Insufficient stock for {product_name}{location}. "
            f"Requested: {format_quantity(self.requested)}, "
            f"Available: {format_quantity(self.available)}"
        )
        super().__init__({"quantity": [self.message]})

    def __str__(self):
        return self.message

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "product": self.product_name,
            "requested": self.requested,
            "available": self.available,
            "warehouse": self.warehouse_name,
            "shortage": self.shortage,
        }


class RoleSeparationError(InvalidOperationError):
    """The same user may not play two roles that must stay separate."""

    def __init__(self, message="You cannot approve your own adjustment.", violated_rule="creator_cannot_approve"):
        self.message = message
        self.violated_rule = violated_rule
        super().__init__(message)

    def __str__(self):
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.message, "violated_rule": self.violated_rule}


class InvalidAdjustmentStateError(InvalidOperationError):
    """An adjustment is not in the state the requested operation needs."""

    def __init__(self, current_status, attempted):
        self.current_status = current_status
        self.attempted = attempted
        self.message = f"Cannot {attempted} an adjustment in status '{current_status}'"
        super().__init__(self.message)

    def __str__(self):
        return self.message

    def to_dict(self) -> dict:
        return {"error": self.message, "status": self.current_status}
