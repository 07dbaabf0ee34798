"""StockMovement aggregate (CQRS): the append-only movement ledger.

Every change to an InventoryRecord's on-hand quantity writes exactly one
entry here, in the same unit of work, capturing the quantity before and
after. Entries are immutable once written: summing a pair's entries by
direction from zero reproduces the record's current quantity.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text, ValueObject

from inventory.domain import inventory
from inventory.ledger.events import StockMovementRecorded
from inventory.shared.document_reference import DocumentReference
from inventory.shared.precision import line_value, round_quantity
from inventory.shared.queries import fetch_all


# ---------------------------------------------------------------------------
# Movement types
# ---------------------------------------------------------------------------
class MovementType(Enum):
    STOCK_IN = "stock_in"
    STOCK_OUT = "stock_out"
    PURCHASE_IN = "purchase_in"
    PRODUCTION_IN = "production_in"
    PRODUCTION_OUT = "production_out"
    SALE_OUT = "sale_out"
    ADJUSTMENT_IN = "adjustment_in"
    ADJUSTMENT_OUT = "adjustment_out"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    LOSS = "loss"
    DRYING = "drying"
    RETURN_IN = "return_in"
    RETURN_OUT = "return_out"

    @property
    def is_inbound(self) -> bool:
        return self in INBOUND_TYPES

    @property
    def sign(self) -> int:
        return 1 if self.is_inbound else -1

    @property
    def label(self) -> str:
        return MOVEMENT_LABELS[self]


INBOUND_TYPES = frozenset(
    {
        MovementType.STOCK_IN,
        MovementType.PURCHASE_IN,
        MovementType.PRODUCTION_IN,
        MovementType.ADJUSTMENT_IN,
        MovementType.TRANSFER_IN,
        MovementType.RETURN_IN,
    }
)
OUTBOUND_TYPES = frozenset(set(MovementType) - INBOUND_TYPES)

MOVEMENT_LABELS = {
    MovementType.STOCK_IN: "Stock In",
    MovementType.STOCK_OUT: "Stock Out",
    MovementType.PURCHASE_IN: "Purchase Receipt",
    MovementType.PRODUCTION_IN: "Production Output",
    MovementType.PRODUCTION_OUT: "Production Consumption",
    MovementType.SALE_OUT: "Sales Delivery",
    MovementType.ADJUSTMENT_IN: "Stock Adjustment (+)",
    MovementType.ADJUSTMENT_OUT: "Stock Adjustment (-)",
    MovementType.TRANSFER_IN: "Transfer In",
    MovementType.TRANSFER_OUT: "Transfer Out",
    MovementType.LOSS: "Loss/Wastage",
    MovementType.DRYING: "Drying Loss",
    MovementType.RETURN_IN: "Customer Return",
    MovementType.RETURN_OUT: "Return to Supplier",
}


def parse_movement_type(value) -> MovementType:
    """Coerce a raw value into a MovementType, or fail validation."""
    if isinstance(value, MovementType):
        return value
    try:
        return MovementType(value)
    except ValueError:
        raise ValidationError({"movement_type": [f"Unknown movement type '{value}'"]}) from None


# ---------------------------------------------------------------------------
# Ledger entry
# ---------------------------------------------------------------------------
@inventory.aggregate
class StockMovement:
    """One immutable line of the stock ledger."""

    reference_number = String(required=True, max_length=30, unique=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    batch_id = Identifier()
    movement_type = String(required=True, max_length=30, choices=MovementType)
    quantity = Float(required=True, min_value=0.0)
    unit_cost = Float(min_value=0.0)
    total_value = Float()
    quantity_before = Float(default=0.0)
    quantity_after = Float(default=0.0)
    from_warehouse_id = Identifier()
    to_warehouse_id = Identifier()
    reason = Text()
    reference = ValueObject(DocumentReference)
    created_by = String(max_length=100)
    created_at = DateTime()

    @invariant.post
    def quantity_after_must_follow_direction(self):
        if not self.quantity or self.quantity <= 0:
            raise ValidationError({"quantity": ["Movement quantity must be greater than zero"]})
        expected = round_quantity(self.quantity_before + self.direction * self.quantity)
        if round_quantity(self.quantity_after) != expected:
            raise ValidationError(
                {"quantity_after": [f"Expected {expected} after a {self.movement_type} of {self.quantity}"]}
            )

    @classmethod
    def record(
        cls,
        reference_number,
        product_id,
        warehouse_id,
        movement_type,
        quantity,
        quantity_before,
        quantity_after,
        created_by=None,
        unit_cost=None,
        batch_id=None,
        reason=None,
        reference=None,
        from_warehouse_id=None,
        to_warehouse_id=None,
    ):
        """Write a new ledger entry and announce it."""
        movement_type = parse_movement_type(movement_type)
        now = datetime.now(UTC)
        movement = cls(
            reference_number=reference_number,
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            batch_id=str(batch_id) if batch_id else None,
            movement_type=movement_type.value,
            quantity=round_quantity(quantity),
            unit_cost=unit_cost,
            total_value=line_value(quantity, unit_cost),
            quantity_before=round_quantity(quantity_before),
            quantity_after=round_quantity(quantity_after),
            from_warehouse_id=str(from_warehouse_id) if from_warehouse_id else None,
            to_warehouse_id=str(to_warehouse_id) if to_warehouse_id else None,
            reason=reason,
            reference=reference,
            created_by=str(created_by) if created_by is not None else None,
            created_at=now,
        )
        movement.raise_(
            StockMovementRecorded(
                movement_id=str(movement.id),
                reference_number=reference_number,
                product_id=movement.product_id,
                warehouse_id=movement.warehouse_id,
                movement_type=movement.movement_type,
                quantity=movement.quantity,
                quantity_before=movement.quantity_before,
                quantity_after=movement.quantity_after,
                total_value=movement.total_value,
                batch_id=movement.batch_id,
                reference=str(reference) if reference else None,
                created_by=movement.created_by,
                recorded_at=now,
            )
        )
        return movement

    @property
    def direction(self) -> int:
        return MovementType(self.movement_type).sign

    @property
    def signed_quantity(self) -> float:
        return round_quantity(self.direction * self.quantity)

    @property
    def label(self) -> str:
        return MovementType(self.movement_type).label

    @property
    def is_inbound(self) -> bool:
        return MovementType(self.movement_type).is_inbound


@inventory.repository(part_of=StockMovement)
class StockMovementRepository:
    def for_pair(self, product_id, warehouse_id) -> list[StockMovement]:
        """Every entry for a (product, warehouse) pair, oldest first."""
        query = self._dao.query.filter(product_id=str(product_id), warehouse_id=str(warehouse_id))
        return fetch_all(query.order_by(["created_at", "reference_number"]))

    def ledger_balance(self, product_id, warehouse_id) -> float:
        """Replay the pair's ledger from zero by signed direction."""
        return round_quantity(sum(m.signed_quantity for m in self.for_pair(product_id, warehouse_id)))

    def for_reference(self, product_id, reference: DocumentReference) -> list[StockMovement]:
        """A product's entries caused by a given business document."""
        query = self._dao.query.filter(product_id=str(product_id)).order_by(["created_at", "reference_number"])
        return [m for m in fetch_all(query) if m.reference == reference]
