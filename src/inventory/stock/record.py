"""InventoryRecord aggregate (CQRS): stock counters for one product in one warehouse.

Stock Level Model:
    quantity:           Physical on-hand count
    reserved_quantity:  Promised to open orders, never more than on hand
    available_quantity: quantity - reserved_quantity (derived, never stored)

Records are created lazily on the first inbound movement and are never
deleted. Only ``InventoryService`` mutates them, always together with a
movement ledger entry in the same unit of work.
"""

from datetime import UTC, datetime
from uuid import NAMESPACE_URL, uuid5

import structlog
from protean import Index, atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from inventory.domain import inventory
from inventory.shared.precision import round_quantity
from inventory.shared.queries import fetch_all
from inventory.stock.events import LowStockDetected, ReservationReleased, StockReserved

logger = structlog.get_logger(__name__)


# One (product, warehouse) pair maps to one record id
RECORD_NAMESPACE = uuid5(NAMESPACE_URL, "stockledger:inventory-record")


@inventory.aggregate(indexes=[Index("product_id", "warehouse_id", unique=True)])
class InventoryRecord:
    """On-hand and reserved stock for a (product, warehouse) pair."""

    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    quantity = Float(default=0.0)
    reserved_quantity = Float(default=0.0, min_value=0.0)
    last_adjusted_by = String(max_length=100)
    last_stock_take = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_must_be_covered_by_on_hand(self):
        reserved = self.reserved_quantity or 0.0
        if reserved < 0:
            raise ValidationError({"reserved_quantity": ["Reserved quantity cannot be negative"]})
        if reserved > max(self.quantity or 0.0, 0.0):
            raise ValidationError({"reserved_quantity": ["Reserved quantity cannot exceed quantity on hand"]})

    @classmethod
    def open(cls, product_id, warehouse_id):
        """Start a zeroed record for a pair that has never held stock."""
        now = datetime.now(UTC)
        return cls(
            id=record_id_for(product_id, warehouse_id),
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=0.0,
            reserved_quantity=0.0,
            created_at=now,
            updated_at=now,
        )

    @property
    def available_quantity(self) -> float:
        return round_quantity((self.quantity or 0.0) - (self.reserved_quantity or 0.0))

    def can_supply(self, quantity) -> bool:
        return self.available_quantity >= round_quantity(quantity)

    # -------------------------------------------------------------------
    # On-hand quantity
    # -------------------------------------------------------------------
    def increase(self, quantity, adjusted_by=None):
        """Add ``quantity`` to on-hand stock."""
        quantity = self._positive(quantity)
        self._stamp(round_quantity(self.quantity + quantity), adjusted_by)

    def decrease(self, quantity, adjusted_by=None, allow_negative=False):
        """Remove ``quantity`` from on-hand stock.

        Without ``allow_negative`` only available stock can be taken. With it,
        on-hand may drop below the reserved amount or below zero, and the
        reservation is trimmed so it stays covered.
        """
        quantity = self._positive(quantity)
        if not allow_negative and not self.can_supply(quantity):
            raise ValidationError(
                {"quantity": [f"Cannot remove {quantity}: only {self.available_quantity} available"]}
            )

        new_quantity = round_quantity(self.quantity - quantity)
        with atomic_change(self):
            if self.reserved_quantity > max(new_quantity, 0.0):
                logger.warning(
                    "Reservation trimmed by forced decrease",
                    inventory_record_id=str(self.id),
                    reserved=self.reserved_quantity,
                    new_quantity=new_quantity,
                )
                self.reserved_quantity = max(new_quantity, 0.0)
            self._stamp(new_quantity, adjusted_by)

    def _stamp(self, new_quantity, adjusted_by):
        now = datetime.now(UTC)
        self.quantity = new_quantity
        self.last_adjusted_by = str(adjusted_by) if adjusted_by is not None else None
        self.last_stock_take = now
        self.updated_at = now

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, reserved_by=None):
        """Promise ``quantity`` of available stock to an order."""
        quantity = self._positive(quantity)
        if not self.can_supply(quantity):
            raise ValidationError(
                {"quantity": [f"Cannot reserve {quantity}: only {self.available_quantity} available"]}
            )

        previous = self.reserved_quantity
        self.reserved_quantity = round_quantity(previous + quantity)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockReserved(
                inventory_record_id=str(self.id),
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                previous_reserved=previous,
                new_reserved=self.reserved_quantity,
                new_available=self.available_quantity,
                reserved_by=str(reserved_by) if reserved_by is not None else None,
                reserved_at=self.updated_at,
            )
        )

    def release(self, quantity, released_by=None) -> float:
        """Return reserved stock to available, never going below zero.

        Returns the part of ``quantity`` that exceeded what was reserved.
        """
        quantity = self._positive(quantity)
        previous = self.reserved_quantity
        over_released = round_quantity(max(quantity - previous, 0.0))
        if over_released:
            logger.warning(
                "Reservation over-released",
                inventory_record_id=str(self.id),
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                reserved=previous,
                requested=quantity,
                over_released=over_released,
            )

        self.reserved_quantity = round_quantity(max(previous - quantity, 0.0))
        self.updated_at = datetime.now(UTC)
        self.raise_(
            ReservationReleased(
                inventory_record_id=str(self.id),
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                quantity=quantity,
                previous_reserved=previous,
                new_reserved=self.reserved_quantity,
                over_released=over_released,
                released_by=str(released_by) if released_by is not None else None,
                released_at=self.updated_at,
            )
        )
        return over_released

    # -------------------------------------------------------------------
    # Low stock
    # -------------------------------------------------------------------
    def check_low_stock(self, product):
        """Raise LowStockDetected if on-hand is at or below the product's reorder level."""
        if not product.reorder_level or self.quantity > product.reorder_level:
            return
        self.raise_(
            LowStockDetected(
                inventory_record_id=str(self.id),
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                current_quantity=self.quantity,
                reorder_level=product.reorder_level,
                is_critical=product.is_critical(self.quantity),
                detected_at=datetime.now(UTC),
            )
        )

    @staticmethod
    def _positive(quantity) -> float:
        quantity = round_quantity(quantity)
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
        return quantity



def record_id_for(product_id, warehouse_id) -> str:
    return str(uuid5(RECORD_NAMESPACE, f"{product_id}:{warehouse_id}"))


@inventory.repository(part_of=InventoryRecord)
class InventoryRecordRepository:
    def find_for(self, product_id, warehouse_id) -> InventoryRecord | None:
        """The record for a (product, warehouse) pair, or None if it never held stock."""
        records = self._dao.query.filter(product_id=str(product_id), warehouse_id=str(warehouse_id)).all().items
        return records[0] if records else None

    def for_product(self, product_id) -> list[InventoryRecord]:
        return fetch_all(self._dao.query.filter(product_id=str(product_id)).order_by("id"))

    def all_records(self) -> list[InventoryRecord]:
        return fetch_all(self._dao.query.order_by("id"))
