"""InventoryBatch aggregate (CQRS): optional lot and expiry tracking.

A batch is a strictly decreasing sub-ledger layered on top of an
InventoryRecord: it starts at its initial quantity and only ever gives stock
away. Stock that comes back enters as a fresh batch.
"""

from datetime import UTC, date, datetime, timedelta
from enum import Enum

import structlog
from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, Identifier, String, Text, ValueObject

from inventory.batch.events import BatchCreated, BatchDepleted, BatchExpired
from inventory.domain import inventory
from inventory.shared.document_reference import DocumentReference
from inventory.shared.precision import line_value, round_quantity

logger = structlog.get_logger(__name__)


class BatchStatus(Enum):
    ACTIVE = "active"
    DEPLETED = "depleted"
    EXPIRED = "expired"
    QUARANTINE = "quarantine"


@inventory.aggregate
class InventoryBatch:
    """A lot of one product received into one warehouse."""

    batch_number = String(required=True, max_length=30, unique=True)
    product_id = Identifier(required=True)
    warehouse_id = Identifier(required=True)
    production_date = Date()
    expiry_date = Date()
    initial_quantity = Float(required=True, min_value=0.0)
    current_quantity = Float(default=0.0, min_value=0.0)
    unit_cost = Float(default=0.0, min_value=0.0)
    source = ValueObject(DocumentReference)
    status = String(max_length=20, choices=BatchStatus, default=BatchStatus.ACTIVE.value)
    notes = Text()
    created_by = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def current_quantity_within_initial(self):
        if not 0 <= (self.current_quantity or 0.0) <= (self.initial_quantity or 0.0):
            raise ValidationError({"current_quantity": ["Current quantity must be between 0 and initial quantity"]})

    @invariant.post
    def expiry_not_before_production(self):
        if self.production_date and self.expiry_date and self.expiry_date < self.production_date:
            raise ValidationError({"expiry_date": ["Expiry date cannot be before production date"]})

    @classmethod
    def create(
        cls,
        batch_number,
        product_id,
        warehouse_id,
        quantity,
        unit_cost=0.0,
        production_date=None,
        expiry_date=None,
        source=None,
        notes=None,
        created_by=None,
    ):
        quantity = round_quantity(quantity)
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

        now = datetime.now(UTC)
        batch = cls(
            batch_number=batch_number,
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            production_date=production_date,
            expiry_date=expiry_date,
            initial_quantity=quantity,
            current_quantity=quantity,
            unit_cost=unit_cost or 0.0,
            source=source,
            notes=notes,
            created_by=str(created_by) if created_by is not None else None,
            created_at=now,
            updated_at=now,
        )
        batch.raise_(
            BatchCreated(
                batch_id=str(batch.id),
                batch_number=batch_number,
                product_id=batch.product_id,
                warehouse_id=batch.warehouse_id,
                quantity=quantity,
                unit_cost=batch.unit_cost,
                expiry_date=expiry_date,
                created_at=now,
            )
        )
        return batch

    @property
    def has_stock(self) -> bool:
        return (self.current_quantity or 0.0) > 0

    @property
    def total_value(self) -> float:
        return line_value(self.current_quantity or 0.0, self.unit_cost or 0.0)

    def is_expired(self, as_of: date | None = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (as_of or date.today())

    def expires_within(self, days, as_of: date | None = None) -> bool:
        """True if an active batch expires between ``as_of`` and ``as_of + days``."""
        if self.expiry_date is None or self.status != BatchStatus.ACTIVE.value:
            return False
        today = as_of or date.today()
        return today <= self.expiry_date <= today + timedelta(days=days)

    def belongs_to(self, product_id, warehouse_id=None) -> bool:
        if str(self.product_id) != str(product_id):
            return False
        return warehouse_id is None or str(self.warehouse_id) == str(warehouse_id)

    def deduct_quantity(self, amount) -> float:
        """Take ``amount`` from the batch, clamped at zero.

        Returns the part of ``amount`` the batch could not cover.
        """
        amount = round_quantity(amount)
        if amount <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

        uncovered = round_quantity(max(amount - self.current_quantity, 0.0))
        if uncovered:
            logger.warning(
                "Batch deduction exceeds remaining quantity",
                batch_number=self.batch_number,
                remaining=self.current_quantity,
                requested=amount,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.current_quantity = round_quantity(max(self.current_quantity - amount, 0.0))
            self.updated_at = now
            if self.current_quantity == 0 and self.status == BatchStatus.ACTIVE.value:
                self.status = BatchStatus.DEPLETED.value
                self.raise_(
                    BatchDepleted(
                        batch_id=str(self.id),
                        batch_number=self.batch_number,
                        product_id=str(self.product_id),
                        warehouse_id=str(self.warehouse_id),
                        depleted_at=now,
                    )
                )
        return uncovered

    def mark_expired(self):
        if self.status != BatchStatus.ACTIVE.value:
            raise ValidationError({"status": [f"Cannot expire a batch in status '{self.status}'"]})

        self.status = BatchStatus.EXPIRED.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            BatchExpired(
                batch_id=str(self.id),
                batch_number=self.batch_number,
                product_id=str(self.product_id),
                warehouse_id=str(self.warehouse_id),
                remaining_quantity=self.current_quantity,
                expiry_date=self.expiry_date,
                expired_at=self.updated_at,
            )
        )
