"""Product reference data (CQRS).

The ledger needs a product's display name for error messages, its cost price
to value outbound movements, and its reorder and critical levels to flag low
stock. Catalogue ownership of products lives elsewhere; this aggregate keeps
only what inventory reads.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String

from inventory.domain import inventory


@inventory.aggregate
class Product:
    """A stockable item as seen by inventory."""

    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100, unique=True)
    unit = String(max_length=20, default="pcs")
    cost_price = Float(default=0.0, min_value=0.0)
    reorder_level = Float(default=0.0, min_value=0.0)
    critical_level = Float(default=0.0, min_value=0.0)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def critical_level_must_not_exceed_reorder_level(self):
        if (self.critical_level or 0) > (self.reorder_level or 0):
            raise ValidationError({"critical_level": ["Critical level cannot exceed reorder level"]})

    @classmethod
    def register(cls, name, sku, cost_price=0.0, unit="pcs", reorder_level=0.0, critical_level=0.0):
        now = datetime.now(UTC)
        return cls(
            name=name,
            sku=sku,
            unit=unit,
            cost_price=cost_price,
            reorder_level=reorder_level,
            critical_level=critical_level,
            created_at=now,
            updated_at=now,
        )

    def update_stock_levels(self, reorder_level=None, critical_level=None):
        """Change the thresholds used by low/critical stock reporting."""
        with atomic_change(self):
            if reorder_level is not None:
                self.reorder_level = reorder_level
            if critical_level is not None:
                self.critical_level = critical_level
            self.updated_at = datetime.now(UTC)

    def is_low(self, quantity) -> bool:
        return self.critical_level < quantity <= self.reorder_level

    def is_critical(self, quantity) -> bool:
        return quantity <= self.critical_level
