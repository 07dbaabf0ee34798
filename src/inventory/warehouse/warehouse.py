"""Warehouse aggregate (CQRS): a physical location that holds stock.

Inventory records, ledger entries and batches are all scoped to a warehouse.
A deactivated warehouse keeps its history and can still ship out what it
holds, but it no longer accepts incoming stock.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, String

from inventory.domain import inventory
from inventory.warehouse.events import WarehouseCreated, WarehouseDeactivated


@inventory.aggregate
class Warehouse:
    """A physical location where inventory is stored."""

    name = String(required=True, max_length=255)
    code = String(required=True, max_length=30, unique=True)
    location = String(max_length=255)
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, name, code, location=None):
        """Create a new warehouse."""
        now = datetime.now(UTC)
        warehouse = cls(
            name=name,
            code=code.upper(),
            location=location,
            created_at=now,
            updated_at=now,
        )
        warehouse.raise_(
            WarehouseCreated(
                warehouse_id=str(warehouse.id),
                name=name,
                code=warehouse.code,
                created_at=now,
            )
        )
        return warehouse

    def deactivate(self):
        """Deactivate the warehouse."""
        if not self.is_active:
            raise ValidationError({"warehouse": ["Warehouse is already inactive"]})
        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(
            WarehouseDeactivated(
                warehouse_id=str(self.id),
                deactivated_at=self.updated_at,
            )
        )

    def ensure_accepts_stock(self):
        if not self.is_active:
            raise ValidationError({"warehouse_id": [f"Warehouse {self.name} is inactive and cannot receive stock"]})
