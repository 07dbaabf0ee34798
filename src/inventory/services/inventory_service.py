"""InventoryService: the only writer of inventory records and the movement ledger.

Every mutating operation runs in one unit of work: it locates or creates the
InventoryRecord, changes its counters, appends a StockMovement capturing the
quantity before and after, and optionally depletes a batch. A failure at any
step rolls the whole operation back, including both legs of a transfer.

The acting user is passed explicitly to each call; the adjustment approval
threshold and the document-number generator are fixed at construction.
"""

from datetime import date
from typing import NamedTuple
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.adjustment.adjustment import AdjustmentStatus, InventoryAdjustment, parse_adjustment_type
from inventory.batch.batch import BatchStatus, InventoryBatch
from inventory.config import get_settings
from inventory.ledger.movement import MovementType, StockMovement, parse_movement_type
from inventory.product.product import Product
from inventory.shared.document_reference import DocumentKind, DocumentReference
from inventory.shared.errors import InsufficientStockError
from inventory.shared.precision import round_quantity
from inventory.shared.queries import fetch_all
from inventory.shared.references import reference_generator
from inventory.shared.transaction import atomic
from inventory.stock.record import InventoryRecord
from inventory.warehouse.warehouse import Warehouse

logger = structlog.get_logger(__name__)


DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100


class Page(NamedTuple):
    items: list
    total: int
    page: int
    per_page: int


class StockLine(NamedTuple):
    record: InventoryRecord
    product: Product

    @property
    def status(self) -> str:
        quantity = self.record.quantity
        if quantity <= 0:
            return "out_of_stock"
        if self.product.is_critical(quantity):
            return "critical"
        if self.product.is_low(quantity):
            return "low_stock"
        return "in_stock"

    def matches(self, term) -> bool:
        term = term.lower()
        return term in self.product.name.lower() or term in self.product.sku.lower()


# Filters overlap: an empty shelf is also critical, a low one is also in stock
STATUS_FILTERS = {
    "low_stock": lambda product, quantity: product.is_low(quantity),
    "critical": lambda product, quantity: product.is_critical(quantity),
    "out_of_stock": lambda product, quantity: quantity <= 0,
    "in_stock": lambda product, quantity: quantity > 0,
}

SORT_KEYS = {
    "product_name": lambda line: line.product.name.lower(),
    "sku": lambda line: line.product.sku,
    "quantity": lambda line: line.record.quantity,
    "reserved_quantity": lambda line: line.record.reserved_quantity,
    "available_quantity": lambda line: line.record.available_quantity,
}


class InventoryService:
    def __init__(self, approval_threshold=None, references=None):
        if approval_threshold is None:
            approval_threshold = get_settings().adjustment_approval_threshold
        if approval_threshold < 0:
            raise ValidationError({"approval_threshold": ["Approval threshold cannot be negative"]})

        self.approval_threshold = float(approval_threshold)
        self.references = references or reference_generator

    # -------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------
    @property
    def _records(self):
        return current_domain.repository_for(InventoryRecord)

    @property
    def _movements(self):
        return current_domain.repository_for(StockMovement)

    @property
    def _batches(self):
        return current_domain.repository_for(InventoryBatch)

    @property
    def _adjustments(self):
        return current_domain.repository_for(InventoryAdjustment)

    # -------------------------------------------------------------------
    # Stock queries
    # -------------------------------------------------------------------
    def get_stock_level(self, product_id, warehouse_id) -> InventoryRecord | None:
        return self._records.find_for(product_id, warehouse_id)

    def get_stock_by_warehouse(self, product_id) -> list[InventoryRecord]:
        return self._records.for_product(product_id)

    def get_total_stock(self, product_id) -> float:
        """On-hand quantity of a product summed over every warehouse."""
        return round_quantity(sum(r.quantity for r in self._records.for_product(product_id)))

    def get_available_stock(self, product_id, warehouse_id=None) -> float:
        """Unreserved quantity in one warehouse, or across all of them."""
        if warehouse_id is not None:
            record = self._records.find_for(product_id, warehouse_id)
            return record.available_quantity if record else 0.0
        return round_quantity(sum(r.available_quantity for r in self._records.for_product(product_id)))

    def ledger_balance(self, product_id, warehouse_id) -> float:
        return self._movements.ledger_balance(product_id, warehouse_id)

    def get_stock_movements(
        self,
        product_id=None,
        warehouse_id=None,
        movement_type=None,
        since=None,
        until=None,
        page=1,
        per_page=DEFAULT_PAGE_SIZE,
    ) -> Page:
        """A page of ledger entries, newest first.

        Without ``product_id`` this is the ledger across every product.
        """
        page, per_page = self._paging(page, per_page)

        filters = {}
        if product_id is not None:
            filters["product_id"] = str(product_id)
        if warehouse_id is not None:
            filters["warehouse_id"] = str(warehouse_id)
        if movement_type is not None:
            filters["movement_type"] = parse_movement_type(movement_type).value
        if since is not None:
            filters["created_at__gte"] = since
        if until is not None:
            filters["created_at__lte"] = until

        query = self._movements._dao.query
        if filters:
            query = query.filter(**filters)

        results = (
            query.order_by(["-created_at", "-reference_number"]).offset((page - 1) * per_page).limit(per_page).all()
        )
        return Page(items=results.items, total=results.total, page=page, per_page=per_page)

    def list_inventory(
        self,
        warehouse_id=None,
        search=None,
        status=None,
        sort_by="product_name",
        sort_order="asc",
        page=1,
        per_page=DEFAULT_PAGE_SIZE,
    ) -> Page:
        """A page of stock lines across all products, each paired with its product.

        ``search`` matches product name or SKU, case-insensitively. ``status``
        is one of ``low_stock``, ``critical``, ``out_of_stock`` or ``in_stock``.
        """
        page, per_page = self._paging(page, per_page)
        if status is not None and status not in STATUS_FILTERS:
            raise ValidationError({"status": [f"Unknown stock status '{status}'"]})
        if sort_by not in SORT_KEYS:
            raise ValidationError({"sort_by": [f"Cannot sort stock by '{sort_by}'"]})
        if sort_order not in ("asc", "desc"):
            raise ValidationError({"sort_order": ["Sort order must be 'asc' or 'desc'"]})

        query = self._records._dao.query
        if warehouse_id is not None:
            query = query.filter(warehouse_id=str(warehouse_id))

        products = {}
        lines = []
        for record in fetch_all(query.order_by("id")):
            if record.product_id not in products:
                products[record.product_id] = current_domain.repository_for(Product).get(record.product_id)
            line = StockLine(record=record, product=products[record.product_id])
            if search and not line.matches(search):
                continue
            if status is not None and not STATUS_FILTERS[status](line.product, record.quantity):
                continue
            lines.append(line)

        lines.sort(key=SORT_KEYS[sort_by], reverse=sort_order == "desc")
        start = (page - 1) * per_page
        return Page(items=lines[start : start + per_page], total=len(lines), page=page, per_page=per_page)

    @staticmethod
    def _paging(page, per_page):
        if page < 1 or per_page < 1:
            raise ValidationError({"page": ["Page and page size must be positive"]})
        return page, min(per_page, MAX_PAGE_SIZE)

    def get_low_stock(self) -> list[InventoryRecord]:
        """Records at or below their reorder level but still above critical."""
        return self._records_where(lambda product, record: product.is_low(record.quantity))

    def get_critical_stock(self) -> list[InventoryRecord]:
        return self._records_where(lambda product, record: product.is_critical(record.quantity))

    def _records_where(self, predicate):
        products = {}
        matches = []
        for record in self._records.all_records():
            if record.product_id not in products:
                products[record.product_id] = current_domain.repository_for(Product).get(record.product_id)
            if predicate(products[record.product_id], record):
                matches.append(record)
        return matches

    # -------------------------------------------------------------------
    # Stock mutations
    # -------------------------------------------------------------------
    def add_stock(
        self,
        product_id,
        warehouse_id,
        quantity,
        unit_cost,
        movement_type,
        user_id,
        reason=None,
        reference=None,
        batch_id=None,
    ) -> StockMovement:
        """Receive stock into a warehouse and record the inbound movement."""
        movement_type = parse_movement_type(movement_type)
        if not movement_type.is_inbound:
            raise ValidationError({"movement_type": [f"'{movement_type.value}' is not an inbound movement"]})
        quantity = self._positive(quantity)

        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            warehouse.ensure_accepts_stock()
            if batch_id:
                self._batch(batch_id, product)

            movement = self._credit(
                product,
                warehouse,
                quantity,
                unit_cost,
                movement_type,
                user_id,
                reason=reason,
                reference=reference,
                batch_id=batch_id,
            )

        logger.info(
            "Stock added",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=quantity,
            movement_type=movement_type.value,
            reference_number=movement.reference_number,
        )
        return movement

    def deduct_stock(
        self,
        product_id,
        warehouse_id,
        quantity,
        movement_type,
        user_id,
        reason=None,
        reference=None,
        batch_id=None,
        allow_negative=False,
    ) -> StockMovement:
        """Take stock out of a warehouse and record the outbound movement.

        ``allow_negative`` skips the availability check. It exists for callers
        that validated the decrease earlier, such as applying an approved
        adjustment, and is not reachable from commands or the HTTP API.
        """
        movement_type = parse_movement_type(movement_type)
        if movement_type.is_inbound:
            raise ValidationError({"movement_type": [f"'{movement_type.value}' is not an outbound movement"]})
        quantity = self._positive(quantity)

        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            batch = self._batch(batch_id, product, warehouse) if batch_id else None

            movement = self._debit(
                product,
                warehouse,
                quantity,
                movement_type,
                user_id,
                reason=reason,
                reference=reference,
                batch=batch,
                allow_negative=allow_negative,
            )

        logger.info(
            "Stock deducted",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=quantity,
            movement_type=movement_type.value,
            reference_number=movement.reference_number,
        )
        return movement

    def transfer_stock(
        self,
        product_id,
        from_warehouse_id,
        to_warehouse_id,
        quantity,
        user_id,
        reason=None,
        batch_id=None,
    ) -> dict:
        """Move stock between warehouses as one all-or-nothing operation.

        Returns ``{"out": <transfer_out entry>, "in": <transfer_in entry>}``.
        Both entries carry the source and destination warehouse and share a
        stock-transfer reference, so either half leads to the other.
        """
        if str(from_warehouse_id) == str(to_warehouse_id):
            raise ValidationError({"to_warehouse_id": ["Source and destination warehouses must be different"]})
        quantity = self._positive(quantity)

        with atomic():
            product = self._product(product_id)
            source = self._warehouse(from_warehouse_id)
            destination = self._warehouse(to_warehouse_id)
            destination.ensure_accepts_stock()
            batch = self._batch(batch_id, product, source) if batch_id else None

            legs = {
                "reason": reason,
                "reference": DocumentReference.to(DocumentKind.STOCK_TRANSFER, str(uuid4())),
                "from_warehouse_id": str(source.id),
                "to_warehouse_id": str(destination.id),
            }
            outbound = self._debit(product, source, quantity, MovementType.TRANSFER_OUT, user_id, batch=batch, **legs)
            inbound = self._credit(
                product,
                destination,
                quantity,
                product.cost_price,
                MovementType.TRANSFER_IN,
                user_id,
                **legs,
            )

        logger.info(
            "Stock transferred",
            product_id=str(product_id),
            from_warehouse_id=str(from_warehouse_id),
            to_warehouse_id=str(to_warehouse_id),
            quantity=quantity,
        )
        return {"out": outbound, "in": inbound}

    def _credit(
        self,
        product,
        warehouse,
        quantity,
        unit_cost,
        movement_type,
        user_id,
        reason=None,
        reference=None,
        batch_id=None,
        from_warehouse_id=None,
        to_warehouse_id=None,
    ) -> StockMovement:
        record = self._records.find_for(product.id, warehouse.id) or InventoryRecord.open(product.id, warehouse.id)
        quantity_before = record.quantity
        record.increase(quantity, adjusted_by=user_id)

        movement = StockMovement.record(
            reference_number=self.references.generate("SM", StockMovement, "reference_number"),
            product_id=product.id,
            warehouse_id=warehouse.id,
            movement_type=movement_type,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=record.quantity,
            created_by=user_id,
            unit_cost=unit_cost,
            batch_id=batch_id,
            reason=reason,
            reference=reference,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
        )
        self._records.add(record)
        self._movements.add(movement)
        return movement

    def _debit(
        self,
        product,
        warehouse,
        quantity,
        movement_type,
        user_id,
        reason=None,
        reference=None,
        batch=None,
        allow_negative=False,
        unit_cost=None,
        from_warehouse_id=None,
        to_warehouse_id=None,
    ) -> StockMovement:
        record = self._require_record(product, warehouse)
        if not allow_negative and not record.can_supply(quantity):
            raise InsufficientStockError(product.name, quantity, record.available_quantity, warehouse.name)

        quantity_before = record.quantity
        record.decrease(quantity, adjusted_by=user_id, allow_negative=allow_negative)
        record.check_low_stock(product)

        if batch is not None:
            batch.deduct_quantity(quantity)
            self._batches.add(batch)

        movement = StockMovement.record(
            reference_number=self.references.generate("SM", StockMovement, "reference_number"),
            product_id=product.id,
            warehouse_id=warehouse.id,
            movement_type=movement_type,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=record.quantity,
            created_by=user_id,
            unit_cost=product.cost_price if unit_cost is None else unit_cost,
            batch_id=batch.id if batch is not None else None,
            reason=reason,
            reference=reference,
            from_warehouse_id=from_warehouse_id,
            to_warehouse_id=to_warehouse_id,
        )
        self._records.add(record)
        self._movements.add(movement)
        return movement

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve_stock(self, product_id, warehouse_id, quantity, user_id=None) -> InventoryRecord:
        quantity = self._positive(quantity)

        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            record = self._require_record(product, warehouse)
            if not record.can_supply(quantity):
                raise InsufficientStockError(product.name, quantity, record.available_quantity, warehouse.name)

            record.reserve(quantity, reserved_by=user_id)
            self._records.add(record)

        logger.info(
            "Stock reserved",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=quantity,
            reserved=record.reserved_quantity,
        )
        return record

    def release_reservation(self, product_id, warehouse_id, quantity, user_id=None) -> InventoryRecord:
        """Return reserved stock to available.

        Releasing more than is reserved floors the reservation at zero; the
        shortfall is logged and carried on the ReservationReleased event.
        """
        quantity = self._positive(quantity)

        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            record = self._require_record(product, warehouse)
            record.release(quantity, released_by=user_id)
            self._records.add(record)

        logger.info(
            "Reservation released",
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=quantity,
            reserved=record.reserved_quantity,
        )
        return record

    # -------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------
    def create_batch(
        self,
        product_id,
        warehouse_id,
        quantity,
        unit_cost,
        user_id,
        production_date=None,
        expiry_date=None,
        source=None,
        notes=None,
    ) -> InventoryBatch:
        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            batch = InventoryBatch.create(
                batch_number=self.references.generate("BAT", InventoryBatch, "batch_number"),
                product_id=product.id,
                warehouse_id=warehouse.id,
                quantity=quantity,
                unit_cost=unit_cost,
                production_date=production_date,
                expiry_date=expiry_date,
                source=source,
                notes=notes,
                created_by=user_id,
            )
            self._batches.add(batch)

        logger.info(
            "Batch created",
            batch_number=batch.batch_number,
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity=batch.initial_quantity,
        )
        return batch

    def get_expiring_batches(self, days=None, as_of: date | None = None) -> list[InventoryBatch]:
        if days is None:
            days = get_settings().batch_expiry_warning_days
        return [b for b in self._active_batches() if b.expires_within(days, as_of)]

    def expire_batches(self, as_of: date | None = None, user_id=None) -> list[str]:
        """Mark every active batch past its expiry date as expired.

        Each batch is handled on its own; one that cannot be expired is logged
        and skipped. Returns the batch numbers that were expired.
        """
        as_of = as_of or date.today()
        expired = []
        for batch in self._active_batches():
            if not batch.is_expired(as_of):
                continue
            try:
                with atomic():
                    batch.mark_expired()
                    self._batches.add(batch)
                expired.append(batch.batch_number)
            except ValidationError as exc:
                logger.warning(
                    "Failed to expire batch",
                    batch_number=batch.batch_number,
                    error=str(exc),
                )

        if expired:
            logger.info("Expired batches", count=len(expired), as_of=as_of.isoformat(), expired_by=user_id)
        return expired

    def _active_batches(self):
        query = self._batches._dao.query.filter(status=BatchStatus.ACTIVE.value)
        return fetch_all(query.order_by(["created_at", "batch_number"]))

    # -------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------
    def create_adjustment(
        self,
        product_id,
        warehouse_id,
        adjustment_type,
        quantity_change,
        reason,
        user_id,
        batch_id=None,
        notes=None,
    ) -> InventoryAdjustment:
        """Propose a correction and either apply it or queue it for approval.

        Changes below the approval threshold are applied at once with the
        creator stamped as approver. Larger ones wait in ``pending_approval``.
        """
        adjustment_type = parse_adjustment_type(adjustment_type)

        with atomic():
            product = self._product(product_id)
            warehouse = self._warehouse(warehouse_id)
            record = self._require_record(product, warehouse)
            if batch_id:
                self._batch(batch_id, product, warehouse)

            adjustment = InventoryAdjustment.propose(
                adjustment_number=self.references.generate("ADJ", InventoryAdjustment, "adjustment_number"),
                product_id=product.id,
                warehouse_id=warehouse.id,
                adjustment_type=adjustment_type,
                quantity_change=quantity_change,
                quantity_before=record.quantity,
                reason=reason,
                created_by=user_id,
                unit_cost=product.cost_price,
                batch_id=batch_id,
                notes=notes,
            )
            if adjustment.is_decrease and record.quantity < adjustment.magnitude:
                raise InsufficientStockError(product.name, adjustment.magnitude, record.quantity, warehouse.name)

            if adjustment.requires_approval(self.approval_threshold):
                adjustment.submit_for_approval()
            else:
                self._apply_adjustment(adjustment, product, warehouse, user_id)
                adjustment.auto_approve()
            self._adjustments.add(adjustment)

        logger.info(
            "Adjustment created",
            adjustment_number=adjustment.adjustment_number,
            adjustment_type=adjustment.adjustment_type,
            quantity_change=adjustment.quantity_change,
            status=adjustment.status,
            created_by=str(user_id),
        )
        return adjustment

    def approve_adjustment(self, adjustment_id, user_id, notes=None) -> InventoryAdjustment:
        """Approve a pending adjustment and apply its stock change.

        The approver must not be the creator. The decrease was checked
        against stock when the adjustment was created, so it is applied
        even if stock has moved since.
        """
        with atomic():
            adjustment = self._adjustments.get(adjustment_id)
            adjustment.approve(user_id, notes=notes)

            product = self._product(adjustment.product_id)
            warehouse = self._warehouse(adjustment.warehouse_id)
            self._apply_adjustment(adjustment, product, warehouse, user_id)
            self._adjustments.add(adjustment)

        logger.info(
            "Adjustment approved",
            adjustment_number=adjustment.adjustment_number,
            approved_by=str(user_id),
        )
        return adjustment

    def reject_adjustment(self, adjustment_id, user_id, notes=None) -> InventoryAdjustment:
        with atomic():
            adjustment = self._adjustments.get(adjustment_id)
            adjustment.reject(user_id, notes=notes)
            self._adjustments.add(adjustment)

        logger.info(
            "Adjustment rejected",
            adjustment_number=adjustment.adjustment_number,
            rejected_by=str(user_id),
        )
        return adjustment

    def get_adjustments(self, product_id=None, warehouse_id=None, status=None, adjustment_type=None) -> list:
        """Adjustment history, newest first, narrowed by any of the given filters."""
        filters = {}
        if product_id is not None:
            filters["product_id"] = str(product_id)
        if warehouse_id is not None:
            filters["warehouse_id"] = str(warehouse_id)
        if status is not None:
            filters["status"] = AdjustmentStatus(status).value
        if adjustment_type is not None:
            filters["adjustment_type"] = parse_adjustment_type(adjustment_type).value

        query = self._adjustments._dao.query
        if filters:
            query = query.filter(**filters)
        return fetch_all(query.order_by(["-created_at", "-adjustment_number"]))

    def get_pending_adjustments(self) -> list:
        return self.get_adjustments(status=AdjustmentStatus.PENDING_APPROVAL.value)

    def _apply_adjustment(self, adjustment, product, warehouse, user_id) -> StockMovement:
        reference = DocumentReference.to(DocumentKind.INVENTORY_ADJUSTMENT, adjustment.id)
        reason = f"{adjustment.type_label}: {adjustment.reason}"

        if adjustment.is_increase:
            return self._credit(
                product,
                warehouse,
                adjustment.magnitude,
                adjustment.unit_cost,
                MovementType.ADJUSTMENT_IN,
                user_id,
                reason=reason,
                reference=reference,
                batch_id=adjustment.batch_id,
            )

        batch = self._batch(adjustment.batch_id, product, warehouse) if adjustment.batch_id else None
        return self._debit(
            product,
            warehouse,
            adjustment.magnitude,
            MovementType.ADJUSTMENT_OUT,
            user_id,
            reason=reason,
            reference=reference,
            batch=batch,
            allow_negative=True,
            unit_cost=adjustment.unit_cost,
        )

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def _product(self, product_id) -> Product:
        return current_domain.repository_for(Product).get(str(product_id))

    def _warehouse(self, warehouse_id) -> Warehouse:
        return current_domain.repository_for(Warehouse).get(str(warehouse_id))

    def _require_record(self, product, warehouse) -> InventoryRecord:
        record = self._records.find_for(product.id, warehouse.id)
        if record is None:
            raise ObjectNotFoundError(f"No inventory record for {product.name} in {warehouse.name}")
        return record

    def _batch(self, batch_id, product, warehouse=None) -> InventoryBatch:
        batch = self._batches.get(str(batch_id))
        if not batch.belongs_to(product.id, warehouse.id if warehouse is not None else None):
            raise ValidationError({"batch_id": [f"Batch {batch.batch_number} does not hold this product here"]})
        return batch

    @staticmethod
    def _positive(quantity) -> float:
        if quantity is None or round_quantity(quantity) <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
        return round_quantity(quantity)
