"""FastAPI routes for the Inventory domain: stock ledger, batches and adjustments.

Thin adapters: writes translate requests into domain commands, reads go
straight to InventoryService queries. The acting user comes from the
gateway headers resolved in ``inventory.api.auth``.
"""

from fastapi import APIRouter, Depends, HTTPException
from protean.utils.globals import current_domain

from inventory.adjustment.adjustment import InventoryAdjustment
from inventory.adjustment.workflow import ApproveAdjustment, CreateAdjustment, RejectAdjustment
from inventory.api.auth import ADJUST, APPROVE_ADJUSTMENT, TRANSFER, Actor, get_actor, require
from inventory.api.schemas import (
    AddStockRequest,
    AdjustmentListResponse,
    AdjustmentResponse,
    BatchIdResponse,
    CreateAdjustmentRequest,
    CreateBatchRequest,
    CreateWarehouseRequest,
    DecisionRequest,
    DeductStockRequest,
    DocumentReferenceSchema,
    ExpireBatchesRequest,
    ExpiredBatchesResponse,
    MovementListResponse,
    MovementResponse,
    ProductIdResponse,
    RegisterProductRequest,
    ReservationRequest,
    StatusResponse,
    StockLevelListResponse,
    StockLevelResponse,
    StockLineListResponse,
    StockLineResponse,
    StockSummaryResponse,
    TransferResponse,
    TransferStockRequest,
    UpdateStockLevelsRequest,
    WarehouseIdResponse,
)
from inventory.batch.management import CreateBatch, ExpireBatches
from inventory.config import get_settings
from inventory.ledger.movement import StockMovement
from inventory.product.management import RegisterProduct, UpdateStockLevels
from inventory.services.inventory_service import InventoryService
from inventory.shared.transaction import retry_on_conflict
from inventory.stock.issuing import DeductStock
from inventory.stock.receiving import AddStock
from inventory.stock.reservation import ReleaseReservation, ReserveStock
from inventory.stock.transfer import TransferStock
from inventory.warehouse.management import CreateWarehouse, DeactivateWarehouse


def _dispatch(command):
    """Process a command synchronously, retrying lost optimistic-version races."""
    return retry_on_conflict(
        lambda: current_domain.process(command, asynchronous=False),
        attempts=get_settings().conflict_retry_attempts,
    )


def _iso(value):
    return value.isoformat() if value else None


def _movement_response(movement) -> MovementResponse:
    reference = None
    if movement.reference:
        reference = DocumentReferenceSchema(
            kind=movement.reference.kind,
            document_id=str(movement.reference.document_id),
        )
    return MovementResponse(
        movement_id=str(movement.id),
        reference_number=movement.reference_number,
        product_id=str(movement.product_id),
        warehouse_id=str(movement.warehouse_id),
        movement_type=movement.movement_type,
        movement_label=movement.label,
        quantity=movement.quantity,
        quantity_before=movement.quantity_before,
        quantity_after=movement.quantity_after,
        unit_cost=movement.unit_cost,
        total_value=movement.total_value,
        batch_id=str(movement.batch_id) if movement.batch_id else None,
        from_warehouse_id=str(movement.from_warehouse_id) if movement.from_warehouse_id else None,
        to_warehouse_id=str(movement.to_warehouse_id) if movement.to_warehouse_id else None,
        reason=movement.reason,
        reference=reference,
        created_by=movement.created_by,
        created_at=_iso(movement.created_at),
    )


def _stock_level_response(record) -> StockLevelResponse:
    return StockLevelResponse(
        product_id=str(record.product_id),
        warehouse_id=str(record.warehouse_id),
        quantity=record.quantity,
        reserved_quantity=record.reserved_quantity,
        available_quantity=record.available_quantity,
        last_adjusted_by=record.last_adjusted_by,
        last_stock_take=_iso(record.last_stock_take),
    )


def _stock_line_response(line) -> StockLineResponse:
    return StockLineResponse(
        **_stock_level_response(line.record).model_dump(),
        product_name=line.product.name,
        sku=line.product.sku,
        unit=line.product.unit,
        reorder_level=line.product.reorder_level,
        critical_level=line.product.critical_level,
        stock_status=line.status,
    )


def _adjustment_response(adjustment) -> AdjustmentResponse:
    return AdjustmentResponse(
        adjustment_id=str(adjustment.id),
        adjustment_number=adjustment.adjustment_number,
        product_id=str(adjustment.product_id),
        warehouse_id=str(adjustment.warehouse_id),
        adjustment_type=adjustment.adjustment_type,
        quantity_change=adjustment.quantity_change,
        quantity_before=adjustment.quantity_before,
        quantity_after=adjustment.quantity_after,
        unit_cost=adjustment.unit_cost,
        total_value_impact=adjustment.total_value_impact,
        reason=adjustment.reason,
        status=adjustment.status,
        created_by=adjustment.created_by,
        approved_by=adjustment.approved_by,
        approved_at=_iso(adjustment.approved_at),
        approval_notes=adjustment.approval_notes,
    )


def _movement_page(**filters) -> MovementListResponse:
    result = InventoryService().get_stock_movements(**filters)
    return MovementListResponse(
        movements=[_movement_response(m) for m in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
    )


def _load_movement(movement_id) -> MovementResponse:
    return _movement_response(current_domain.repository_for(StockMovement).get(movement_id))


def _load_adjustment(adjustment_id) -> AdjustmentResponse:
    return _adjustment_response(current_domain.repository_for(InventoryAdjustment).get(adjustment_id))


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(
        name=body.name,
        sku=body.sku,
        unit=body.unit,
        cost_price=body.cost_price,
        reorder_level=body.reorder_level,
        critical_level=body.critical_level,
    )
    result = _dispatch(command)
    return ProductIdResponse(product_id=result)


@product_router.put("/{product_id}/stock-levels", response_model=StatusResponse)
async def update_stock_levels(product_id: str, body: UpdateStockLevelsRequest) -> StatusResponse:
    command = UpdateStockLevels(
        product_id=product_id,
        reorder_level=body.reorder_level,
        critical_level=body.critical_level,
    )
    _dispatch(command)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Warehouse Router
# ---------------------------------------------------------------------------
warehouse_router = APIRouter(prefix="/warehouses", tags=["warehouses"])


@warehouse_router.post("", status_code=201, response_model=WarehouseIdResponse)
async def create_warehouse(body: CreateWarehouseRequest) -> WarehouseIdResponse:
    command = CreateWarehouse(name=body.name, code=body.code, location=body.location)
    result = _dispatch(command)
    return WarehouseIdResponse(warehouse_id=result)


@warehouse_router.put("/{warehouse_id}/deactivate", response_model=StatusResponse)
async def deactivate_warehouse(warehouse_id: str) -> StatusResponse:
    _dispatch(DeactivateWarehouse(warehouse_id=warehouse_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Inventory Router: stock levels and movements
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.get("", response_model=StockLineListResponse)
async def list_inventory(
    warehouse_id: str | None = None,
    search: str | None = None,
    status: str | None = None,
    sort_by: str = "product_name",
    sort_order: str = "asc",
    page: int = 1,
    per_page: int = 15,
) -> StockLineListResponse:
    result = InventoryService().list_inventory(
        warehouse_id=warehouse_id,
        search=search,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        per_page=per_page,
    )
    return StockLineListResponse(
        items=[_stock_line_response(line) for line in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
    )


@inventory_router.get("/movements", response_model=MovementListResponse)
async def list_movements(
    product_id: str | None = None,
    warehouse_id: str | None = None,
    movement_type: str | None = None,
    page: int = 1,
    per_page: int = 15,
) -> MovementListResponse:
    return _movement_page(
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        page=page,
        per_page=per_page,
    )


@inventory_router.get("/products/{product_id}", response_model=StockSummaryResponse)
async def get_product_stock(product_id: str) -> StockSummaryResponse:
    service = InventoryService()
    return StockSummaryResponse(
        product_id=product_id,
        total_quantity=service.get_total_stock(product_id),
        available_quantity=service.get_available_stock(product_id),
        warehouses=[_stock_level_response(r) for r in service.get_stock_by_warehouse(product_id)],
    )


@inventory_router.get("/products/{product_id}/warehouses/{warehouse_id}", response_model=StockLevelResponse)
async def get_stock_level(product_id: str, warehouse_id: str) -> StockLevelResponse:
    record = InventoryService().get_stock_level(product_id, warehouse_id)
    if record is None:
        raise HTTPException(status_code=404, detail="No inventory record for this product and warehouse")
    return _stock_level_response(record)


@inventory_router.get("/products/{product_id}/movements", response_model=MovementListResponse)
async def get_stock_movements(
    product_id: str,
    warehouse_id: str | None = None,
    movement_type: str | None = None,
    page: int = 1,
    per_page: int = 15,
) -> MovementListResponse:
    return _movement_page(
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        page=page,
        per_page=per_page,
    )


@inventory_router.get("/low-stock", response_model=StockLevelListResponse)
async def get_low_stock() -> StockLevelListResponse:
    return StockLevelListResponse(records=[_stock_level_response(r) for r in InventoryService().get_low_stock()])


@inventory_router.get("/critical-stock", response_model=StockLevelListResponse)
async def get_critical_stock() -> StockLevelListResponse:
    return StockLevelListResponse(records=[_stock_level_response(r) for r in InventoryService().get_critical_stock()])


@inventory_router.post("/receipts", status_code=201, response_model=MovementResponse)
async def add_stock(body: AddStockRequest, actor: Actor = Depends(get_actor)) -> MovementResponse:
    command = AddStock(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        quantity=body.quantity,
        unit_cost=body.unit_cost,
        movement_type=body.movement_type,
        reason=body.reason,
        reference_kind=body.reference.kind if body.reference else None,
        reference_id=body.reference.document_id if body.reference else None,
        batch_id=body.batch_id,
        user_id=actor.user_id,
    )
    return _load_movement(_dispatch(command))


@inventory_router.post("/issues", status_code=201, response_model=MovementResponse)
async def deduct_stock(body: DeductStockRequest, actor: Actor = Depends(get_actor)) -> MovementResponse:
    command = DeductStock(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        quantity=body.quantity,
        movement_type=body.movement_type,
        reason=body.reason,
        reference_kind=body.reference.kind if body.reference else None,
        reference_id=body.reference.document_id if body.reference else None,
        batch_id=body.batch_id,
        user_id=actor.user_id,
    )
    return _load_movement(_dispatch(command))


@inventory_router.post("/transfers", status_code=201, response_model=TransferResponse)
async def transfer_stock(body: TransferStockRequest, actor: Actor = Depends(require(TRANSFER))) -> TransferResponse:
    command = TransferStock(
        product_id=body.product_id,
        from_warehouse_id=body.from_warehouse_id,
        to_warehouse_id=body.to_warehouse_id,
        quantity=body.quantity,
        reason=body.reason,
        batch_id=body.batch_id,
        user_id=actor.user_id,
    )
    result = _dispatch(command)
    return TransferResponse(out=_load_movement(result["out"]), inbound=_load_movement(result["in"]))


@inventory_router.post("/reservations", response_model=StockLevelResponse)
async def reserve_stock(body: ReservationRequest, actor: Actor = Depends(get_actor)) -> StockLevelResponse:
    command = ReserveStock(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        quantity=body.quantity,
        user_id=actor.user_id,
    )
    _dispatch(command)
    return _stock_level_response(InventoryService().get_stock_level(body.product_id, body.warehouse_id))


@inventory_router.post("/reservations/release", response_model=StockLevelResponse)
async def release_reservation(body: ReservationRequest, actor: Actor = Depends(get_actor)) -> StockLevelResponse:
    command = ReleaseReservation(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        quantity=body.quantity,
        user_id=actor.user_id,
    )
    _dispatch(command)
    return _stock_level_response(InventoryService().get_stock_level(body.product_id, body.warehouse_id))


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------
@inventory_router.post("/batches", status_code=201, response_model=BatchIdResponse)
async def create_batch(body: CreateBatchRequest, actor: Actor = Depends(get_actor)) -> BatchIdResponse:
    command = CreateBatch(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        quantity=body.quantity,
        unit_cost=body.unit_cost,
        production_date=body.production_date,
        expiry_date=body.expiry_date,
        source_kind=body.source.kind if body.source else None,
        source_id=body.source.document_id if body.source else None,
        notes=body.notes,
        user_id=actor.user_id,
    )
    return BatchIdResponse(batch_id=_dispatch(command))


@inventory_router.post("/batches/expire", response_model=ExpiredBatchesResponse)
async def expire_batches(body: ExpireBatchesRequest, actor: Actor = Depends(get_actor)) -> ExpiredBatchesResponse:
    expired = _dispatch(ExpireBatches(as_of=body.as_of, user_id=actor.user_id))
    return ExpiredBatchesResponse(expired=expired or [])


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------
@inventory_router.post("/adjustments", status_code=201, response_model=AdjustmentResponse)
async def create_adjustment(
    body: CreateAdjustmentRequest,
    actor: Actor = Depends(require(ADJUST)),
) -> AdjustmentResponse:
    command = CreateAdjustment(
        product_id=body.product_id,
        warehouse_id=body.warehouse_id,
        adjustment_type=body.adjustment_type,
        quantity_change=body.quantity_change,
        reason=body.reason,
        batch_id=body.batch_id,
        notes=body.notes,
        user_id=actor.user_id,
    )
    return _load_adjustment(_dispatch(command))


@inventory_router.get("/adjustments", response_model=AdjustmentListResponse)
async def list_adjustments(
    product_id: str | None = None,
    warehouse_id: str | None = None,
    status: str | None = None,
    adjustment_type: str | None = None,
) -> AdjustmentListResponse:
    adjustments = InventoryService().get_adjustments(
        product_id=product_id,
        warehouse_id=warehouse_id,
        status=status,
        adjustment_type=adjustment_type,
    )
    return AdjustmentListResponse(adjustments=[_adjustment_response(a) for a in adjustments])


@inventory_router.get("/adjustments/pending", response_model=AdjustmentListResponse)
async def list_pending_adjustments() -> AdjustmentListResponse:
    adjustments = InventoryService().get_pending_adjustments()
    return AdjustmentListResponse(adjustments=[_adjustment_response(a) for a in adjustments])


@inventory_router.get("/adjustments/{adjustment_id}", response_model=AdjustmentResponse)
async def get_adjustment(adjustment_id: str) -> AdjustmentResponse:
    return _load_adjustment(adjustment_id)


@inventory_router.put("/adjustments/{adjustment_id}/approve", response_model=AdjustmentResponse)
async def approve_adjustment(
    adjustment_id: str,
    body: DecisionRequest,
    actor: Actor = Depends(require(APPROVE_ADJUSTMENT)),
) -> AdjustmentResponse:
    _dispatch(ApproveAdjustment(adjustment_id=adjustment_id, notes=body.notes, user_id=actor.user_id))
    return _load_adjustment(adjustment_id)


@inventory_router.put("/adjustments/{adjustment_id}/reject", response_model=AdjustmentResponse)
async def reject_adjustment(
    adjustment_id: str,
    body: DecisionRequest,
    actor: Actor = Depends(require(APPROVE_ADJUSTMENT)),
) -> AdjustmentResponse:
    _dispatch(RejectAdjustment(adjustment_id=adjustment_id, notes=body.notes, user_id=actor.user_id))
    return _load_adjustment(adjustment_id)
