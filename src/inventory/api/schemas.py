"""Pydantic request/response schemas for the Inventory API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import date

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    sku: str
    unit: str | None = None
    cost_price: float = Field(ge=0, default=0.0)
    reorder_level: float = Field(ge=0, default=0.0)
    critical_level: float = Field(ge=0, default=0.0)


class UpdateStockLevelsRequest(BaseModel):
    reorder_level: float | None = Field(ge=0, default=None)
    critical_level: float | None = Field(ge=0, default=None)


class ProductIdResponse(BaseModel):
    product_id: str


class CreateWarehouseRequest(BaseModel):
    name: str
    code: str
    location: str | None = None


class WarehouseIdResponse(BaseModel):
    warehouse_id: str


# ---------------------------------------------------------------------------
# Stock movements
# ---------------------------------------------------------------------------
class DocumentReferenceSchema(BaseModel):
    kind: str
    document_id: str


class AddStockRequest(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: float = Field(gt=0)
    unit_cost: float | None = Field(ge=0, default=None)
    movement_type: str = "stock_in"
    reason: str | None = None
    reference: DocumentReferenceSchema | None = None
    batch_id: str | None = None


class DeductStockRequest(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: float = Field(gt=0)
    movement_type: str = "stock_out"
    reason: str | None = None
    reference: DocumentReferenceSchema | None = None
    batch_id: str | None = None


class TransferStockRequest(BaseModel):
    product_id: str
    from_warehouse_id: str
    to_warehouse_id: str
    quantity: float = Field(gt=0)
    reason: str | None = None
    batch_id: str | None = None


class ReservationRequest(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: float = Field(gt=0)


class MovementResponse(BaseModel):
    movement_id: str
    reference_number: str
    product_id: str
    warehouse_id: str
    movement_type: str
    movement_label: str
    quantity: float
    quantity_before: float
    quantity_after: float
    unit_cost: float | None = None
    total_value: float | None = None
    batch_id: str | None = None
    from_warehouse_id: str | None = None
    to_warehouse_id: str | None = None
    reason: str | None = None
    reference: DocumentReferenceSchema | None = None
    created_by: str | None = None
    created_at: str | None = None


class TransferResponse(BaseModel):
    out: MovementResponse
    inbound: MovementResponse = Field(serialization_alias="in")


class MovementListResponse(BaseModel):
    movements: list[MovementResponse]
    total: int
    page: int
    per_page: int


class StockLevelResponse(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: float
    reserved_quantity: float
    available_quantity: float
    last_adjusted_by: str | None = None
    last_stock_take: str | None = None


class StockSummaryResponse(BaseModel):
    product_id: str
    total_quantity: float
    available_quantity: float
    warehouses: list[StockLevelResponse]


class StockLevelListResponse(BaseModel):
    records: list[StockLevelResponse]


class StockLineResponse(StockLevelResponse):
    product_name: str
    sku: str
    unit: str | None = None
    reorder_level: float
    critical_level: float
    stock_status: str


class StockLineListResponse(BaseModel):
    items: list[StockLineResponse]
    total: int
    page: int
    per_page: int


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------
class CreateBatchRequest(BaseModel):
    product_id: str
    warehouse_id: str
    quantity: float = Field(gt=0)
    unit_cost: float = Field(ge=0, default=0.0)
    production_date: date | None = None
    expiry_date: date | None = None
    source: DocumentReferenceSchema | None = None
    notes: str | None = None


class ExpireBatchesRequest(BaseModel):
    as_of: date | None = None


class BatchIdResponse(BaseModel):
    batch_id: str


class ExpiredBatchesResponse(BaseModel):
    expired: list[str]


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------
class CreateAdjustmentRequest(BaseModel):
    product_id: str
    warehouse_id: str
    adjustment_type: str
    quantity_change: float
    reason: str
    batch_id: str | None = None
    notes: str | None = None


class DecisionRequest(BaseModel):
    notes: str | None = None


class AdjustmentResponse(BaseModel):
    adjustment_id: str
    adjustment_number: str
    product_id: str
    warehouse_id: str
    adjustment_type: str
    quantity_change: float
    quantity_before: float
    quantity_after: float
    unit_cost: float
    total_value_impact: float
    reason: str
    status: str
    created_by: str
    approved_by: str | None = None
    approved_at: str | None = None
    approval_notes: str | None = None


class AdjustmentListResponse(BaseModel):
    adjustments: list[AdjustmentResponse]


class StatusResponse(BaseModel):
    status: str = "ok"
