from datetime import datetime
from typing import Literal

from pydantic import Field

from inventory_ledger.schemas.common import CamelModel, Pagination, ProductRef, WarehouseRef

AdjustmentType = Literal["add", "subtract", "set"]


# --- Stock records ---

class StockRecordOut(CamelModel):
    id: str | None = None
    product_id: str
    warehouse_id: str
    quantity: int
    updated_at: datetime | None = None
    product: ProductRef | None = None
    warehouse: WarehouseRef | None = None


# --- Movements ---

class StockMovementOut(CamelModel):
    id: str
    product_id: str
    warehouse_id: str
    movement_type: str
    reference_type: str
    reference_id: str | None = None
    reference_number: str | None = None
    quantity_before: int
    quantity_change: int
    quantity_after: int
    sequence: int
    notes: str | None = None
    created_by: str | None = None
    created_at: datetime
    product: ProductRef | None = None
    warehouse: WarehouseRef | None = None


class MovementPage(CamelModel):
    data: list[StockMovementOut]
    pagination: Pagination


class MovementStats(CamelModel):
    period: str
    total_in: int
    total_out: int
    total_adjustments: int
    net_change: int
    movement_count: int


class LedgerReplay(CamelModel):
    product_id: str
    warehouse_id: str
    movement_count: int
    replayed_quantity: int
    stored_quantity: int
    consistent: bool
    broken_at_sequence: int | None = None


class LedgerCheck(CamelModel):
    checked: int
    mismatches: list[LedgerReplay]


# --- Adjustments ---

class StockAdjustmentIn(CamelModel):
    product_id: str = Field(min_length=1)
    warehouse_id: str = Field(min_length=1)
    adjustment_type: AdjustmentType
    quantity: int = Field(ge=0)
    reason: str = Field(min_length=1, max_length=500)
    notes: str | None = Field(default=None, max_length=1000)


class StockAdjustmentOut(CamelModel):
    stock: StockRecordOut
    movement: StockMovementOut
    message: str


class BatchItemError(CamelModel):
    kind: str
    message: str


class BatchItemResult(CamelModel):
    index: int
    product_id: str
    warehouse_id: str
    status: Literal["success", "failed"]
    movement_id: str | None = None
    quantity_after: int | None = None
    error: BatchItemError | None = None


class BatchAdjustmentOut(CamelModel):
    message: str
    results: list[BatchItemResult]


# --- Transfers ---

class StockTransferIn(CamelModel):
    product_id: str = Field(min_length=1)
    from_warehouse_id: str = Field(min_length=1)
    to_warehouse_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    notes: str | None = Field(default=None, max_length=500)


class StockTransferOut(CamelModel):
    message: str
    transfer_ref: str
    source_quantity_after: int
    destination_quantity_after: int


# --- Breakdown ---

class BreakDownIn(CamelModel):
    quantity: int = Field(ge=1)
    target_variant_id: str = Field(min_length=1)
    warehouse_id: str | None = None


class BreakDownOut(CamelModel):
    message: str
    reference_number: str
    warehouse_id: str
    quantity_credited: int
    bulk_quantity_after: int
    variant_quantity_after: int
