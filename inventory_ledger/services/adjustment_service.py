"""Manual stock corrections: add, subtract or set a quantity with a reason.

Reasons listed in ``settings.DESTRUCTIVE_REASONS`` (damaged, expired, ...)
also move the removed units into the active rejected warehouse, so they stay
accounted for instead of disappearing from the books.
"""

import logging

from sqlalchemy.orm import Session, joinedload

from inventory_ledger import errors
from inventory_ledger.config import settings
from inventory_ledger.models.catalog import WarehouseType
from inventory_ledger.models.stock import MovementType, ReferenceType, StockMovement
from inventory_ledger.schemas.stock import StockAdjustmentIn
from inventory_ledger.services import ledger_service, product_service, stock_store, warehouse_service

logger = logging.getLogger(__name__)


def compute_delta(adjustment_type: str, quantity: int, current: int) -> int:
    if adjustment_type == "add":
        return quantity
    if adjustment_type == "subtract":
        return -quantity
    if adjustment_type == "set":
        return quantity - current
    raise errors.ValidationError(f"Unknown adjustment type '{adjustment_type}'")


def is_destructive(reason: str) -> bool:
    reason = reason.lower()
    return any(r.lower() in reason for r in settings.destructive_reasons)


def _adjust(db: Session, data: StockAdjustmentIn, user_id: str | None):
    product_service.require_product(db, data.product_id)
    warehouse = warehouse_service.require_active_warehouse(db, data.warehouse_id)

    current = stock_store.locked_quantity(db, data.product_id, data.warehouse_id)
    delta = compute_delta(data.adjustment_type, data.quantity, current)
    if current + delta < 0:
        raise errors.InsufficientStock(available=current, requested=-delta)

    reference_number = ledger_service.new_reference_number("ADJ")
    notes = f"{data.reason}: {data.notes}" if data.notes else data.reason
    record, movement = stock_store.apply_delta(
        db,
        data.product_id,
        data.warehouse_id,
        delta,
        movement_type=MovementType.ADJUSTMENT,
        reference_type=ReferenceType.ADJUSTMENT,
        reference_number=reference_number,
        notes=notes,
        created_by=user_id,
        expected_before=current,
    )

    if delta < 0 and is_destructive(data.reason) and warehouse.type != WarehouseType.REJECTED:
        rejected = warehouse_service.get_rejected_warehouse(db)
        if rejected and rejected.id != warehouse.id:
            stock_store.apply_delta(
                db,
                data.product_id,
                rejected.id,
                -delta,
                movement_type=MovementType.IN,
                reference_type=ReferenceType.TRANSFER,
                reference_number=reference_number,
                notes=f"Transferred from {warehouse.name} ({data.reason})",
                created_by=user_id,
            )
    return record, movement


def adjust_stock(db: Session, data: StockAdjustmentIn, user_id: str | None = None):
    """Apply one adjustment and return ``(stock_record, movement)``."""
    record, movement = stock_store.run_atomic(db, _adjust, data, user_id)
    logger.info(
        "Adjusted stock %s@%s %d -> %d (%s) [%s]",
        data.product_id,
        data.warehouse_id,
        movement.quantity_before,
        movement.quantity_after,
        data.adjustment_type,
        movement.reference_number,
    )
    return record, movement


def adjust_stock_batch(db: Session, items: list[StockAdjustmentIn], user_id: str | None = None) -> dict:
    """Each item commits or fails on its own; one failure does not undo the others."""
    if not items:
        return {"message": "No adjustments provided", "results": []}
    results = []
    succeeded = 0
    for index, item in enumerate(items):
        entry = {"index": index, "product_id": item.product_id, "warehouse_id": item.warehouse_id}
        try:
            _, movement = adjust_stock(db, item, user_id)
        except errors.InventoryError as e:
            logger.info("Batch adjustment item %d failed: %s", index, e.message)
            entry.update(status="failed", error={"kind": e.kind, "message": e.message})
        else:
            succeeded += 1
            entry.update(status="success", movement_id=movement.id, quantity_after=movement.quantity_after)
        results.append(entry)

    failed = len(items) - succeeded
    return {
        "message": f"Processed {len(items)} adjustments: {succeeded} succeeded, {failed} failed",
        "results": results,
    }


def recent_adjustments(
    db: Session, limit: int = 20, product_id: str | None = None, warehouse_id: str | None = None
) -> list[StockMovement]:
    q = db.query(StockMovement).filter(StockMovement.reference_type == ReferenceType.ADJUSTMENT)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    if warehouse_id:
        q = q.filter(StockMovement.warehouse_id == warehouse_id)
    return (
        q.options(joinedload(StockMovement.product), joinedload(StockMovement.warehouse))
        .order_by(StockMovement.created_at.desc())
        .limit(limit)
        .all()
    )
