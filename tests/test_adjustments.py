import pytest

from inventory_ledger import errors
from inventory_ledger.models.stock import MovementType, ReferenceType, StockMovement
from inventory_ledger.schemas.catalog import WarehouseUpdate
from inventory_ledger.schemas.stock import StockAdjustmentIn
from inventory_ledger.services import adjustment_service, ledger_service, stock_store, warehouse_service


def _adjustment(product, warehouse, kind, quantity, reason="Recount", notes=None):
    return StockAdjustmentIn(
        product_id=product.id,
        warehouse_id=warehouse.id,
        adjustment_type=kind,
        quantity=quantity,
        reason=reason,
        notes=notes,
    )


def test_subtract_damaged_goods(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 100)

    record, movement = adjustment_service.adjust_stock(
        db, _adjustment(product, warehouse, "subtract", 30, reason="Damaged Goods")
    )

    assert record.quantity == 70
    assert movement.quantity_before == 100
    assert movement.quantity_change == -30
    assert movement.quantity_after == 70
    assert movement.movement_type == MovementType.ADJUSTMENT
    assert movement.reference_type == ReferenceType.ADJUSTMENT
    assert movement.reference_number.startswith("ADJ-")
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 70


def test_subtract_more_than_available_fails(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)

    with pytest.raises(errors.InsufficientStock) as exc_info:
        adjustment_service.adjust_stock(db, _adjustment(product, warehouse, "subtract", 50))

    assert exc_info.value.available == 10
    assert exc_info.value.requested == 50
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 10
    assert db.query(StockMovement).count() == 1


def test_set_records_the_difference(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)

    record, movement = adjustment_service.adjust_stock(db, _adjustment(product, warehouse, "set", 4))

    assert record.quantity == 4
    assert movement.quantity_change == -6


def test_set_to_zero_goes_through_the_floor_check(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)

    record, movement = adjustment_service.adjust_stock(db, _adjustment(product, warehouse, "set", 0))

    assert record.quantity == 0
    assert movement.quantity_change == -10


def test_notes_combine_reason_and_notes(db, product, warehouse):
    _, movement = adjustment_service.adjust_stock(
        db, _adjustment(product, warehouse, "add", 5, reason="Found in storage", notes="behind shelf B")
    )
    assert movement.notes == "Found in storage: behind shelf B"


def test_unknown_product_is_not_found(db, product, warehouse):
    data = _adjustment(product, warehouse, "add", 1)
    data.product_id = "missing"
    with pytest.raises(errors.NotFound):
        adjustment_service.adjust_stock(db, data)


def test_inactive_warehouse_is_rejected(db, product, warehouse, second_warehouse):
    warehouse_service.update_warehouse(db, second_warehouse.id, WarehouseUpdate(is_active=False))
    with pytest.raises(errors.ValidationError):
        adjustment_service.adjust_stock(db, _adjustment(product, second_warehouse, "add", 1))


def test_destructive_reason_moves_stock_to_rejected_warehouse(db, product, warehouse, rejected_warehouse, stock_up):
    stock_up(product.id, warehouse.id, 20)

    _, movement = adjustment_service.adjust_stock(
        db, _adjustment(product, warehouse, "subtract", 5, reason="Expired")
    )

    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 15
    assert stock_store.get_stock(db, product.id, rejected_warehouse.id).quantity == 5
    credit = (
        db.query(StockMovement)
        .filter(StockMovement.warehouse_id == rejected_warehouse.id)
        .one()
    )
    assert credit.movement_type == MovementType.IN
    assert credit.reference_type == ReferenceType.TRANSFER
    assert credit.reference_number == movement.reference_number
    assert credit.notes == "Transferred from Main Store (Expired)"


def test_ordinary_reason_does_not_divert(db, product, warehouse, rejected_warehouse, stock_up):
    stock_up(product.id, warehouse.id, 20)

    adjustment_service.adjust_stock(db, _adjustment(product, warehouse, "subtract", 5, reason="Recount"))

    assert stock_store.get_stock(db, product.id, rejected_warehouse.id).quantity == 0


def test_batch_items_succeed_or_fail_independently(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)

    result = adjustment_service.adjust_stock_batch(
        db,
        [
            _adjustment(product, warehouse, "subtract", 4),
            _adjustment(product, warehouse, "subtract", 50),
            _adjustment(product, warehouse, "add", 1),
        ],
    )

    assert result["message"] == "Processed 3 adjustments: 2 succeeded, 1 failed"
    statuses = [r["status"] for r in result["results"]]
    assert statuses == ["success", "failed", "success"]
    assert result["results"][1]["error"]["kind"] == "InsufficientStock"
    assert result["results"][2]["quantity_after"] == 7
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 7


def test_recent_adjustments_only_lists_adjustments(db, product, warehouse, second_warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)
    adjustment_service.adjust_stock(db, _adjustment(product, warehouse, "subtract", 2))

    recent = adjustment_service.recent_adjustments(db, warehouse_id=warehouse.id)

    assert len(recent) == 2
    assert all(m.reference_type == ReferenceType.ADJUSTMENT for m in recent)
    assert adjustment_service.recent_adjustments(db, warehouse_id=second_warehouse.id) == []


def test_stock_never_negative_and_replays_after_mixed_operations(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 5)
    for kind, qty in [("subtract", 3), ("subtract", 4), ("add", 8), ("set", 2), ("subtract", 2), ("subtract", 1)]:
        try:
            adjustment_service.adjust_stock(db, _adjustment(product, warehouse, kind, qty))
        except errors.InsufficientStock:
            pass
        assert stock_store.get_stock(db, product.id, warehouse.id).quantity >= 0

    replay = ledger_service.replay(db, product.id, warehouse.id)
    assert replay["consistent"]
    assert replay["replayed_quantity"] == 0
