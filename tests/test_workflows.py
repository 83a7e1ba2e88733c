from decimal import Decimal

import pytest

from inventory_ledger import errors
from inventory_ledger.models.opname import OpnameStatus
from inventory_ledger.models.purchase import PurchaseStatus
from inventory_ledger.models.stock import MovementType, ReferenceType, StockMovement
from inventory_ledger.schemas.opname import OpnameCreate, OpnameItemCount, OpnameItemsUpdate
from inventory_ledger.schemas.purchase import PurchaseCreate, PurchaseItemCreate, PurchaseItemReceive, PurchaseReceive
from inventory_ledger.schemas.sale import CartLine, CheckoutIn, ReturnIn, ReturnLine
from inventory_ledger.schemas.stock import StockAdjustmentIn
from inventory_ledger.services import (
    adjustment_service,
    ledger_service,
    opname_service,
    purchase_service,
    sales_service,
    stock_store,
)


# --- Stock opname ---

def _count(opname, quantities):
    items = {item.product_id: item for item in opname.items}
    return OpnameItemsUpdate(
        items=[OpnameItemCount(id=items[pid].id, physical_qty=qty) for pid, qty in quantities.items()]
    )


def test_opname_snapshots_and_books_differences(db, product, bulk_product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)
    stock_up(bulk_product.id, warehouse.id, 4)

    opname = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    assert opname.number.startswith("OP-")
    assert opname.status == OpnameStatus.COUNTING
    snapshot = {item.product_id: item.system_qty for item in opname.items}
    assert snapshot == {product.id: 10, bulk_product.id: 4}

    opname = opname_service.update_items(db, opname.id, _count(opname, {product.id: 8, bulk_product.id: 6}))
    assert {i.product_id: i.difference for i in opname.items} == {product.id: -2, bulk_product.id: 2}

    result = opname_service.finalize_opname(db, opname.id)

    assert result == {
        "message": f"Stock opname {opname.number} finalized",
        "adjusted_items": 2,
        "total_added": 2,
        "total_subtracted": 2,
    }
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 8
    assert stock_store.get_stock(db, bulk_product.id, warehouse.id).quantity == 6
    movements = db.query(StockMovement).filter(StockMovement.reference_type == ReferenceType.OPNAME).all()
    assert {m.reference_number for m in movements} == {opname.number}
    assert opname_service.get_opname(db, opname.id).status == OpnameStatus.FINALIZED


def test_opname_requires_every_item_counted(db, product, bulk_product, warehouse):
    opname = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    opname_service.update_items(db, opname.id, _count(opname, {product.id: 0}))

    with pytest.raises(errors.ValidationError):
        opname_service.finalize_opname(db, opname.id)


def test_finalized_opname_is_read_only(db, product, warehouse):
    opname = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    opname_service.update_items(db, opname.id, _count(opname, {product.id: 0}))
    opname_service.finalize_opname(db, opname.id)

    with pytest.raises(errors.ValidationError):
        opname_service.update_items(db, opname.id, _count(opname, {product.id: 3}))
    with pytest.raises(errors.ValidationError):
        opname_service.finalize_opname(db, opname.id)


def test_opname_fails_whole_when_stock_moved_below_count(db, product, bulk_product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)
    stock_up(bulk_product.id, warehouse.id, 10)
    opname = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    opname_service.update_items(db, opname.id, _count(opname, {product.id: 2, bulk_product.id: 12}))

    # Stock sold after the snapshot: the counted loss of 8 no longer fits
    adjustment_service.adjust_stock(
        db,
        StockAdjustmentIn(
            product_id=product.id, warehouse_id=warehouse.id, adjustment_type="subtract", quantity=5, reason="Sold"
        ),
    )

    with pytest.raises(errors.InsufficientStock):
        opname_service.finalize_opname(db, opname.id)

    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 5
    assert stock_store.get_stock(db, bulk_product.id, warehouse.id).quantity == 10
    assert opname_service.get_opname(db, opname.id).status == OpnameStatus.COUNTING


def test_clashing_opname_number_is_drawn_again(db, product, warehouse, monkeypatch):
    first = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    real_generate = opname_service._generate_number
    drawn = []

    def generate_after_a_clash(session):
        # The first draw repeats a number another session already committed
        drawn.append(first.number if not drawn else real_generate(session))
        return drawn[-1]

    monkeypatch.setattr(opname_service, "_generate_number", generate_after_a_clash)
    second = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))

    assert first.number.endswith("-0001")
    assert second.number.endswith("-0002")
    assert drawn == [first.number, second.number]
    assert len(second.items) == 1
    assert opname_service.list_opname(db)[1] == 2


def test_opname_item_from_other_session_is_not_found(db, product, warehouse):
    opname = opname_service.create_opname(db, OpnameCreate(warehouse_id=warehouse.id))
    with pytest.raises(errors.NotFound):
        opname_service.update_items(
            db, opname.id, OpnameItemsUpdate(items=[OpnameItemCount(id="elsewhere", physical_qty=1)])
        )


# --- Purchasing ---

def _purchase(db, product, warehouse, quantity=10):
    return purchase_service.create_purchase(
        db,
        PurchaseCreate(
            supplier="Acme Beverages",
            warehouse_id=warehouse.id,
            items=[PurchaseItemCreate(product_id=product.id, quantity_ordered=quantity, unit_cost=Decimal("1.20"))],
        ),
    )


def test_purchase_receipts_accumulate_into_stock(db, product, warehouse):
    po = _purchase(db, product, warehouse)
    assert po.status == PurchaseStatus.PENDING
    assert po.total_amount == Decimal("12.00")

    purchase_service.approve_purchase(db, po.id)
    item_id = po.items[0].id
    purchase_service.receive_items(
        db, po.id, PurchaseReceive(items=[PurchaseItemReceive(item_id=item_id, quantity_received=4)])
    )
    po = purchase_service.receive_items(
        db, po.id, PurchaseReceive(items=[PurchaseItemReceive(item_id=item_id, quantity_received=6)])
    )

    assert po.status == PurchaseStatus.RECEIVING
    assert po.items[0].quantity_received == 10
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 10
    receipts = db.query(StockMovement).filter(StockMovement.reference_type == ReferenceType.PURCHASE).all()
    assert len(receipts) == 2
    assert all(m.movement_type == MovementType.IN and m.reference_id == po.id for m in receipts)

    po = purchase_service.complete_purchase(db, po.id)
    assert po.status == PurchaseStatus.COMPLETED


def test_purchase_cannot_receive_beyond_ordered(db, product, warehouse):
    po = _purchase(db, product, warehouse, quantity=5)
    purchase_service.approve_purchase(db, po.id)

    with pytest.raises(errors.ValidationError):
        purchase_service.receive_items(
            db, po.id, PurchaseReceive(items=[PurchaseItemReceive(item_id=po.items[0].id, quantity_received=6)])
        )
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 0


def test_purchase_status_transitions_are_enforced(db, product, warehouse):
    po = _purchase(db, product, warehouse)

    with pytest.raises(errors.ValidationError):
        purchase_service.receive_items(
            db, po.id, PurchaseReceive(items=[PurchaseItemReceive(item_id=po.items[0].id, quantity_received=1)])
        )
    with pytest.raises(errors.ValidationError):
        purchase_service.complete_purchase(db, po.id)

    po = purchase_service.cancel_purchase(db, po.id)
    assert po.status == PurchaseStatus.CANCELLED
    with pytest.raises(errors.ValidationError):
        purchase_service.approve_purchase(db, po.id)


# --- Sales & returns ---

def test_checkout_debits_stock_and_returns_credit_it(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)

    sale = sales_service.checkout(
        db,
        CheckoutIn(
            items=[CartLine(product_id=product.id, quantity=3)],
            payment_method="cash",
            cash_amount=Decimal("10.00"),
            discount_amount=Decimal("0.50"),
        ),
    )

    assert sale.warehouse_id == warehouse.id
    assert sale.total_amount == Decimal("7.50")
    assert sale.final_amount == Decimal("7.00")
    assert sale.change_amount == Decimal("3.00")
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 7

    sale_return = sales_service.create_return(
        db, sale.id, ReturnIn(items=[ReturnLine(sale_item_id=sale.items[0].id, quantity=2)], reason="Dented")
    )

    assert sale_return.total_amount == Decimal("5.00")
    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 9
    assert ledger_service.replay(db, product.id, warehouse.id)["consistent"]

    with pytest.raises(errors.ValidationError):
        sales_service.create_return(
            db, sale.id, ReturnIn(items=[ReturnLine(sale_item_id=sale.items[0].id, quantity=2)])
        )


def test_checkout_is_all_or_nothing(db, product, bulk_product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)
    stock_up(bulk_product.id, warehouse.id, 1)

    with pytest.raises(errors.InsufficientStock):
        sales_service.checkout(
            db,
            CheckoutIn(
                items=[
                    CartLine(product_id=product.id, quantity=2),
                    CartLine(product_id=bulk_product.id, quantity=5, price=Decimal("20.00")),
                ],
                payment_method="card",
            ),
        )

    assert stock_store.get_stock(db, product.id, warehouse.id).quantity == 10
    assert stock_store.get_stock(db, bulk_product.id, warehouse.id).quantity == 1
    assert sales_service.list_transactions(db)[1] == 0


def test_cash_must_cover_amount_due(db, product, warehouse, stock_up):
    stock_up(product.id, warehouse.id, 10)
    with pytest.raises(errors.ValidationError):
        sales_service.checkout(
            db,
            CheckoutIn(
                items=[CartLine(product_id=product.id, quantity=2)],
                payment_method="cash",
                cash_amount=Decimal("1.00"),
            ),
        )
