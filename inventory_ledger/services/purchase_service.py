import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inventory_ledger import errors
from inventory_ledger.models.purchase import PurchaseOrder, PurchaseOrderItem, PurchaseStatus
from inventory_ledger.models.stock import MovementType, ReferenceType
from inventory_ledger.schemas.purchase import PurchaseCreate, PurchaseReceive
from inventory_ledger.services import ledger_service, product_service, stock_store, warehouse_service

logger = logging.getLogger(__name__)


def create_purchase(db: Session, data: PurchaseCreate, user_id: str | None = None) -> PurchaseOrder:
    warehouse_service.require_active_warehouse(db, data.warehouse_id)
    po = PurchaseOrder(
        number=ledger_service.new_reference_number("PO"),
        supplier=data.supplier,
        warehouse_id=data.warehouse_id,
        notes=data.notes,
        status=PurchaseStatus.PENDING,
        created_by=user_id,
    )
    db.add(po)
    db.flush()

    for item_data in data.items:
        product = product_service.require_product(db, item_data.product_id)
        db.add(
            PurchaseOrderItem(
                purchase_order_id=po.id,
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                quantity_ordered=item_data.quantity_ordered,
                unit_cost=item_data.unit_cost,
            )
        )

    db.commit()
    db.refresh(po)
    logger.info("Created purchase order %s with %d items", po.number, len(data.items))
    return po


def get_purchase(db: Session, po_id: str) -> PurchaseOrder | None:
    return (
        db.query(PurchaseOrder)
        .options(selectinload(PurchaseOrder.items))
        .filter(PurchaseOrder.id == po_id)
        .first()
    )


def require_purchase(db: Session, po_id: str) -> PurchaseOrder:
    po = get_purchase(db, po_id)
    if not po:
        raise errors.NotFound(f"Purchase order {po_id} not found")
    return po


def _lock_purchase(db: Session, po_id: str) -> PurchaseOrder:
    """Re-read the order and its lines under row locks for the rest of the transaction."""
    po = db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.id == po_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not po:
        raise errors.NotFound(f"Purchase order {po_id} not found")
    # Refreshes the lines in the identity map, so po.items sees committed receipts
    db.execute(
        select(PurchaseOrderItem)
        .where(PurchaseOrderItem.purchase_order_id == po.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    return po


def list_purchases(
    db: Session, skip: int = 0, limit: int = 100, status: PurchaseStatus | None = None
) -> list[PurchaseOrder]:
    q = db.query(PurchaseOrder).options(selectinload(PurchaseOrder.items))
    if status:
        q = q.filter(PurchaseOrder.status == status)
    return q.order_by(PurchaseOrder.created_at.desc()).offset(skip).limit(limit).all()


def _transition(db: Session, po_id: str, allowed: tuple, target: PurchaseStatus, verb: str) -> PurchaseOrder:
    po = _lock_purchase(db, po_id)
    if po.status not in allowed:
        raise errors.ValidationError(f"Cannot {verb} purchase order in '{po.status.value}' status")
    po.status = target
    db.commit()
    db.refresh(po)
    logger.info("Purchase order %s is now %s", po.number, target.value)
    return po


def approve_purchase(db: Session, po_id: str) -> PurchaseOrder:
    return _transition(db, po_id, (PurchaseStatus.PENDING,), PurchaseStatus.APPROVED, "approve")


def complete_purchase(db: Session, po_id: str) -> PurchaseOrder:
    return _transition(db, po_id, (PurchaseStatus.RECEIVING,), PurchaseStatus.COMPLETED, "complete")


def cancel_purchase(db: Session, po_id: str) -> PurchaseOrder:
    """Cancelling keeps whatever was already received in stock."""
    return _transition(
        db,
        po_id,
        (PurchaseStatus.PENDING, PurchaseStatus.APPROVED, PurchaseStatus.RECEIVING),
        PurchaseStatus.CANCELLED,
        "cancel",
    )


def _receive(db: Session, po_id: str, data: PurchaseReceive, user_id: str | None) -> int:
    po = _lock_purchase(db, po_id)
    if po.status not in (PurchaseStatus.APPROVED, PurchaseStatus.RECEIVING):
        raise errors.ValidationError(f"Cannot receive items for purchase order in '{po.status.value}' status")
    warehouse_service.require_active_warehouse(db, po.warehouse_id)

    po.status = PurchaseStatus.RECEIVING
    item_map = {item.id: item for item in po.items}
    received = 0
    for recv in data.items:
        item = item_map.get(recv.item_id)
        if not item:
            raise errors.NotFound(f"Purchase order item {recv.item_id} not found")
        outstanding = item.quantity_ordered - item.quantity_received
        if recv.quantity_received > outstanding:
            raise errors.ValidationError(
                f"Cannot receive {recv.quantity_received} of {item.sku}: only {outstanding} outstanding"
            )
        if recv.quantity_received == 0:
            continue

        item.quantity_received += recv.quantity_received
        received += recv.quantity_received
        stock_store.apply_delta(
            db,
            item.product_id,
            po.warehouse_id,
            recv.quantity_received,
            movement_type=MovementType.IN,
            reference_type=ReferenceType.PURCHASE,
            reference_number=po.number,
            reference_id=po.id,
            notes=f"[PO {po.number}] Received {recv.quantity_received}"
            + (f" from {po.supplier}" if po.supplier else ""),
            created_by=user_id,
        )
    return received


def receive_items(db: Session, po_id: str, data: PurchaseReceive, user_id: str | None = None) -> PurchaseOrder:
    """Book a receipt: quantities add to what was already received, up to the ordered amount."""
    received = stock_store.run_atomic(db, _receive, po_id, data, user_id)
    po = require_purchase(db, po_id)
    logger.info("Received %d units on purchase order %s", received, po.number)
    return po
