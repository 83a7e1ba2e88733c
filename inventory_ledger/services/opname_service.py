"""Stock opname: count what is physically on the shelf and book the difference."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inventory_ledger import errors
from inventory_ledger.database import utcnow
from inventory_ledger.models.catalog import Product
from inventory_ledger.models.opname import OpnameStatus, StockOpname, StockOpnameItem
from inventory_ledger.models.stock import MovementType, ReferenceType, StockRecord
from inventory_ledger.schemas.opname import OpnameCreate, OpnameItemsUpdate
from inventory_ledger.services import stock_store, warehouse_service

logger = logging.getLogger(__name__)


def _generate_number(db: Session) -> str:
    # Two sessions can pick the same number; the unique column rejects the later one
    prefix = f"OP-{utcnow().strftime('%Y%m%d')}-"
    count = db.query(StockOpname).filter(StockOpname.number.like(f"{prefix}%")).count()
    return f"{prefix}{count + 1:04d}"


def _create(db: Session, data: OpnameCreate, user_id: str | None) -> str:
    warehouse = warehouse_service.require_active_warehouse(db, data.warehouse_id)

    quantities = dict(
        db.query(StockRecord.product_id, StockRecord.quantity)
        .filter(StockRecord.warehouse_id == warehouse.id)
        .all()
    )
    opname = StockOpname(
        number=_generate_number(db),
        warehouse_id=warehouse.id,
        status=OpnameStatus.COUNTING,
        notes=data.notes,
        created_by=user_id,
    )
    db.add(opname)
    db.flush()

    products = db.query(Product).filter(Product.is_active == True).order_by(Product.sku).all()  # noqa: E712
    for product in products:
        db.add(
            StockOpnameItem(
                opname_id=opname.id,
                product_id=product.id,
                system_qty=quantities.get(product.id, 0),
            )
        )
    return opname.id


def create_opname(db: Session, data: OpnameCreate, user_id: str | None = None) -> StockOpname:
    """Open a count session with a system-quantity snapshot of every active product.

    A clash on the session number is retried with a freshly counted number.
    """
    opname_id = stock_store.run_atomic(db, _create, data, user_id)
    opname = require_opname(db, opname_id)
    logger.info(
        "Opened opname %s for %s with %d items", opname.number, opname.warehouse_name, len(opname.items)
    )
    return opname


def get_opname(db: Session, opname_id: str) -> StockOpname | None:
    return (
        db.query(StockOpname)
        .options(selectinload(StockOpname.items).selectinload(StockOpnameItem.product))
        .filter(StockOpname.id == opname_id)
        .first()
    )


def require_opname(db: Session, opname_id: str) -> StockOpname:
    opname = get_opname(db, opname_id)
    if not opname:
        raise errors.NotFound(f"Stock opname {opname_id} not found")
    return opname


def _lock_opname(db: Session, opname_id: str) -> StockOpname:
    """Re-read the session header and its items as committed, header row locked."""
    opname = db.execute(
        select(StockOpname)
        .where(StockOpname.id == opname_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not opname:
        raise errors.NotFound(f"Stock opname {opname_id} not found")
    db.execute(
        select(StockOpnameItem)
        .where(StockOpnameItem.opname_id == opname.id)
        .execution_options(populate_existing=True)
    ).scalars().all()
    return opname


def list_opname(
    db: Session,
    page: int = 1,
    limit: int = 20,
    warehouse_id: str | None = None,
    status: str | None = None,
) -> tuple[list[StockOpname], int]:
    q = db.query(StockOpname)
    if warehouse_id:
        q = q.filter(StockOpname.warehouse_id == warehouse_id)
    if status:
        q = q.filter(StockOpname.status == status)
    total = q.count()
    items = (
        q.options(selectinload(StockOpname.items))
        .order_by(StockOpname.created_at.desc(), StockOpname.number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def _update_items(db: Session, opname_id: str, data: OpnameItemsUpdate) -> None:
    opname = _lock_opname(db, opname_id)
    if opname.status != OpnameStatus.COUNTING:
        raise errors.ValidationError(f"Stock opname {opname.number} is already finalized")

    item_map = {item.id: item for item in opname.items}
    for count in data.items:
        item = item_map.get(count.id)
        if not item:
            raise errors.NotFound(f"Item {count.id} does not belong to stock opname {opname.number}")
        item.physical_qty = count.physical_qty
        item.difference = count.physical_qty - item.system_qty
        item.notes = count.notes


def update_items(db: Session, opname_id: str, data: OpnameItemsUpdate) -> StockOpname:
    stock_store.run_atomic(db, _update_items, opname_id, data)
    return require_opname(db, opname_id)


def _finalize(db: Session, opname_id: str, user_id: str | None) -> dict:
    opname = _lock_opname(db, opname_id)
    if opname.status != OpnameStatus.COUNTING:
        raise errors.ValidationError(f"Stock opname {opname.number} is already finalized")
    uncounted = [i for i in opname.items if i.physical_qty is None]
    if uncounted:
        raise errors.ValidationError(f"{len(uncounted)} items have not been counted yet")

    adjusted = added = subtracted = 0
    for item in sorted(opname.items, key=lambda i: i.product_id):
        if not item.difference:
            continue
        stock_store.apply_delta(
            db,
            item.product_id,
            opname.warehouse_id,
            item.difference,
            movement_type=MovementType.IN if item.difference > 0 else MovementType.OUT,
            reference_type=ReferenceType.OPNAME,
            reference_number=opname.number,
            reference_id=opname.id,
            notes=item.notes or f"Stock opname {opname.number}",
            created_by=user_id,
        )
        adjusted += 1
        if item.difference > 0:
            added += item.difference
        else:
            subtracted += -item.difference

    opname.status = OpnameStatus.FINALIZED
    opname.finalized_at = utcnow()
    return {
        "message": f"Stock opname {opname.number} finalized",
        "adjusted_items": adjusted,
        "total_added": added,
        "total_subtracted": subtracted,
    }


def finalize_opname(db: Session, opname_id: str, user_id: str | None = None) -> dict:
    """Book every counted difference in one transaction."""
    result = stock_store.run_atomic(db, _finalize, opname_id, user_id)
    logger.info(
        "Finalized opname %s: %d items adjusted (+%d/-%d)",
        opname_id,
        result["adjusted_items"],
        result["total_added"],
        result["total_subtracted"],
    )
    return result
