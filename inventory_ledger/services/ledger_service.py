"""Append-only movement ledger: recording, querying, aggregating and replaying."""

import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, joinedload

from inventory_ledger import errors
from inventory_ledger.database import utcnow
from inventory_ledger.models.catalog import Product
from inventory_ledger.models.stock import MovementType, ReferenceType, StockMovement, StockRecord

PERIODS = ("today", "week", "month")


def new_reference_number(prefix: str) -> str:
    ts = utcnow().strftime("%Y%m%d%H%M%S")
    short = uuid.uuid4().hex[:6].upper()
    return f"{prefix}-{ts}-{short}"


def record(db: Session, movement: StockMovement) -> StockMovement:
    if movement.quantity_after != movement.quantity_before + movement.quantity_change:
        raise errors.ValidationError(
            f"Movement does not balance: {movement.quantity_before} + {movement.quantity_change}"
            f" != {movement.quantity_after}"
        )
    if movement.movement_type not in MovementType.ALL:
        raise errors.ValidationError(f"Unknown movement type '{movement.movement_type}'")
    if movement.reference_type not in ReferenceType.ALL:
        raise errors.ValidationError(f"Unknown reference type '{movement.reference_type}'")
    db.add(movement)
    db.flush()
    return movement


def get_movement(db: Session, movement_id: str) -> StockMovement | None:
    return (
        db.query(StockMovement)
        .options(joinedload(StockMovement.product), joinedload(StockMovement.warehouse))
        .filter(StockMovement.id == movement_id)
        .first()
    )


def list_movements(
    db: Session,
    *,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    movement_type: str | None = None,
    reference_type: str | None = None,
    search: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[StockMovement], int]:
    """Newest first. ``date_to`` includes the whole day."""
    if date_from and date_to and date_from > date_to:
        raise errors.ValidationError("dateFrom must not be after dateTo")

    q = db.query(StockMovement)
    if product_id:
        q = q.filter(StockMovement.product_id == product_id)
    if warehouse_id:
        q = q.filter(StockMovement.warehouse_id == warehouse_id)
    if movement_type and movement_type != "all":
        q = q.filter(StockMovement.movement_type == movement_type)
    if reference_type:
        q = q.filter(StockMovement.reference_type == reference_type)
    if date_from:
        q = q.filter(StockMovement.created_at >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        end = datetime.combine(date_to, datetime.min.time()) + timedelta(days=1)
        q = q.filter(StockMovement.created_at < end)
    if search:
        pattern = f"%{search}%"
        q = q.join(Product, Product.id == StockMovement.product_id).filter(
            or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                StockMovement.reference_number.ilike(pattern),
            )
        )

    total = q.count()
    items = (
        q.options(joinedload(StockMovement.product), joinedload(StockMovement.warehouse))
        .order_by(StockMovement.created_at.desc(), StockMovement.sequence.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def period_start(period: str, now: datetime | None = None) -> datetime:
    now = now or utcnow()
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    raise errors.ValidationError(f"Unknown period '{period}', expected one of: {', '.join(PERIODS)}")


def movement_stats(
    db: Session, period: str = "today", warehouse_id: str | None = None, now: datetime | None = None
) -> dict:
    """Aggregate the ledger over a window. Always computed, never cached."""
    start = period_start(period, now)
    q = db.query(
        func.coalesce(
            func.sum(case((StockMovement.movement_type == MovementType.IN, StockMovement.quantity_change), else_=0)),
            0,
        ),
        func.coalesce(
            func.sum(case((StockMovement.movement_type == MovementType.OUT, -StockMovement.quantity_change), else_=0)),
            0,
        ),
        func.coalesce(func.sum(case((StockMovement.movement_type == MovementType.ADJUSTMENT, 1), else_=0)), 0),
        func.coalesce(func.sum(StockMovement.quantity_change), 0),
        func.count(StockMovement.id),
    ).filter(StockMovement.created_at >= start)
    if warehouse_id:
        q = q.filter(StockMovement.warehouse_id == warehouse_id)
    total_in, total_out, total_adjustments, net_change, count = q.one()

    return {
        "period": period,
        "total_in": int(total_in),
        "total_out": int(total_out),
        "total_adjustments": int(total_adjustments),
        "net_change": int(net_change),
        "movement_count": int(count),
    }


def replay(db: Session, product_id: str, warehouse_id: str) -> dict:
    """Fold the pair's movements in sequence order starting from zero.

    The chain is broken when a movement's ``quantity_before`` differs from the
    previous ``quantity_after``; the replay is consistent when the chain is
    whole and ends at the stored quantity.
    """
    movements = (
        db.query(StockMovement)
        .filter(StockMovement.product_id == product_id, StockMovement.warehouse_id == warehouse_id)
        .order_by(StockMovement.sequence.asc())
        .all()
    )
    quantity = 0
    broken_at = None
    for m in movements:
        if broken_at is None and m.quantity_before != quantity:
            broken_at = m.sequence
        quantity += m.quantity_change

    stored = (
        db.query(StockRecord.quantity)
        .filter(StockRecord.product_id == product_id, StockRecord.warehouse_id == warehouse_id)
        .scalar()
    ) or 0

    return {
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "movement_count": len(movements),
        "replayed_quantity": quantity,
        "stored_quantity": stored,
        "consistent": broken_at is None and quantity == stored,
        "broken_at_sequence": broken_at,
    }
