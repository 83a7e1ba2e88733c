from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.schemas.common import Pagination
from inventory_ledger.schemas.stock import LedgerReplay, MovementPage, MovementStats, StockMovementOut
from inventory_ledger.services import ledger_service

router = APIRouter(prefix="/movements", tags=["Movements"])


@router.get("", response_model=MovementPage)
def list_movements(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    product_id: str | None = Query(None, alias="productId"),
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    movement_type: str | None = Query(None, alias="type"),
    reference_type: str | None = Query(None, alias="referenceType"),
    search: str | None = None,
    date_from: date | None = Query(None, alias="dateFrom"),
    date_to: date | None = Query(None, alias="dateTo"),
    db: Session = Depends(get_db),
):
    items, total = ledger_service.list_movements(
        db,
        product_id=product_id,
        warehouse_id=warehouse_id,
        movement_type=movement_type,
        reference_type=reference_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
        page=page,
        limit=limit,
    )
    return {"data": items, "pagination": Pagination.build(page, limit, total)}


@router.get("/stats", response_model=MovementStats)
def movement_stats(
    period: str = "today",
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    db: Session = Depends(get_db),
):
    return ledger_service.movement_stats(db, period=period, warehouse_id=warehouse_id)


@router.get("/replay", response_model=LedgerReplay)
def replay_pair(
    product_id: str = Query(alias="productId"),
    warehouse_id: str = Query(alias="warehouseId"),
    db: Session = Depends(get_db),
):
    return ledger_service.replay(db, product_id, warehouse_id)


@router.get("/{movement_id}", response_model=StockMovementOut)
def get_movement(movement_id: str, db: Session = Depends(get_db)):
    movement = ledger_service.get_movement(db, movement_id)
    if not movement:
        raise errors.NotFound(f"Movement {movement_id} not found")
    return movement
