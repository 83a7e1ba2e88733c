from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.stock import (
    BatchAdjustmentOut,
    StockAdjustmentIn,
    StockAdjustmentOut,
    StockMovementOut,
    StockRecordOut,
    StockTransferIn,
    StockTransferOut,
)
from inventory_ledger.services import (
    adjustment_service,
    product_service,
    stock_store,
    transfer_service,
    warehouse_service,
)

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.post("/adjust", response_model=StockAdjustmentOut)
def adjust_stock(data: StockAdjustmentIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _, movement = adjustment_service.adjust_stock(db, data, user.id)
    # Answer with the committed row, not the in-transaction object
    stock = stock_store.get_stock(db, data.product_id, data.warehouse_id)
    return {"stock": stock, "movement": movement, "message": "Stock adjusted successfully"}


@router.post("/adjust/batch", response_model=BatchAdjustmentOut)
def adjust_stock_batch(
    data: list[StockAdjustmentIn], user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return adjustment_service.adjust_stock_batch(db, data, user.id)


@router.get("/adjustments", response_model=list[StockMovementOut])
def recent_adjustments(
    limit: int = Query(20, ge=1, le=100),
    product_id: str | None = Query(None, alias="productId"),
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    db: Session = Depends(get_db),
):
    return adjustment_service.recent_adjustments(db, limit=limit, product_id=product_id, warehouse_id=warehouse_id)


@router.post("/transfer", response_model=StockTransferOut)
def transfer_stock(data: StockTransferIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return transfer_service.transfer_stock(db, data, user.id)


@router.get("/product/{product_id}", response_model=list[StockRecordOut])
def stock_by_product(product_id: str, db: Session = Depends(get_db)):
    product_service.require_product(db, product_id)
    return stock_store.list_by_product(db, product_id)


@router.get("/warehouse/{warehouse_id}", response_model=list[StockRecordOut])
def stock_by_warehouse(warehouse_id: str, db: Session = Depends(get_db)):
    warehouse_service.require_warehouse(db, warehouse_id)
    return stock_store.list_by_warehouse(db, warehouse_id)


@router.get("/product/{product_id}/warehouse/{warehouse_id}", response_model=StockRecordOut)
def stock_for_pair(product_id: str, warehouse_id: str, db: Session = Depends(get_db)):
    product_service.require_product(db, product_id)
    warehouse_service.require_warehouse(db, warehouse_id)
    return stock_store.get_stock(db, product_id, warehouse_id)
