from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import require_admin
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.catalog import WarehouseCreate, WarehouseOut, WarehouseSummaryOut, WarehouseUpdate
from inventory_ledger.services import auth_service, warehouse_service

router = APIRouter(prefix="/warehouses", tags=["Warehouses"])


@router.get("", response_model=list[WarehouseSummaryOut])
def list_warehouses(db: Session = Depends(get_db)):
    return warehouse_service.list_warehouses(db)


@router.post("", response_model=WarehouseOut, status_code=201)
def create_warehouse(data: WarehouseCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    warehouse = warehouse_service.create_warehouse(db, data)
    auth_service.log_activity(db, admin, "create_warehouse", detail=warehouse.code)
    return warehouse


@router.get("/{warehouse_id}", response_model=WarehouseOut)
def get_warehouse(warehouse_id: str, db: Session = Depends(get_db)):
    return warehouse_service.require_warehouse(db, warehouse_id)


@router.patch("/{warehouse_id}", response_model=WarehouseOut)
def update_warehouse(
    warehouse_id: str, data: WarehouseUpdate, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    warehouse = warehouse_service.update_warehouse(db, warehouse_id, data)
    auth_service.log_activity(db, admin, "update_warehouse", detail=warehouse.code)
    return warehouse


@router.put("/{warehouse_id}/set-default", response_model=WarehouseOut)
def set_default(warehouse_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    warehouse = warehouse_service.set_default(db, warehouse_id)
    auth_service.log_activity(db, admin, "set_default_warehouse", detail=warehouse.code)
    return warehouse


@router.delete("/{warehouse_id}", response_model=WarehouseOut)
def deactivate_warehouse(warehouse_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    warehouse = warehouse_service.deactivate_warehouse(db, warehouse_id)
    auth_service.log_activity(db, admin, "deactivate_warehouse", detail=warehouse.code)
    return warehouse
