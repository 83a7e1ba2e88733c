from sqlalchemy import func
from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.models.catalog import Warehouse, WarehouseType
from inventory_ledger.models.stock import StockRecord
from inventory_ledger.schemas.catalog import WarehouseCreate, WarehouseUpdate


def _clear_default(db: Session, keep_id: str | None = None) -> None:
    q = db.query(Warehouse).filter(Warehouse.is_default == True)  # noqa: E712
    if keep_id:
        q = q.filter(Warehouse.id != keep_id)
    for wh in q.all():
        wh.is_default = False


def create_warehouse(db: Session, data: WarehouseCreate) -> Warehouse:
    if db.query(Warehouse).filter(Warehouse.code == data.code).first():
        raise errors.ValidationError(f"Warehouse code {data.code} already exists")
    if data.is_default:
        _clear_default(db)
    warehouse = Warehouse(**data.model_dump())
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


def get_warehouse(db: Session, warehouse_id: str) -> Warehouse | None:
    return db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()


def require_warehouse(db: Session, warehouse_id: str) -> Warehouse:
    warehouse = get_warehouse(db, warehouse_id)
    if not warehouse:
        raise errors.NotFound(f"Warehouse {warehouse_id} not found")
    return warehouse


def require_active_warehouse(db: Session, warehouse_id: str) -> Warehouse:
    warehouse = require_warehouse(db, warehouse_id)
    if not warehouse.is_active:
        raise errors.ValidationError(f"Warehouse {warehouse.name} is inactive")
    return warehouse


def get_default_warehouse(db: Session) -> Warehouse | None:
    return (
        db.query(Warehouse)
        .filter(Warehouse.is_default == True, Warehouse.is_active == True)  # noqa: E712
        .first()
    )


def get_rejected_warehouse(db: Session) -> Warehouse | None:
    return (
        db.query(Warehouse)
        .filter(Warehouse.type == WarehouseType.REJECTED, Warehouse.is_active == True)  # noqa: E712
        .first()
    )


def list_warehouses(db: Session) -> list[dict]:
    """Warehouses with how many products they hold and their total units."""
    totals = {
        row.warehouse_id: (row.product_count, row.total_stock)
        for row in db.query(
            StockRecord.warehouse_id,
            func.count(func.distinct(StockRecord.product_id)).label("product_count"),
            func.coalesce(func.sum(StockRecord.quantity), 0).label("total_stock"),
        )
        .group_by(StockRecord.warehouse_id)
        .all()
    }
    result = []
    for wh in db.query(Warehouse).order_by(Warehouse.created_at.desc()).all():
        product_count, total_stock = totals.get(wh.id, (0, 0))
        result.append(
            {
                "id": wh.id,
                "code": wh.code,
                "name": wh.name,
                "type": wh.type,
                "address": wh.address,
                "phone": wh.phone,
                "is_default": wh.is_default,
                "is_active": wh.is_active,
                "created_at": wh.created_at,
                "updated_at": wh.updated_at,
                "product_count": int(product_count),
                "total_stock": int(total_stock),
            }
        )
    return result


def update_warehouse(db: Session, warehouse_id: str, data: WarehouseUpdate) -> Warehouse:
    warehouse = require_warehouse(db, warehouse_id)
    update_data = data.model_dump(exclude_unset=True)
    if "code" in update_data and update_data["code"] != warehouse.code:
        if db.query(Warehouse).filter(Warehouse.code == update_data["code"]).first():
            raise errors.ValidationError(f"Warehouse code {update_data['code']} already exists")
    if update_data.get("is_default"):
        _clear_default(db, keep_id=warehouse.id)
    if update_data.get("is_active") is False and warehouse.is_default:
        raise errors.ValidationError("Cannot deactivate the default warehouse")
    for field, value in update_data.items():
        setattr(warehouse, field, value)
    db.commit()
    db.refresh(warehouse)
    return warehouse


def set_default(db: Session, warehouse_id: str) -> Warehouse:
    warehouse = require_active_warehouse(db, warehouse_id)
    _clear_default(db, keep_id=warehouse.id)
    warehouse.is_default = True
    db.commit()
    db.refresh(warehouse)
    return warehouse


def deactivate_warehouse(db: Session, warehouse_id: str) -> Warehouse:
    """Warehouses are never deleted: their ledger history references them."""
    warehouse = require_warehouse(db, warehouse_id)
    if warehouse.is_default:
        raise errors.ValidationError("Cannot deactivate the default warehouse")
    warehouse.is_active = False
    db.commit()
    db.refresh(warehouse)
    return warehouse
