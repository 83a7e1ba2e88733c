from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.models.opname import OpnameStatus
from inventory_ledger.models.user import User
from inventory_ledger.schemas.common import Pagination
from inventory_ledger.schemas.opname import (
    OpnameCreate,
    OpnameDetailOut,
    OpnameFinalizeOut,
    OpnameItemsUpdate,
    OpnamePage,
)
from inventory_ledger.services import opname_service

router = APIRouter(prefix="/opname", tags=["Stock Opname"])


@router.get("", response_model=OpnamePage)
def list_opname(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    status: OpnameStatus | None = None,
    db: Session = Depends(get_db),
):
    items, total = opname_service.list_opname(db, page=page, limit=limit, warehouse_id=warehouse_id, status=status)
    return {"data": items, "pagination": Pagination.build(page, limit, total)}


@router.post("", response_model=OpnameDetailOut, status_code=201)
def create_opname(data: OpnameCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return opname_service.create_opname(db, data, user.id)


@router.get("/{opname_id}", response_model=OpnameDetailOut)
def get_opname(opname_id: str, db: Session = Depends(get_db)):
    return opname_service.require_opname(db, opname_id)


@router.put("/{opname_id}/items", response_model=OpnameDetailOut)
def update_items(
    opname_id: str, data: OpnameItemsUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return opname_service.update_items(db, opname_id, data)


@router.post("/{opname_id}/finalize", response_model=OpnameFinalizeOut)
def finalize_opname(opname_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return opname_service.finalize_opname(db, opname_id, user.id)
