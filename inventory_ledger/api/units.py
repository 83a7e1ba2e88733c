from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.catalog import UnitCreate, UnitOut, UnitUpdate
from inventory_ledger.services import auth_service, unit_service

router = APIRouter(prefix="/units", tags=["Units"])


@router.get("", response_model=list[UnitOut])
def list_units(db: Session = Depends(get_db)):
    return unit_service.list_units(db)


@router.post("", response_model=UnitOut, status_code=201)
def create_unit(data: UnitCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    unit = unit_service.create_unit(db, data)
    auth_service.log_activity(db, user, "create_unit", detail=unit.code)
    return unit


@router.patch("/{unit_id}", response_model=UnitOut)
def update_unit(unit_id: str, data: UnitUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    unit = unit_service.update_unit(db, unit_id, data)
    auth_service.log_activity(db, user, "update_unit", detail=unit.code)
    return unit
