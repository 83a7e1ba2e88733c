from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.models.catalog import Unit
from inventory_ledger.schemas.catalog import UnitCreate, UnitUpdate


def create_unit(db: Session, data: UnitCreate) -> Unit:
    if db.query(Unit).filter(Unit.code == data.code).first():
        raise errors.ValidationError(f"Unit code {data.code} already exists")
    unit = Unit(code=data.code, name=data.name, is_discrete=data.is_discrete)
    db.add(unit)
    db.commit()
    db.refresh(unit)
    return unit


def get_unit(db: Session, unit_id: str) -> Unit | None:
    return db.query(Unit).filter(Unit.id == unit_id).first()


def list_units(db: Session) -> list[Unit]:
    return db.query(Unit).order_by(Unit.name).all()


def update_unit(db: Session, unit_id: str, data: UnitUpdate) -> Unit:
    unit = get_unit(db, unit_id)
    if not unit:
        raise errors.NotFound(f"Unit {unit_id} not found")
    update_data = data.model_dump(exclude_unset=True)
    if "code" in update_data and update_data["code"] != unit.code:
        if db.query(Unit).filter(Unit.code == update_data["code"]).first():
            raise errors.ValidationError(f"Unit code {update_data['code']} already exists")
    for field, value in update_data.items():
        setattr(unit, field, value)
    db.commit()
    db.refresh(unit)
    return unit
