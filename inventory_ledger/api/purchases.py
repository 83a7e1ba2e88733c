from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.database import get_db
from inventory_ledger.models.purchase import PurchaseStatus
from inventory_ledger.models.user import User
from inventory_ledger.schemas.purchase import PurchaseCreate, PurchaseOut, PurchaseReceive
from inventory_ledger.services import purchase_service

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.post("", response_model=PurchaseOut, status_code=201)
def create_purchase(data: PurchaseCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return purchase_service.create_purchase(db, data, user.id)


@router.get("", response_model=list[PurchaseOut])
def list_purchases(
    skip: int = 0,
    limit: int = 100,
    status: PurchaseStatus | None = None,
    db: Session = Depends(get_db),
):
    return purchase_service.list_purchases(db, skip=skip, limit=limit, status=status)


@router.get("/{po_id}", response_model=PurchaseOut)
def get_purchase(po_id: str, db: Session = Depends(get_db)):
    return purchase_service.require_purchase(db, po_id)


@router.post("/{po_id}/approve", response_model=PurchaseOut)
def approve_purchase(po_id: str, db: Session = Depends(get_db)):
    return purchase_service.approve_purchase(db, po_id)


@router.post("/{po_id}/receive", response_model=PurchaseOut)
def receive_items(
    po_id: str, data: PurchaseReceive, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return purchase_service.receive_items(db, po_id, data, user.id)


@router.post("/{po_id}/complete", response_model=PurchaseOut)
def complete_purchase(po_id: str, db: Session = Depends(get_db)):
    return purchase_service.complete_purchase(db, po_id)


@router.post("/{po_id}/cancel", response_model=PurchaseOut)
def cancel_purchase(po_id: str, db: Session = Depends(get_db)):
    return purchase_service.cancel_purchase(db, po_id)
