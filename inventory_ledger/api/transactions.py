from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.common import Pagination
from inventory_ledger.schemas.sale import CheckoutIn, ReturnIn, ReturnOut, SaleOut, SalePage
from inventory_ledger.services import sales_service

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=SaleOut, status_code=201)
def checkout(data: CheckoutIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return sales_service.checkout(db, data, user.id)


@router.get("", response_model=SalePage)
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    payment_method: str | None = Query(None, alias="paymentMethod"),
    db: Session = Depends(get_db),
):
    items, total = sales_service.list_transactions(
        db, page=page, limit=limit, warehouse_id=warehouse_id, payment_method=payment_method
    )
    return {"data": items, "pagination": Pagination.build(page, limit, total)}


@router.get("/{transaction_id}", response_model=SaleOut)
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    return sales_service.require_transaction(db, transaction_id)


@router.post("/{transaction_id}/returns", response_model=ReturnOut, status_code=201)
def create_return(
    transaction_id: str, data: ReturnIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return sales_service.create_return(db, transaction_id, data, user.id)
