from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inventory_ledger.database import get_db
from inventory_ledger.schemas.report import InventorySummary
from inventory_ledger.schemas.stock import LedgerCheck
from inventory_ledger.services import report_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/inventory", response_model=InventorySummary)
def inventory_report(db: Session = Depends(get_db)):
    return report_service.inventory_summary(db)


@router.get("/ledger-check", response_model=LedgerCheck)
def ledger_check(db: Session = Depends(get_db)):
    return report_service.ledger_check(db)
