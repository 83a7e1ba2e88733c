import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.catalog import ProductCreate, ProductDetailOut, ProductOut, ProductPage, ProductUpdate
from inventory_ledger.schemas.common import Pagination
from inventory_ledger.schemas.stock import BreakDownIn, BreakDownOut
from inventory_ledger.services import auth_service, breakdown_service, product_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = product_service.create_product(db, data)
    auth_service.log_activity(db, user, "create_product", detail=product.sku)
    logger.info("Created product %s", product.sku)
    return product


@router.get("", response_model=ProductPage)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    search: str | None = None,
    category: str | None = None,
    status: str | None = Query(None, pattern="^(active|inactive)$"),
    product_type: str | None = Query(None, alias="type", pattern="^(bulk|variant|single)$"),
    db: Session = Depends(get_db),
):
    items, total = product_service.list_products(
        db, page=page, limit=limit, search=search, category=category, status=status, product_type=product_type
    )
    return {"data": items, "pagination": Pagination.build(page, limit, total)}


@router.get("/low-stock", response_model=list[ProductOut])
def low_stock(db: Session = Depends(get_db)):
    return product_service.get_low_stock(db)


@router.get("/{product_id}", response_model=ProductDetailOut)
def get_product(product_id: str, db: Session = Depends(get_db)):
    return product_service.require_product(db, product_id)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str, data: ProductUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    product = product_service.update_product(db, product_id, data)
    auth_service.log_activity(db, user, "update_product", detail=product.sku)
    return product


@router.delete("/{product_id}", response_model=ProductOut)
def deactivate_product(product_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = product_service.deactivate_product(db, product_id)
    auth_service.log_activity(db, user, "deactivate_product", detail=product.sku)
    return product


@router.get("/{product_id}/variants", response_model=list[ProductOut])
def list_variants(product_id: str, db: Session = Depends(get_db)):
    return product_service.list_variants(db, product_id)


@router.post("/{product_id}/break-down", response_model=BreakDownOut)
def break_down(
    product_id: str, data: BreakDownIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return breakdown_service.break_down(db, product_id, data, user.id)
