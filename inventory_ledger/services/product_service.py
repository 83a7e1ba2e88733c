from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from inventory_ledger import errors
from inventory_ledger.models.catalog import Product, Unit
from inventory_ledger.models.stock import StockRecord
from inventory_ledger.schemas.catalog import ProductCreate, ProductUpdate


def _check_parent(db: Session, parent_id: str, product_id: str | None = None) -> Product:
    if product_id and parent_id == product_id:
        raise errors.ValidationError("A product cannot be its own parent")
    parent = get_product(db, parent_id)
    if not parent:
        raise errors.NotFound(f"Parent product {parent_id} not found")
    if not parent.is_bulk:
        raise errors.ValidationError(f"Parent product {parent.sku} is not a bulk product")
    return parent


def _check_unit(db: Session, unit_id: str) -> None:
    if not db.query(Unit).filter(Unit.id == unit_id).first():
        raise errors.NotFound(f"Unit {unit_id} not found")


def create_product(db: Session, data: ProductCreate) -> Product:
    if get_product_by_sku(db, data.sku):
        raise errors.ValidationError(f"SKU {data.sku} already exists")
    if data.parent_id:
        _check_parent(db, data.parent_id)
    if data.unit_id:
        _check_unit(db, data.unit_id)

    # Stock is never set here; it only enters through the ledger
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def get_product(db: Session, product_id: str) -> Product | None:
    return (
        db.query(Product)
        .options(selectinload(Product.stock).selectinload(StockRecord.warehouse))
        .filter(Product.id == product_id)
        .first()
    )


def require_product(db: Session, product_id: str) -> Product:
    product = get_product(db, product_id)
    if not product:
        raise errors.NotFound(f"Product {product_id} not found")
    return product


def get_product_by_sku(db: Session, sku: str) -> Product | None:
    return db.query(Product).filter(Product.sku == sku).first()


def list_products(
    db: Session,
    page: int = 1,
    limit: int = 20,
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    product_type: str | None = None,
) -> tuple[list[Product], int]:
    """``status`` is active/inactive; ``product_type`` is bulk/variant/single."""
    q = db.query(Product)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern), Product.barcode.ilike(pattern)))
    if category:
        q = q.filter(Product.category == category)
    if status == "active":
        q = q.filter(Product.is_active == True)  # noqa: E712
    elif status == "inactive":
        q = q.filter(Product.is_active == False)  # noqa: E712
    if product_type == "bulk":
        q = q.filter(Product.is_bulk == True)  # noqa: E712
    elif product_type == "variant":
        q = q.filter(Product.parent_id.isnot(None))
    elif product_type == "single":
        q = q.filter(Product.is_bulk == False, Product.parent_id.is_(None))  # noqa: E712

    total = q.count()
    items = (
        q.options(selectinload(Product.stock))
        .order_by(Product.created_at.desc(), Product.sku)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def list_variants(db: Session, product_id: str) -> list[Product]:
    require_product(db, product_id)
    return (
        db.query(Product)
        .options(selectinload(Product.stock))
        .filter(Product.parent_id == product_id)
        .order_by(Product.sku)
        .all()
    )


def update_product(db: Session, product_id: str, data: ProductUpdate) -> Product:
    product = require_product(db, product_id)
    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("parent_id"):
        _check_parent(db, update_data["parent_id"], product_id=product.id)
    if update_data.get("unit_id"):
        _check_unit(db, update_data["unit_id"])
    if update_data.get("is_bulk") is False and product.variants:
        raise errors.ValidationError("Product still has variants and must stay bulk")
    for field, value in update_data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def deactivate_product(db: Session, product_id: str) -> Product:
    """Products are soft-deleted so their movements stay resolvable."""
    product = require_product(db, product_id)
    product.is_active = False
    db.commit()
    db.refresh(product)
    return product


def get_low_stock(db: Session) -> list[Product]:
    """Active products whose total stock across warehouses is at or below ``min_stock``."""
    totals = (
        db.query(StockRecord.product_id, func.sum(StockRecord.quantity).label("total"))
        .group_by(StockRecord.product_id)
        .subquery()
    )
    return (
        db.query(Product)
        .outerjoin(totals, totals.c.product_id == Product.id)
        .options(selectinload(Product.stock))
        .filter(Product.is_active == True)  # noqa: E712
        .filter(func.coalesce(totals.c.total, 0) <= Product.min_stock)
        .order_by(Product.sku)
        .all()
    )
