from decimal import Decimal

from sqlalchemy.orm import Session, selectinload

from inventory_ledger.models.catalog import Product
from inventory_ledger.models.stock import StockMovement, StockRecord
from inventory_ledger.services import ledger_service


def inventory_summary(db: Session) -> dict:
    products = (
        db.query(Product).options(selectinload(Product.stock)).filter(Product.is_active == True).all()  # noqa: E712
    )
    total_units = sum(p.current_stock for p in products)
    total_value = sum((p.current_stock * p.cost_price for p in products), Decimal("0"))
    low_stock = [p for p in products if p.current_stock <= p.min_stock]

    return {
        "total_products": len(products),
        "total_units": total_units,
        "total_value": total_value,
        "low_stock_count": len(low_stock),
        "low_stock": [
            {"id": p.id, "sku": p.sku, "name": p.name, "current_stock": p.current_stock, "min_stock": p.min_stock}
            for p in low_stock
        ],
        "by_category": _group_by_category(products),
    }


def _group_by_category(products: list[Product]) -> list[dict]:
    cats: dict[str, dict] = {}
    for p in products:
        cat = p.category or "Uncategorized"
        if cat not in cats:
            cats[cat] = {"category": cat, "product_count": 0, "total_units": 0, "total_value": Decimal("0")}
        cats[cat]["product_count"] += 1
        cats[cat]["total_units"] += p.current_stock
        cats[cat]["total_value"] += p.current_stock * p.cost_price
    return sorted(cats.values(), key=lambda c: c["category"])


def ledger_check(db: Session) -> dict:
    """Replay every pair that has stock or history and collect the ones that disagree."""
    pairs = {
        (row.product_id, row.warehouse_id)
        for row in db.query(StockRecord.product_id, StockRecord.warehouse_id).all()
    }
    pairs |= {
        (row.product_id, row.warehouse_id)
        for row in db.query(StockMovement.product_id, StockMovement.warehouse_id).distinct().all()
    }
    mismatches = []
    for product_id, warehouse_id in sorted(pairs):
        result = ledger_service.replay(db, product_id, warehouse_id)
        if not result["consistent"]:
            mismatches.append(result)
    return {"checked": len(pairs), "mismatches": mismatches}
