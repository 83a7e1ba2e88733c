"""Convert bulk stock into its variant, e.g. one case into 24 cans."""

import logging
from decimal import ROUND_FLOOR, Decimal

from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.models.catalog import Product
from inventory_ledger.models.stock import MovementType, ReferenceType, StockRecord
from inventory_ledger.schemas.stock import BreakDownIn
from inventory_ledger.services import ledger_service, product_service, stock_store, warehouse_service

logger = logging.getLogger(__name__)


def credited_quantity(quantity: int, ratio: Decimal, discrete: bool) -> tuple[int, Decimal]:
    """Variant units credited for ``quantity`` bulk units, and the exact value.

    Discrete units must come out whole. Measured units are floored so a
    breakdown never credits more than the bulk stock holds.
    """
    exact = Decimal(quantity) * Decimal(ratio)
    whole = exact.to_integral_value(rounding=ROUND_FLOOR)
    if whole != exact and discrete:
        raise errors.ValidationError(
            f"Breaking down {quantity} at ratio {ratio.normalize():f} gives {exact.normalize():f},"
            " which is not a whole number of units"
        )
    return int(whole), exact


def _resolve_warehouse(db: Session, bulk: Product, warehouse_id: str | None, quantity: int) -> str:
    if warehouse_id:
        return warehouse_service.require_active_warehouse(db, warehouse_id).id

    default = warehouse_service.get_default_warehouse(db)
    if default and stock_store.get_stock(db, bulk.id, default.id).quantity > 0:
        return default.id

    richest = (
        db.query(StockRecord)
        .filter(StockRecord.product_id == bulk.id, StockRecord.quantity > 0)
        .order_by(StockRecord.quantity.desc())
        .first()
    )
    if not richest:
        raise errors.InsufficientStock(
            available=0, requested=quantity, message="No warehouse stock found for bulk product"
        )
    return richest.warehouse_id


def _break_down(db: Session, bulk_id: str, data: BreakDownIn, user_id: str | None) -> dict:
    bulk = product_service.require_product(db, bulk_id)
    if not bulk.is_bulk:
        raise errors.ValidationError(f"Product {bulk.sku} is not a bulk product")
    variant = product_service.get_product(db, data.target_variant_id)
    if not variant:
        raise errors.NotFound(f"Variant {data.target_variant_id} not found")
    if variant.parent_id != bulk.id:
        raise errors.ValidationError(f"Product {variant.sku} is not a variant of {bulk.sku}")

    credit, exact = credited_quantity(data.quantity, variant.conversion_ratio, variant.unit_is_discrete)
    if credit <= 0:
        raise errors.ValidationError("Breakdown would credit no variant units")

    warehouse_id = _resolve_warehouse(db, bulk, data.warehouse_id, data.quantity)
    for product_id in sorted((bulk.id, variant.id)):
        stock_store.lock_stock(db, product_id, warehouse_id)

    reference_number = ledger_service.new_reference_number("BRK")
    bulk_record, _ = stock_store.apply_delta(
        db,
        bulk.id,
        warehouse_id,
        -data.quantity,
        movement_type=MovementType.OUT,
        reference_type=ReferenceType.BREAKDOWN,
        reference_number=reference_number,
        notes=f"Broken down into {credit} x {variant.sku}",
        created_by=user_id,
    )
    notes = f"Broken down from {data.quantity} x {bulk.sku} (ratio {variant.conversion_ratio.normalize():f})"
    if exact != credit:
        notes += f", exact {exact.normalize():f}"
    variant_record, _ = stock_store.apply_delta(
        db,
        variant.id,
        warehouse_id,
        credit,
        movement_type=MovementType.IN,
        reference_type=ReferenceType.BREAKDOWN,
        reference_number=reference_number,
        notes=notes,
        created_by=user_id,
    )
    return {
        "message": f"Broke down {data.quantity} {bulk.name} into {credit} {variant.name}",
        "reference_number": reference_number,
        "warehouse_id": warehouse_id,
        "quantity_credited": credit,
        "bulk_quantity_after": bulk_record.quantity,
        "variant_quantity_after": variant_record.quantity,
    }


def break_down(db: Session, bulk_id: str, data: BreakDownIn, user_id: str | None = None) -> dict:
    result = stock_store.run_atomic(db, _break_down, bulk_id, data, user_id)
    logger.info(
        "Broke down %d of %s into %d of %s at %s [%s]",
        data.quantity,
        bulk_id,
        result["quantity_credited"],
        data.target_variant_id,
        result["warehouse_id"],
        result["reference_number"],
    )
    return result
