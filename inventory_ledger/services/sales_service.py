"""POS checkout and customer returns, both booked through the stock ledger."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inventory_ledger import errors
from inventory_ledger.database import utcnow
from inventory_ledger.models.sale import PaymentMethod, SaleItem, SaleReturn, SaleReturnItem, SaleTransaction
from inventory_ledger.models.stock import MovementType, ReferenceType
from inventory_ledger.schemas.sale import CheckoutIn, ReturnIn
from inventory_ledger.services import product_service, stock_store, warehouse_service

logger = logging.getLogger(__name__)


def _generate_number(prefix: str) -> str:
    return f"{prefix}-{utcnow().strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"


def _checkout_warehouse(db: Session, warehouse_id: str | None):
    if warehouse_id:
        return warehouse_service.require_active_warehouse(db, warehouse_id)
    warehouse = warehouse_service.get_default_warehouse(db)
    if not warehouse:
        raise errors.ValidationError("No warehouse given and no default warehouse configured")
    return warehouse


def _checkout(db: Session, data: CheckoutIn, user_id: str | None) -> str:
    warehouse = _checkout_warehouse(db, data.warehouse_id)

    lines = []
    total = Decimal("0")
    for line in data.items:
        product = product_service.require_product(db, line.product_id)
        if not product.is_active:
            raise errors.ValidationError(f"Product {product.sku} is inactive")
        price = line.price if line.price is not None else product.selling_price
        subtotal = price * line.quantity
        total += subtotal
        lines.append((product, line.quantity, price, subtotal))

    if data.discount_amount > total:
        raise errors.ValidationError("Discount cannot exceed the transaction total")
    final = total - data.discount_amount
    cash = data.cash_amount if data.cash_amount is not None else final
    if data.payment_method == PaymentMethod.CASH and cash < final:
        raise errors.ValidationError(f"Cash amount {cash} is less than the amount due {final}")
    change = cash - final if data.payment_method == PaymentMethod.CASH else Decimal("0")

    sale = SaleTransaction(
        number=_generate_number("TR"),
        warehouse_id=warehouse.id,
        cashier_id=user_id,
        payment_method=data.payment_method,
        total_amount=total,
        discount_amount=data.discount_amount,
        final_amount=final,
        cash_amount=cash,
        change_amount=change,
        notes=data.notes,
    )
    db.add(sale)
    db.flush()

    for product, quantity, price, subtotal in sorted(lines, key=lambda entry: entry[0].id):
        db.add(
            SaleItem(
                transaction_id=sale.id,
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                quantity=quantity,
                price=price,
                cost_price=product.cost_price,
                subtotal=subtotal,
            )
        )
        stock_store.apply_delta(
            db,
            product.id,
            warehouse.id,
            -quantity,
            movement_type=MovementType.OUT,
            reference_type=ReferenceType.SALE,
            reference_number=sale.number,
            reference_id=sale.id,
            notes=f"Sale {sale.number}",
            created_by=user_id,
        )
    return sale.id


def checkout(db: Session, data: CheckoutIn, user_id: str | None = None) -> SaleTransaction:
    """Every line is debited from one warehouse; the whole sale commits or none of it."""
    sale_id = stock_store.run_atomic(db, _checkout, data, user_id)
    sale = get_transaction(db, sale_id)
    logger.info("Checked out %s: %d lines, final %s", sale.number, len(sale.items), sale.final_amount)
    return sale


def get_transaction(db: Session, transaction_id: str) -> SaleTransaction | None:
    return (
        db.query(SaleTransaction)
        .options(selectinload(SaleTransaction.items))
        .filter(SaleTransaction.id == transaction_id)
        .first()
    )


def require_transaction(db: Session, transaction_id: str) -> SaleTransaction:
    sale = get_transaction(db, transaction_id)
    if not sale:
        raise errors.NotFound(f"Transaction {transaction_id} not found")
    return sale


def list_transactions(
    db: Session,
    page: int = 1,
    limit: int = 20,
    warehouse_id: str | None = None,
    payment_method: str | None = None,
) -> tuple[list[SaleTransaction], int]:
    q = db.query(SaleTransaction)
    if warehouse_id:
        q = q.filter(SaleTransaction.warehouse_id == warehouse_id)
    if payment_method:
        q = q.filter(SaleTransaction.payment_method == payment_method)
    total = q.count()
    items = (
        q.options(selectinload(SaleTransaction.items))
        .order_by(SaleTransaction.created_at.desc(), SaleTransaction.number.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def _lock_sale_items(db: Session, transaction_id: str) -> dict[str, SaleItem]:
    """The sale's lines as currently committed, locked until the transaction ends."""
    stmt = (
        select(SaleItem)
        .where(SaleItem.transaction_id == transaction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {item.id: item for item in db.execute(stmt).scalars()}


def _create_return(db: Session, transaction_id: str, data: ReturnIn, user_id: str | None) -> str:
    sale = require_transaction(db, transaction_id)
    warehouse = warehouse_service.require_active_warehouse(db, sale.warehouse_id)

    item_map = _lock_sale_items(db, sale.id)
    sale_return = SaleReturn(
        number=_generate_number("RET"),
        transaction_id=sale.id,
        reason=data.reason,
        processed_by=user_id,
    )
    db.add(sale_return)
    db.flush()

    total = Decimal("0")
    for line in data.items:
        item = item_map.get(line.sale_item_id)
        if not item:
            raise errors.NotFound(f"Item {line.sale_item_id} is not part of transaction {sale.number}")
        remaining = item.quantity - item.quantity_returned
        if line.quantity > remaining:
            raise errors.ValidationError(
                f"Cannot return {line.quantity} of {item.sku}: only {remaining} left to return"
            )
        item.quantity_returned += line.quantity
        subtotal = item.price * line.quantity
        total += subtotal
        db.add(
            SaleReturnItem(
                return_id=sale_return.id,
                sale_item_id=item.id,
                product_id=item.product_id,
                quantity=line.quantity,
                price=item.price,
                subtotal=subtotal,
            )
        )
        stock_store.apply_delta(
            db,
            item.product_id,
            warehouse.id,
            line.quantity,
            movement_type=MovementType.IN,
            reference_type=ReferenceType.RETURN,
            reference_number=sale_return.number,
            reference_id=sale.id,
            notes=f"Return for {sale.number}" + (f": {data.reason}" if data.reason else ""),
            created_by=user_id,
        )

    sale_return.total_amount = total
    return sale_return.id


def create_return(db: Session, transaction_id: str, data: ReturnIn, user_id: str | None = None) -> SaleReturn:
    return_id = stock_store.run_atomic(db, _create_return, transaction_id, data, user_id)
    sale_return = (
        db.query(SaleReturn).options(selectinload(SaleReturn.items)).filter(SaleReturn.id == return_id).one()
    )
    logger.info("Processed return %s for transaction %s", sale_return.number, transaction_id)
    return sale_return
