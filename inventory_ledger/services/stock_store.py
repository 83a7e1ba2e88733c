"""Current stock per (product, warehouse) and the single write path into it.

Every quantity change goes through :func:`apply_delta`, which locks the stock
row, applies the delta, and appends exactly one ledger movement in the same
transaction. :func:`run_atomic` is the transaction boundary callers wrap
their work in: it commits once, and retries from a fresh read when another
writer got to the row first.
"""

import logging
import time

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger import errors
from inventory_ledger.config import settings
from inventory_ledger.database import utcnow
from inventory_ledger.models.stock import StockMovement, StockRecord
from inventory_ledger.services import ledger_service

logger = logging.getLogger(__name__)


def get_stock(db: Session, product_id: str, warehouse_id: str) -> StockRecord:
    """Stock for one pair; a transient zero-quantity record if none exists yet."""
    record = (
        db.query(StockRecord)
        .filter(StockRecord.product_id == product_id, StockRecord.warehouse_id == warehouse_id)
        .first()
    )
    if record is None:
        return StockRecord(product_id=product_id, warehouse_id=warehouse_id, quantity=0)
    return record


def list_by_product(db: Session, product_id: str) -> list[StockRecord]:
    return db.query(StockRecord).filter(StockRecord.product_id == product_id).all()


def list_by_warehouse(db: Session, warehouse_id: str) -> list[StockRecord]:
    return db.query(StockRecord).filter(StockRecord.warehouse_id == warehouse_id).all()


def current_stock(db: Session, product_id: str) -> int:
    total = (
        db.query(func.coalesce(func.sum(StockRecord.quantity), 0))
        .filter(StockRecord.product_id == product_id)
        .scalar()
    )
    return int(total)


def lock_stock(db: Session, product_id: str, warehouse_id: str) -> StockRecord | None:
    """Read the pair's row under a row lock, bypassing stale identity-map state."""
    stmt = (
        select(StockRecord)
        .where(StockRecord.product_id == product_id, StockRecord.warehouse_id == warehouse_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.execute(stmt).scalar_one_or_none()


def locked_quantity(db: Session, product_id: str, warehouse_id: str) -> int:
    record = lock_stock(db, product_id, warehouse_id)
    return record.quantity if record else 0


def apply_delta(
    db: Session,
    product_id: str,
    warehouse_id: str,
    delta: int,
    *,
    movement_type: str,
    reference_type: str,
    reference_number: str = "",
    reference_id: str | None = None,
    notes: str = "",
    created_by: str | None = None,
    allow_negative: bool = False,
    expected_before: int | None = None,
) -> tuple[StockRecord, StockMovement]:
    """Apply ``delta`` to the pair's quantity and record the movement.

    ``expected_before`` is the quantity the caller derived ``delta`` from; if
    the row has moved since, the write is abandoned as stale so
    :func:`run_atomic` retries it from a fresh read. Does not commit; run
    inside :func:`run_atomic`.
    """
    record = lock_stock(db, product_id, warehouse_id)
    before = record.quantity if record else 0
    if expected_before is not None and before != expected_before:
        raise StaleDataError(
            f"Stock for {product_id}@{warehouse_id} changed from {expected_before} to {before} since it was read"
        )
    after = before + delta
    if after < 0 and not allow_negative:
        raise errors.InsufficientStock(available=before, requested=-delta)

    if record is None:
        # Lazily created; a concurrent creator trips the unique pair constraint
        record = StockRecord(product_id=product_id, warehouse_id=warehouse_id, quantity=after)
        db.add(record)
    else:
        record.quantity = after
        record.updated_at = utcnow()
    db.flush()

    movement = ledger_service.record(
        db,
        StockMovement(
            product_id=product_id,
            warehouse_id=warehouse_id,
            movement_type=movement_type,
            reference_type=reference_type,
            reference_id=reference_id,
            reference_number=reference_number,
            quantity_before=before,
            quantity_change=delta,
            quantity_after=after,
            sequence=record.version,
            notes=notes,
            created_by=created_by,
        ),
    )
    return record, movement


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (StaleDataError, IntegrityError)):
        return True
    # SQLite reports writer contention as "database is locked"
    return isinstance(exc, OperationalError) and "locked" in str(exc).lower()


def run_atomic(db: Session, fn, *args, **kwargs):
    """Run ``fn(db, *args, **kwargs)`` as one transaction and commit it.

    Version conflicts and lazy-creation races are retried with exponential
    backoff; once attempts run out, :class:`ConcurrencyConflict` is raised.
    Domain errors roll back and propagate immediately.
    """
    attempts = max(1, settings.STOCK_RETRY_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            result = fn(db, *args, **kwargs)
            db.commit()
            return result
        except errors.InventoryError:
            db.rollback()
            raise
        except (StaleDataError, IntegrityError, OperationalError) as exc:
            db.rollback()
            if not _is_retryable(exc):
                raise
            if attempt == attempts:
                logger.error("Stock write conflict not resolved after %d attempts: %s", attempts, exc)
                break
            delay = settings.STOCK_RETRY_BACKOFF_SECONDS * (2 ** (attempt - 1))
            logger.warning(
                "Stock write conflict (attempt %d/%d), retrying in %.3fs: %s", attempt, attempts, delay, exc
            )
            time.sleep(delay)
        except Exception:
            db.rollback()
            raise
    raise errors.ConcurrencyConflict()
