import logging

from sqlalchemy.orm import Session

from inventory_ledger import errors
from inventory_ledger.models.stock import MovementType, ReferenceType
from inventory_ledger.schemas.stock import StockTransferIn
from inventory_ledger.services import ledger_service, product_service, stock_store, warehouse_service

logger = logging.getLogger(__name__)


def _transfer(db: Session, data: StockTransferIn, user_id: str | None) -> dict:
    product_service.require_product(db, data.product_id)
    source = warehouse_service.require_active_warehouse(db, data.from_warehouse_id)
    destination = warehouse_service.require_active_warehouse(db, data.to_warehouse_id)

    # Lock both rows in a fixed order so two opposite transfers cannot deadlock
    for warehouse_id in sorted((source.id, destination.id)):
        stock_store.lock_stock(db, data.product_id, warehouse_id)

    reference_number = ledger_service.new_reference_number("TRF")
    source_record, _ = stock_store.apply_delta(
        db,
        data.product_id,
        source.id,
        -data.quantity,
        movement_type=MovementType.OUT,
        reference_type=ReferenceType.TRANSFER,
        reference_number=reference_number,
        notes=data.notes or f"Transfer to {destination.name}",
        created_by=user_id,
    )
    destination_record, _ = stock_store.apply_delta(
        db,
        data.product_id,
        destination.id,
        data.quantity,
        movement_type=MovementType.IN,
        reference_type=ReferenceType.TRANSFER,
        reference_number=reference_number,
        notes=data.notes or f"Transfer from {source.name}",
        created_by=user_id,
    )
    return {
        "message": "Stock transferred successfully",
        "transfer_ref": reference_number,
        "source_quantity_after": source_record.quantity,
        "destination_quantity_after": destination_record.quantity,
    }


def transfer_stock(db: Session, data: StockTransferIn, user_id: str | None = None) -> dict:
    """Move stock between warehouses: both sides commit together or not at all."""
    if data.from_warehouse_id == data.to_warehouse_id:
        raise errors.ValidationError("Source and destination warehouses must be different")

    result = stock_store.run_atomic(db, _transfer, data, user_id)
    logger.info(
        "Transferred %d of %s from %s to %s [%s]",
        data.quantity,
        data.product_id,
        data.from_warehouse_id,
        data.to_warehouse_id,
        result["transfer_ref"],
    )
    return result
