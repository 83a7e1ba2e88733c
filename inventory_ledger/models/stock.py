import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_ledger.database import Base, utcnow


class MovementType:
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"

    ALL = (IN, OUT, ADJUSTMENT)


class ReferenceType:
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    RETURN = "return"
    BREAKDOWN = "breakdown"
    OPNAME = "opname"

    ALL = (PURCHASE, SALE, ADJUSTMENT, TRANSFER, RETURN, BREAKDOWN, OPNAME)


class StockRecord(Base):
    """Current quantity of one product at one warehouse."""

    __tablename__ = "product_stock"
    __table_args__ = (UniqueConstraint("product_id", "warehouse_id", name="uq_product_stock_pair"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id: Mapped[str] = mapped_column(String, ForeignKey("warehouses.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Bumped on every UPDATE; a stale writer matches zero rows and gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    product: Mapped["Product"] = relationship("Product", back_populates="stock")  # noqa: F821
    warehouse: Mapped["Warehouse"] = relationship("Warehouse")  # noqa: F821


class StockMovement(Base):
    """Immutable ledger row for a single quantity change."""

    __tablename__ = "stock_movements"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", "sequence", name="uq_stock_movement_sequence"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id: Mapped[str] = mapped_column(String, ForeignKey("warehouses.id"), nullable=False, index=True)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reference_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reference_id: Mapped[str | None] = mapped_column(String, nullable=True)
    reference_number: Mapped[str] = mapped_column(String(50), default="", index=True)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    # Position in the (product, warehouse) history; equals the stock version it produced
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    product: Mapped["Product"] = relationship("Product")  # noqa: F821
    warehouse: Mapped["Warehouse"] = relationship("Warehouse")  # noqa: F821
