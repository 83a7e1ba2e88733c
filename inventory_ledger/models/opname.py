import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_ledger.database import Base


class OpnameStatus(str, PyEnum):
    COUNTING = "counting"
    FINALIZED = "finalized"


class StockOpname(Base):
    """A physical stock count session for one warehouse."""

    __tablename__ = "stock_opname"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    warehouse_id: Mapped[str] = mapped_column(String, ForeignKey("warehouses.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(OpnameStatus, values_callable=lambda x: [e.value for e in x]),
        default=OpnameStatus.COUNTING,
    )
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # A second finalize working from a stale read fails its UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    warehouse: Mapped["Warehouse"] = relationship("Warehouse")  # noqa: F821
    items: Mapped[list["StockOpnameItem"]] = relationship(
        "StockOpnameItem", back_populates="opname", cascade="all, delete-orphan"
    )

    @property
    def warehouse_name(self) -> str:
        return self.warehouse.name if self.warehouse else ""

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def counted_items(self) -> int:
        return sum(1 for i in self.items if i.physical_qty is not None)

    @property
    def items_with_difference(self) -> int:
        return sum(1 for i in self.items if i.difference)


class StockOpnameItem(Base):
    __tablename__ = "stock_opname_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    opname_id: Mapped[str] = mapped_column(String, ForeignKey("stock_opname.id"), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False)
    system_qty: Mapped[int] = mapped_column(Integer, default=0)
    physical_qty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    difference: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    opname: Mapped["StockOpname"] = relationship("StockOpname", back_populates="items")
    product: Mapped["Product"] = relationship("Product")  # noqa: F821

    @property
    def product_sku(self) -> str:
        return self.product.sku if self.product else ""

    @property
    def product_name(self) -> str:
        return self.product.name if self.product else ""
