import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_ledger.database import Base


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Countable units (pcs, case) vs. measured ones (ml, gram)
    is_discrete: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class WarehouseType:
    SELLABLE = "sellable"
    REJECTED = "rejected"


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=WarehouseType.SELLABLE)
    address: Mapped[str] = mapped_column(Text, default="")
    phone: Mapped[str] = mapped_column(String(20), default="")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    barcode: Mapped[str] = mapped_column(String(50), default="", index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String, default="")
    unit_id: Mapped[str | None] = mapped_column(String, ForeignKey("units.id"), nullable=True)

    cost_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    selling_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    min_stock: Mapped[int] = mapped_column(Integer, default=0)

    # Bulk products break down into variants; a variant points back via parent_id
    is_bulk: Mapped[bool] = mapped_column(Boolean, default=False)
    parent_id: Mapped[str | None] = mapped_column(String, ForeignKey("products.id"), nullable=True)
    # Variant units per one unit of the parent, e.g. 24 cans per case
    conversion_ratio: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("1"))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    unit: Mapped["Unit | None"] = relationship("Unit")
    parent: Mapped["Product | None"] = relationship("Product", remote_side=[id], back_populates="variants")
    variants: Mapped[list["Product"]] = relationship("Product", back_populates="parent")
    stock: Mapped[list["StockRecord"]] = relationship("StockRecord", back_populates="product")  # noqa: F821

    @property
    def current_stock(self) -> int:
        return sum(s.quantity for s in self.stock)

    @property
    def stock_details(self) -> list[dict]:
        return [
            {"warehouse_id": s.warehouse_id, "warehouse_name": s.warehouse.name, "quantity": s.quantity}
            for s in self.stock
        ]

    @property
    def unit_is_discrete(self) -> bool:
        return self.unit.is_discrete if self.unit else True
