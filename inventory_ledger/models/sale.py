import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_ledger.database import Base


class PaymentMethod:
    CASH = "cash"
    QRIS = "qris"
    CARD = "card"


class SaleTransaction(Base):
    """A completed POS checkout."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    warehouse_id: Mapped[str] = mapped_column(String, ForeignKey("warehouses.id"), nullable=False)
    cashier_id: Mapped[str | None] = mapped_column(String, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    final_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    cash_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    change_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), default="completed")
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    items: Mapped[list["SaleItem"]] = relationship(
        "SaleItem", back_populates="transaction", cascade="all, delete-orphan"
    )
    returns: Mapped[list["SaleReturn"]] = relationship("SaleReturn", back_populates="transaction")


class SaleItem(Base):
    __tablename__ = "transaction_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id: Mapped[str] = mapped_column(String, ForeignKey("transactions.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False)
    sku: Mapped[str] = mapped_column(String, default="")
    product_name: Mapped[str] = mapped_column(String, default="")
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_returned: Mapped[int] = mapped_column(Integer, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # Bumped on every UPDATE so two returns against a stale row cannot both count
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    transaction: Mapped["SaleTransaction"] = relationship("SaleTransaction", back_populates="items")


class SaleReturn(Base):
    __tablename__ = "sales_returns"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    transaction_id: Mapped[str] = mapped_column(String, ForeignKey("transactions.id"), nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="")
    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=Decimal("0"))
    processed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    transaction: Mapped["SaleTransaction"] = relationship("SaleTransaction", back_populates="returns")
    items: Mapped[list["SaleReturnItem"]] = relationship(
        "SaleReturnItem", back_populates="sale_return", cascade="all, delete-orphan"
    )


class SaleReturnItem(Base):
    __tablename__ = "sales_return_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    return_id: Mapped[str] = mapped_column(String, ForeignKey("sales_returns.id"), nullable=False)
    sale_item_id: Mapped[str] = mapped_column(String, ForeignKey("transaction_items.id"), nullable=False)
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    sale_return: Mapped["SaleReturn"] = relationship("SaleReturn", back_populates="items")
