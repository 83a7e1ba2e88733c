from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field

from inventory_ledger.schemas.common import CamelModel, Pagination


class CartLine(CamelModel):
    product_id: str
    quantity: int = Field(ge=1)
    # Defaults to the product's selling price
    price: Decimal | None = Field(default=None, ge=0, decimal_places=2)


class CheckoutIn(CamelModel):
    warehouse_id: str | None = None
    items: list[CartLine] = Field(min_length=1)
    payment_method: Literal["cash", "qris", "card"]
    cash_amount: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    notes: str = ""


class SaleItemOut(CamelModel):
    id: str
    product_id: str
    sku: str
    product_name: str
    quantity: int
    quantity_returned: int
    price: Decimal
    subtotal: Decimal


class SaleOut(CamelModel):
    id: str
    number: str
    warehouse_id: str
    cashier_id: str | None = None
    payment_method: str
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    cash_amount: Decimal
    change_amount: Decimal
    status: str
    notes: str
    created_at: datetime | None = None
    items: list[SaleItemOut]


class SalePage(CamelModel):
    data: list[SaleOut]
    pagination: Pagination


class ReturnLine(CamelModel):
    sale_item_id: str
    quantity: int = Field(ge=1)


class ReturnIn(CamelModel):
    items: list[ReturnLine] = Field(min_length=1)
    reason: str = Field(default="", max_length=500)


class ReturnItemOut(CamelModel):
    id: str
    sale_item_id: str
    product_id: str
    quantity: int
    price: Decimal
    subtotal: Decimal


class ReturnOut(CamelModel):
    id: str
    number: str
    transaction_id: str
    reason: str
    total_amount: Decimal
    created_at: datetime | None = None
    items: list[ReturnItemOut]
