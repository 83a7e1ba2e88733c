from datetime import datetime
from decimal import Decimal

from pydantic import Field

from inventory_ledger.models.purchase import PurchaseStatus
from inventory_ledger.schemas.common import CamelModel


class PurchaseItemCreate(CamelModel):
    product_id: str
    quantity_ordered: int = Field(ge=1)
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)


class PurchaseCreate(CamelModel):
    supplier: str = ""
    warehouse_id: str
    notes: str = ""
    items: list[PurchaseItemCreate] = Field(min_length=1)


class PurchaseItemReceive(CamelModel):
    item_id: str
    quantity_received: int = Field(ge=0)


class PurchaseReceive(CamelModel):
    items: list[PurchaseItemReceive] = Field(min_length=1)


class PurchaseItemOut(CamelModel):
    id: str
    product_id: str
    sku: str
    product_name: str
    quantity_ordered: int
    quantity_received: int
    unit_cost: Decimal


class PurchaseOut(CamelModel):
    id: str
    number: str
    supplier: str
    warehouse_id: str
    status: PurchaseStatus
    notes: str
    total_amount: Decimal
    items: list[PurchaseItemOut]
    created_at: datetime | None = None
    updated_at: datetime | None = None
