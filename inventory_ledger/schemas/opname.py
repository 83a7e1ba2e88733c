from datetime import datetime

from pydantic import Field

from inventory_ledger.models.opname import OpnameStatus
from inventory_ledger.schemas.common import CamelModel, Pagination


class OpnameCreate(CamelModel):
    warehouse_id: str = Field(min_length=1)
    notes: str = Field(default="", max_length=500)


class OpnameItemCount(CamelModel):
    id: str
    physical_qty: int = Field(ge=0)
    notes: str = Field(default="", max_length=500)


class OpnameItemsUpdate(CamelModel):
    items: list[OpnameItemCount]


class OpnameItemOut(CamelModel):
    id: str
    opname_id: str
    product_id: str
    product_sku: str = ""
    product_name: str = ""
    system_qty: int
    physical_qty: int | None = None
    difference: int | None = None
    notes: str = ""


class OpnameOut(CamelModel):
    id: str
    number: str
    warehouse_id: str
    warehouse_name: str = ""
    status: OpnameStatus
    notes: str
    created_at: datetime | None = None
    finalized_at: datetime | None = None
    total_items: int = 0
    counted_items: int = 0
    items_with_difference: int = 0


class OpnameDetailOut(OpnameOut):
    items: list[OpnameItemOut] = []


class OpnamePage(CamelModel):
    data: list[OpnameOut]
    pagination: Pagination


class OpnameFinalizeOut(CamelModel):
    message: str
    adjusted_items: int
    total_added: int
    total_subtracted: int
