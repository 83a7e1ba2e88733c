from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field

from inventory_ledger.schemas.common import CamelModel, Pagination


# --- Unit schemas ---

class UnitCreate(CamelModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    is_discrete: bool = True


class UnitUpdate(CamelModel):
    code: str | None = Field(default=None, min_length=1, max_length=20)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    is_discrete: bool | None = None


class UnitOut(CamelModel):
    id: str
    code: str
    name: str
    is_discrete: bool


# --- Warehouse schemas ---

WarehouseKind = Literal["sellable", "rejected"]


class WarehouseCreate(CamelModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    type: WarehouseKind = "sellable"
    address: str = Field(default="", max_length=500)
    phone: str = Field(default="", max_length=20)
    is_default: bool = False
    is_active: bool = True


class WarehouseUpdate(CamelModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: WarehouseKind | None = None
    address: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=20)
    is_default: bool | None = None
    is_active: bool | None = None


class WarehouseOut(CamelModel):
    id: str
    code: str
    name: str
    type: str
    address: str
    phone: str
    is_default: bool
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WarehouseSummaryOut(WarehouseOut):
    product_count: int = 0
    total_stock: int = 0


# --- Product schemas ---

class ProductCreate(CamelModel):
    sku: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    barcode: str = ""
    description: str = ""
    category: str = ""
    unit_id: str | None = None
    cost_price: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    selling_price: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    min_stock: int = Field(default=0, ge=0)
    is_bulk: bool = False
    parent_id: str | None = None
    conversion_ratio: Decimal = Field(default=Decimal("1"), gt=0, decimal_places=4)
    is_active: bool = True


class ProductUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    barcode: str | None = None
    description: str | None = None
    category: str | None = None
    unit_id: str | None = None
    cost_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    selling_price: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    min_stock: int | None = Field(default=None, ge=0)
    is_bulk: bool | None = None
    parent_id: str | None = None
    conversion_ratio: Decimal | None = Field(default=None, gt=0, decimal_places=4)
    is_active: bool | None = None


class StockDetail(CamelModel):
    warehouse_id: str
    warehouse_name: str
    quantity: int


class ProductOut(CamelModel):
    id: str
    sku: str
    barcode: str
    name: str
    description: str
    category: str
    unit_id: str | None
    cost_price: Decimal
    selling_price: Decimal
    min_stock: int
    is_bulk: bool
    parent_id: str | None
    conversion_ratio: Decimal
    is_active: bool
    current_stock: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductDetailOut(ProductOut):
    unit: UnitOut | None = None
    variants: list[ProductOut] = []
    stock_details: list[StockDetail] = []


class ProductPage(CamelModel):
    data: list[ProductOut]
    pagination: Pagination
