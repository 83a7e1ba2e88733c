from decimal import Decimal

from inventory_ledger.schemas.common import CamelModel


class LowStockItem(CamelModel):
    id: str
    sku: str
    name: str
    current_stock: int
    min_stock: int


class CategorySummary(CamelModel):
    category: str
    product_count: int
    total_units: int
    total_value: Decimal


class InventorySummary(CamelModel):
    total_products: int
    total_units: int
    total_value: Decimal
    low_stock_count: int
    low_stock: list[LowStockItem]
    by_category: list[CategorySummary]
