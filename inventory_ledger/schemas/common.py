from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for wire schemas: camelCase on the wire, snake_case accepted on input."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=(total + limit - 1) // limit if limit else 0)


class ProductRef(CamelModel):
    id: str
    sku: str
    name: str


class WarehouseRef(CamelModel):
    id: str
    code: str
    name: str
