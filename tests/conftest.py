import os

# Must be set before the settings singleton is created
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STOCK_RETRY_BACKOFF_SECONDS"] = "0"

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from inventory_ledger.api.auth import get_current_user  # noqa: E402
from inventory_ledger.database import Base, SessionLocal, engine, get_db, init_db  # noqa: E402
from inventory_ledger.main import app  # noqa: E402
from inventory_ledger.models.user import Role  # noqa: E402
from inventory_ledger.schemas.catalog import ProductCreate, UnitCreate, WarehouseCreate  # noqa: E402
from inventory_ledger.schemas.stock import StockAdjustmentIn  # noqa: E402
from inventory_ledger.services import (  # noqa: E402
    adjustment_service,
    auth_service,
    product_service,
    unit_service,
    warehouse_service,
)


@pytest.fixture()
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def file_db(tmp_path):
    """Session factory on a file-backed SQLite database, for tests that need two connections."""
    file_engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(bind=file_engine)
    file_engine.dispose()


@pytest.fixture()
def admin(db):
    return auth_service.create_user(db, "tester", "s3cret", display_name="Tester", role=Role.ADMIN)


@pytest.fixture()
def anon_client(db) -> TestClient:
    """Client that shares the test session but goes through real authentication."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def client(anon_client, admin) -> TestClient:
    app.dependency_overrides[get_current_user] = lambda: admin
    return anon_client


@pytest.fixture()
def warehouse(db):
    return warehouse_service.create_warehouse(db, WarehouseCreate(code="MAIN", name="Main Store", is_default=True))


@pytest.fixture()
def second_warehouse(db):
    return warehouse_service.create_warehouse(db, WarehouseCreate(code="BACK", name="Back Room"))


@pytest.fixture()
def rejected_warehouse(db):
    return warehouse_service.create_warehouse(db, WarehouseCreate(code="REJ", name="Rejected", type="rejected"))


@pytest.fixture()
def product(db):
    return product_service.create_product(
        db,
        ProductCreate(
            sku="COLA-330",
            name="Cola Can 330ml",
            category="Drinks",
            cost_price=Decimal("1.50"),
            selling_price=Decimal("2.50"),
            min_stock=5,
        ),
    )


@pytest.fixture()
def case_unit(db):
    return unit_service.create_unit(db, UnitCreate(code="case", name="Case"))


@pytest.fixture()
def bulk_product(db, case_unit):
    return product_service.create_product(
        db,
        ProductCreate(sku="COLA-CASE", name="Cola Case", category="Drinks", unit_id=case_unit.id, is_bulk=True),
    )


@pytest.fixture()
def variant(db, bulk_product):
    return product_service.create_product(
        db,
        ProductCreate(
            sku="COLA-330-V",
            name="Cola Can (from case)",
            category="Drinks",
            parent_id=bulk_product.id,
            conversion_ratio=Decimal("24"),
        ),
    )


@pytest.fixture()
def stock_up(db):
    """Seed stock through a regular ``add`` adjustment."""

    def _stock_up(product_id: str, warehouse_id: str, quantity: int):
        adjustment_service.adjust_stock(
            db,
            StockAdjustmentIn(
                product_id=product_id,
                warehouse_id=warehouse_id,
                adjustment_type="add",
                quantity=quantity,
                reason="Initial stock",
            ),
        )

    return _stock_up
