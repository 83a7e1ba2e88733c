from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory_ledger.config import settings

connect_args = {}
engine_kwargs = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False
    # In-memory databases live per connection; share a single one
    if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Import all models so Base.metadata knows about them
    import inventory_ledger.models.catalog  # noqa: F401
    import inventory_ledger.models.stock  # noqa: F401
    import inventory_ledger.models.opname  # noqa: F401
    import inventory_ledger.models.purchase  # noqa: F401
    import inventory_ledger.models.sale  # noqa: F401
    import inventory_ledger.models.user  # noqa: F401

    Base.metadata.create_all(bind=engine)
