import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inventory_ledger import errors
from inventory_ledger.api import (
    auth,
    movements,
    opname,
    products,
    purchases,
    reports,
    stock,
    transactions,
    units,
    warehouses,
)
from inventory_ledger.api.auth import get_current_user
from inventory_ledger.config import settings
from inventory_ledger.database import SessionLocal, init_db
from inventory_ledger.services.auth_service import ensure_default_admin

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
    logger.info("%s started", settings.APP_NAME)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-warehouse stock records, movement ledger, adjustments, transfers and breakdowns",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(errors.InventoryError)
async def inventory_error_handler(request: Request, exc: errors.InventoryError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return JSONResponse(
        status_code=400,
        content={"error": errors.ValidationError.kind, "detail": "; ".join(problems) or "Invalid request"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return JSON for unhandled exceptions so clients can parse the error."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return JSONResponse(status_code=500, content={"error": "InternalError", "detail": str(exc)})


app.include_router(auth.router, prefix="/api")

protected = [Depends(get_current_user)]
for module in (stock, movements, products, units, warehouses, opname, purchases, transactions, reports):
    app.include_router(module.router, prefix="/api", dependencies=protected)


@app.get("/health")
def health():
    return {"status": "ok"}
