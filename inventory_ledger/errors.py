"""Domain errors raised by the inventory services.

Each error carries a machine-readable ``kind`` and the HTTP status the API
boundary answers with. The handler registered in ``main`` renders them as
``{"error": kind, "detail": message, ...extra}``.
"""


class InventoryError(Exception):
    kind = "InventoryError"
    status_code = 400

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message, **self.extra}


class ValidationError(InventoryError):
    kind = "ValidationError"
    status_code = 400


class InsufficientStock(InventoryError):
    kind = "InsufficientStock"
    status_code = 400

    def __init__(self, available: int, requested: int, message: str | None = None):
        super().__init__(
            message or f"Insufficient stock. Available: {available}, requested: {requested}",
            available=available,
            requested=requested,
        )
        self.available = available
        self.requested = requested


class NotFound(InventoryError):
    kind = "NotFound"
    status_code = 404


class ConcurrencyConflict(InventoryError):
    kind = "ConcurrencyConflict"
    status_code = 409

    def __init__(self, message: str = "Stock was modified concurrently, please retry"):
        super().__init__(message)


class Unauthorized(InventoryError):
    kind = "Unauthorized"
    status_code = 401


class Forbidden(Unauthorized):
    status_code = 403
