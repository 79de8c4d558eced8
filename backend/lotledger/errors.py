# Overview: Error taxonomy shared by services and routes.

"""
Ledger error taxonomy.

Services raise these; routes render them with ``to_response()``.

- ValidationError / InsufficientStockError: caller-correctable, full detail.
- NotFoundError / ForbiddenError: generic message only. A lot owned by another
  tenant is reported exactly like a lot that does not exist.
- ServerError: opaque to the caller; the cause is logged server-side.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors that map onto an API response."""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> tuple[dict, int]:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return {"error": body}, self.status_code


class ValidationError(LedgerError):
    """400-level input problem (bad shape, duplicate lot number, unknown color/size)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InsufficientStockError(ValidationError):
    """Requested quantity exceeds the remaining quantity of a size."""

    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, *, color: str, size: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {color} - {size}. "
            f"Available: {available}, Requested: {requested}",
            details={
                "color": color,
                "size": size,
                "requested": requested,
                "available": available,
            },
        )
        self.color = color
        self.size = size
        self.requested = requested
        self.available = available


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ForbiddenError(LedgerError):
    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class ServerError(LedgerError):
    """Storage or infrastructure failure. Never carries detail to the caller."""

    code = "SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
