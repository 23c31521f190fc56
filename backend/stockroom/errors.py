# backend/stockroom/errors.py
"""
Typed errors raised by the fulfillment core.

Every error carries a human-readable message plus a ``details`` dict. Errors
about individual line items put them in ``details["items"]`` so callers can
report every failing line, not just the first.

Categories:
- validation: bad input shape, rejected before any mutation (400)
- referential: a referenced entity is missing (404)
- business rule: the request conflicts with current state (409)
- state machine: transition not allowed from the current status (409)
- invariant: the ledger would be corrupted; indicates a bug or a race (500)
"""
from __future__ import annotations


class StockroomError(Exception):
    """Base class for all fulfillment errors."""
    status_code = 400
    code = "STOCKROOM_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(StockroomError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Referential
# ---------------------------------------------------------------------------

class NotFoundError(StockroomError):
    status_code = 404
    code = "NOT_FOUND"


class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"


class CashierNotFound(NotFoundError):
    code = "CASHIER_NOT_FOUND"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"


class WarehouseNotFound(NotFoundError):
    code = "WAREHOUSE_NOT_FOUND"


class SaleNotFound(NotFoundError):
    code = "SALE_NOT_FOUND"


class TransferNotFound(NotFoundError):
    code = "TRANSFER_NOT_FOUND"


class PackingNotFound(NotFoundError):
    code = "PACKING_NOT_FOUND"


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

class BusinessRuleError(StockroomError):
    status_code = 409
    code = "BUSINESS_RULE_VIOLATION"


class WarehouseInactive(BusinessRuleError):
    code = "WAREHOUSE_INACTIVE"


class InsufficientStock(BusinessRuleError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, items: list[dict], message: str | None = None):
        if message is None:
            product_ids = ", ".join(str(item["product_id"]) for item in items)
            message = f"Insufficient stock for product(s): {product_ids}"
        super().__init__(message, details={"items": items})
        self.items = items


class InvalidWarehouseForSaleType(BusinessRuleError):
    code = "INVALID_WAREHOUSE_FOR_SALE_TYPE"


class SameWarehouse(BusinessRuleError):
    code = "SAME_WAREHOUSE"


class ProductInUse(BusinessRuleError):
    code = "PRODUCT_IN_USE"


class BelowReserved(BusinessRuleError):
    code = "BELOW_RESERVED"


# ---------------------------------------------------------------------------
# State machines
# ---------------------------------------------------------------------------

class InvalidStateTransition(StockroomError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, current: str, requested: str):
        super().__init__(
            f"Cannot move {entity} from {current} to {requested}",
            details={"entity": entity, "current_status": current, "requested_status": requested},
        )


# ---------------------------------------------------------------------------
# Invariants / infrastructure
# ---------------------------------------------------------------------------

class InvariantViolation(StockroomError):
    status_code = 500
    code = "INVARIANT_VIOLATION"


class DocumentNumberError(StockroomError):
    """Raised when a unique document number cannot be allocated."""
    status_code = 503
    code = "DOCUMENT_NUMBER_UNAVAILABLE"
