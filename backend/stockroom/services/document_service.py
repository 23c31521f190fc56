# Overview: Service-layer operations for document numbers; allocates unique sale/transfer numbers.

from __future__ import annotations

import secrets

from flask import current_app

from ..extensions import db
from ..errors import DocumentNumberError
from ..models import Sale, StockTransfer
from ..time_utils import utcnow

_NUMBER_COLUMNS = {
    "SALE": (Sale, Sale.sale_number, "SALE_NUMBER_PREFIX"),
    "TRANSFER": (StockTransfer, StockTransfer.transfer_number, "TRANSFER_NUMBER_PREFIX"),
}


def _candidate(prefix: str) -> str:
    # Timestamp keeps numbers roughly ordered; the random suffix disambiguates
    # documents created within the same second.
    return f"{prefix}-{utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(3).upper()}"


def next_document_number(document_type: str, *, attempts: int | None = None) -> str:
    """
    Allocate a globally unique document number for SALE or TRANSFER.

    Collisions are retried with a fresh suffix, never truncated. The unique
    constraint on the column remains the final guard at insert time.
    """
    if document_type not in _NUMBER_COLUMNS:
        raise DocumentNumberError(f"Unknown document type {document_type!r}")

    model, column, prefix_key = _NUMBER_COLUMNS[document_type]
    prefix = current_app.config.get(prefix_key) or document_type
    if attempts is None:
        attempts = current_app.config.get("DOCUMENT_NUMBER_ATTEMPTS", 5)

    for _ in range(attempts):
        number = _candidate(prefix)
        exists = db.session.query(model.id).filter(column == number).first()
        if exists is None:
            return number

    raise DocumentNumberError(
        f"Could not allocate a unique {document_type.lower()} number",
        details={"document_type": document_type, "attempts": attempts},
    )
