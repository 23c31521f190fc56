# backend/stockroom/services/transfer_service.py
"""
Inter-warehouse stock transfer service.

WHY: Move committed stock between warehouses without stock vanishing or
being double-counted. Stock is reserved at the source when the transfer is
requested and only leaves the source ledger when the transfer completes.

LIFECYCLE:
1. PENDING: Transfer requested, item quantities reserved at source
2. IN_TRANSIT: Physical pickup; no ledger effect
3. COMPLETED: Source reservation committed, destination incremented
4. CANCELLED: Reservations released (from PENDING or IN_TRANSIT only)
"""
from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..errors import (
    InsufficientStock,
    InvalidStateTransition,
    SameWarehouse,
    TransferNotFound,
    ValidationError,
)
from ..models import StockTransfer, StockTransferItem
from ..money import ZERO
from ..time_utils import utcnow
from ..validation import (
    TransferInput,
    TransferredItemInput,
    parse_transfer_input,
    parse_transferred_items,
)
from . import ledger_service
from .concurrency import lock_for_update, transaction
from .document_service import next_document_number
from .repositories import (
    Repositories,
    default_repositories,
    require_active_products,
    require_active_user,
    require_active_warehouse,
)


# Transfer status constants
TRANSFER_STATUS_PENDING = "PENDING"
TRANSFER_STATUS_IN_TRANSIT = "IN_TRANSIT"
TRANSFER_STATUS_COMPLETED = "COMPLETED"
TRANSFER_STATUS_CANCELLED = "CANCELLED"

TRANSFER_STATUSES = (
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_COMPLETED,
    TRANSFER_STATUS_CANCELLED,
)

# Allowed forward moves for advance_transfer (cancellation has its own entry point)
_FORWARD = {
    TRANSFER_STATUS_PENDING: TRANSFER_STATUS_IN_TRANSIT,
    TRANSFER_STATUS_IN_TRANSIT: TRANSFER_STATUS_COMPLETED,
}

_CANCELLABLE = {TRANSFER_STATUS_PENDING, TRANSFER_STATUS_IN_TRANSIT}


def create_stock_transfer(
    transfer_input: TransferInput | dict,
    requested_by: int,
    *,
    repos: Repositories | None = None,
) -> StockTransfer:
    """
    Create a PENDING transfer and reserve its items at the source warehouse.

    Args:
        transfer_input: warehouses, items and notes
        requested_by: resolved id of the requesting user

    Returns:
        StockTransfer: The created transfer

    Raises:
        SameWarehouse: source and destination are the same
        WarehouseNotFound / WarehouseInactive
        UserNotFound: requester missing or inactive
        ProductNotFound: every missing/inactive line
        InsufficientStock: every line exceeding available stock at source
    """
    data = transfer_input if isinstance(transfer_input, TransferInput) else parse_transfer_input(transfer_input)
    repos = repos or default_repositories()

    if data.from_warehouse_id == data.to_warehouse_id:
        raise SameWarehouse(
            "Cannot transfer to the same warehouse",
            details={"warehouse_id": data.from_warehouse_id},
        )

    source = require_active_warehouse(repos, data.from_warehouse_id, role="source")
    destination = require_active_warehouse(repos, data.to_warehouse_id, role="destination")
    requester = require_active_user(repos, requested_by)
    require_active_products(repos, [item.product_id for item in data.items])

    with transaction():
        keys = [(item.product_id, source.id) for item in data.items]
        locked = ledger_service.lock_records(keys)

        # Check every line before reserving any, so all failures are reported
        failures = []
        for index, item in enumerate(data.items):
            record = locked[(item.product_id, source.id)]
            available = ZERO if record is None else record.quantity - record.reserved_quantity
            if item.requested_quantity > available:
                failures.append({
                    "line": index,
                    "product_id": item.product_id,
                    "warehouse_id": source.id,
                    "requested_quantity": str(item.requested_quantity),
                    "available_quantity": str(max(available, ZERO)),
                })
        if failures:
            raise InsufficientStock(failures)

        for item in data.items:
            key = (item.product_id, source.id)
            ledger_service.reserve_locked(locked[key], key, item.requested_quantity)

        transfer = StockTransfer(
            transfer_number=next_document_number("TRANSFER"),
            from_warehouse_id=source.id,
            to_warehouse_id=destination.id,
            requested_by=requester.id,
            status=TRANSFER_STATUS_PENDING,
            notes=data.notes,
        )
        transfer.items = [
            StockTransferItem(product_id=item.product_id, requested_quantity=item.requested_quantity)
            for item in data.items
        ]
        db.session.add(transfer)
        db.session.flush()

    return transfer


def _load_transfer_for_update(transfer_id: int) -> StockTransfer:
    transfer = lock_for_update(db.session.query(StockTransfer).filter_by(id=transfer_id)).first()
    if not transfer:
        raise TransferNotFound(f"Transfer {transfer_id} not found", details={"transfer_id": transfer_id})
    return transfer


def _resolve_transferred(transfer: StockTransfer, items: list[TransferredItemInput] | None) -> dict[int, Decimal]:
    """
    Actual quantity per product: requested by default, overridden by a
    partial-fulfilment entry. 0 <= transferred <= requested.
    """
    requested = {item.product_id: item.requested_quantity for item in transfer.items}
    transferred = dict(requested)

    errors = []
    for entry in items or []:
        if entry.product_id not in requested:
            errors.append({"product_id": entry.product_id, "reason": "not_on_transfer"})
        elif entry.transferred_quantity > requested[entry.product_id]:
            errors.append({
                "product_id": entry.product_id,
                "reason": "exceeds_requested",
                "requested_quantity": str(requested[entry.product_id]),
                "transferred_quantity": str(entry.transferred_quantity),
            })
        else:
            transferred[entry.product_id] = entry.transferred_quantity
    if errors:
        raise ValidationError("Invalid transferred quantities", details={"items": errors})
    return transferred


def _complete(transfer: StockTransfer, items: list[TransferredItemInput] | None) -> None:
    transferred = _resolve_transferred(transfer, items)

    source_keys = [(item.product_id, transfer.from_warehouse_id) for item in transfer.items]
    destination_keys = [(item.product_id, transfer.to_warehouse_id) for item in transfer.items]
    # Source and destination rows of every item, locked as one ordered batch
    locked = ledger_service.lock_records(source_keys, create_for=destination_keys)

    for item in transfer.items:
        source_key = (item.product_id, transfer.from_warehouse_id)
        destination_key = (item.product_id, transfer.to_warehouse_id)
        quantity = transferred[item.product_id]
        ledger_service.transfer_stock_locked(
            locked[source_key],
            locked[destination_key],
            source_key,
            quantity,
            item.requested_quantity,
        )
        item.transferred_quantity = quantity

    transfer.completed_at = utcnow()


def advance_transfer(
    transfer_id: int,
    next_status: str,
    items: list[TransferredItemInput] | list[dict] | None = None,
    *,
    actor_id: int | None = None,
    repos: Repositories | None = None,
) -> StockTransfer:
    """
    Move a transfer one step forward.

    PENDING -> IN_TRANSIT: physical pickup; records approved_by (actor) and
    transfer_date. IN_TRANSIT -> COMPLETED: moves stock; `items` may carry
    per-product transferred quantities for short shipments.

    Raises:
        TransferNotFound
        InvalidStateTransition: any other move (use cancel_transfer to cancel)
        ValidationError: bad transferred quantities
    """
    if next_status not in TRANSFER_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(TRANSFER_STATUSES)}",
            details={"field": "status"},
        )
    if items is not None and next_status != TRANSFER_STATUS_COMPLETED:
        raise ValidationError(
            "items are accepted only when completing a transfer",
            details={"field": "items"},
        )
    if not (isinstance(items, list) and all(isinstance(entry, TransferredItemInput) for entry in items)):
        items = parse_transferred_items(items)
    repos = repos or default_repositories()

    with transaction():
        transfer = _load_transfer_for_update(transfer_id)

        if _FORWARD.get(transfer.status) != next_status:
            raise InvalidStateTransition("transfer", transfer.status, next_status)

        if next_status == TRANSFER_STATUS_IN_TRANSIT:
            if actor_id is not None:
                transfer.approved_by = require_active_user(repos, actor_id).id
            transfer.transfer_date = utcnow()
        elif next_status == TRANSFER_STATUS_COMPLETED:
            _complete(transfer, items)

        transfer.status = next_status

    return transfer


def cancel_transfer(transfer_id: int) -> StockTransfer:
    """
    Cancel a PENDING or IN_TRANSIT transfer and release its reservations.

    The transfer is kept (status CANCELLED) as an audit record.
    """
    with transaction():
        transfer = _load_transfer_for_update(transfer_id)

        if transfer.status not in _CANCELLABLE:
            raise InvalidStateTransition("transfer", transfer.status, TRANSFER_STATUS_CANCELLED)

        keys = [(item.product_id, transfer.from_warehouse_id) for item in transfer.items]
        locked = ledger_service.lock_records(keys)
        for item in transfer.items:
            key = (item.product_id, transfer.from_warehouse_id)
            ledger_service.release_locked(locked[key], key, item.requested_quantity)

        transfer.status = TRANSFER_STATUS_CANCELLED
        transfer.cancelled_at = utcnow()

    return transfer


def get_transfer(transfer_id: int) -> StockTransfer:
    transfer = db.session.get(StockTransfer, transfer_id)
    if not transfer:
        raise TransferNotFound(f"Transfer {transfer_id} not found", details={"transfer_id": transfer_id})
    return transfer


def list_transfers(status: str | None = None, warehouse_id: int | None = None) -> list[StockTransfer]:
    query = db.session.query(StockTransfer)
    if status:
        query = query.filter(StockTransfer.status == status)
    if warehouse_id is not None:
        query = query.filter(
            (StockTransfer.from_warehouse_id == warehouse_id)
            | (StockTransfer.to_warehouse_id == warehouse_id)
        )
    return query.order_by(StockTransfer.created_at.desc(), StockTransfer.id.desc()).all()
