# Overview: Service-layer operations for the inventory ledger; encapsulates business logic and database work.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..errors import BelowReserved, InsufficientStock, InvariantViolation, ProductNotFound, ValidationError
from ..models import InventoryRecord
from ..money import ZERO, to_decimal
from ..time_utils import utcnow
from ..validation import MAX_AMOUNT
from .concurrency import lock_for_update, lock_keys_in_order, transaction
from .repositories import Repositories, default_repositories, require_active_warehouse
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- One InventoryRecord per (product_id, warehouse_id), created lazily.
- quantity is on-hand stock; reserved_quantity is held for pending sales and
  transfers. available = quantity - reserved_quantity.
- 0 <= reserved_quantity <= quantity at rest, always.

Operations:
- reserve: holds available stock; never changes quantity.
- release: drops a hold (floored at 0); never changes quantity.
- commit_reservation: turns a hold into a permanent deduction; the only
  operation besides adjust and transfer_stock that lowers quantity.
- adjust: stock-take correction; may not cut into reserved stock.
- transfer_stock: source commit + destination increment, one unit of work.

Concurrency:
- Every mutation runs with the touched rows locked (SELECT ... FOR UPDATE).
- Multi-row operations lock rows in ascending (product_id, warehouse_id)
  order via lock_records().
- Public functions accept commit=False so composite operations (sales,
  transfers) can run several ledger steps in one transaction.
"""


def _quantity(value, field: str = "quantity", *, allow_zero: bool = False) -> Decimal:
    qty = to_decimal(value, field)
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValidationError(
            f"{field} must be {'non-negative' if allow_zero else 'positive'}",
            details={"field": field, "value": str(qty)},
        )
    # Columns are Numeric(12, 2); anything finer would be rounded on flush
    if qty > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large", details={"field": field, "value": str(qty)})
    if qty.as_tuple().exponent < -2:
        raise ValidationError(
            f"{field} allows at most two decimal places",
            details={"field": field, "value": str(qty)},
        )
    return qty


def _touch(record: InventoryRecord) -> None:
    record.last_updated = utcnow()


def _line(record_or_key, **extra) -> dict:
    if isinstance(record_or_key, InventoryRecord):
        product_id, warehouse_id = record_or_key.product_id, record_or_key.warehouse_id
    else:
        product_id, warehouse_id = record_or_key
    return {"product_id": product_id, "warehouse_id": warehouse_id, **extra}


def get_record(product_id: int, warehouse_id: int, *, lock: bool = False) -> InventoryRecord | None:
    query = db.session.query(InventoryRecord).filter_by(product_id=product_id, warehouse_id=warehouse_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def ensure_record(product_id: int, warehouse_id: int, *, lock: bool = True) -> InventoryRecord:
    """Return the ledger row, creating an empty one on first reference."""
    record = get_record(product_id, warehouse_id, lock=lock)
    if record is not None:
        return record

    record = InventoryRecord(
        product_id=product_id,
        warehouse_id=warehouse_id,
        quantity=ZERO,
        reserved_quantity=ZERO,
        last_updated=utcnow(),
    )
    db.session.add(record)
    db.session.flush()
    return record


def lock_records(keys, *, create_for=()) -> dict[tuple[int, int], InventoryRecord | None]:
    """
    Lock every (product_id, warehouse_id) row in a consistent order.

    Keys listed in create_for get an empty row on first reference; other
    missing rows map to None.
    """
    create_for = set(create_for)
    locked: dict[tuple[int, int], InventoryRecord | None] = {}
    for key in lock_keys_in_order(list(keys) + list(create_for)):
        product_id, warehouse_id = key
        if key in create_for:
            locked[key] = ensure_record(product_id, warehouse_id, lock=True)
        else:
            locked[key] = get_record(product_id, warehouse_id, lock=True)
    return locked


def get_available(product_id: int, warehouse_id: int) -> Decimal:
    """Sellable/transferable stock; 0 when the row does not exist, never negative."""
    record = get_record(product_id, warehouse_id)
    if record is None:
        return ZERO
    return max(record.quantity - record.reserved_quantity, ZERO)


# ---------------------------------------------------------------------------
# Row-level steps (caller holds the lock)
# ---------------------------------------------------------------------------

def reserve_locked(record: InventoryRecord | None, key: tuple[int, int], qty: Decimal) -> None:
    available = ZERO if record is None else record.quantity - record.reserved_quantity
    if record is None or qty > available:
        raise InsufficientStock([_line(key, requested_quantity=str(qty), available_quantity=str(available))])
    record.reserved_quantity = record.reserved_quantity + qty
    _touch(record)


def release_locked(record: InventoryRecord | None, key: tuple[int, int], qty: Decimal) -> None:
    if record is None:
        raise InvariantViolation(
            "Cannot release stock on a missing ledger row",
            details={"items": [_line(key, release_quantity=str(qty))]},
        )
    record.reserved_quantity = max(record.reserved_quantity - qty, ZERO)
    _touch(record)


def commit_locked(record: InventoryRecord | None, key: tuple[int, int], qty: Decimal) -> None:
    if record is None or qty > record.reserved_quantity or qty > record.quantity:
        raise InvariantViolation(
            "Commit would drive the ledger negative",
            details={"items": [_line(
                key,
                commit_quantity=str(qty),
                quantity=None if record is None else str(record.quantity),
                reserved_quantity=None if record is None else str(record.reserved_quantity),
            )]},
        )
    record.quantity = record.quantity - qty
    record.reserved_quantity = record.reserved_quantity - qty
    _touch(record)


def increment_locked(record: InventoryRecord, qty: Decimal) -> None:
    record.quantity = record.quantity + qty
    _touch(record)


# ---------------------------------------------------------------------------
# Public ledger operations
# ---------------------------------------------------------------------------

def reserve(product_id: int, warehouse_id: int, quantity, *, commit: bool = True) -> InventoryRecord:
    """Hold available stock. Raises InsufficientStock if quantity > available."""
    qty = _quantity(quantity)
    with transaction(commit=commit):
        record = get_record(product_id, warehouse_id, lock=True)
        reserve_locked(record, (product_id, warehouse_id), qty)
    return record


def release(product_id: int, warehouse_id: int, quantity, *, commit: bool = True) -> InventoryRecord:
    """Drop a hold; reserved_quantity never goes below 0."""
    qty = _quantity(quantity)
    with transaction(commit=commit):
        record = get_record(product_id, warehouse_id, lock=True)
        release_locked(record, (product_id, warehouse_id), qty)
    return record


def commit_reservation(product_id: int, warehouse_id: int, quantity, *, commit: bool = True) -> InventoryRecord:
    """Convert a hold into a permanent deduction of on-hand stock."""
    qty = _quantity(quantity)
    with transaction(commit=commit):
        record = get_record(product_id, warehouse_id, lock=True)
        commit_locked(record, (product_id, warehouse_id), qty)
    return record


def adjust(
    product_id: int,
    warehouse_id: int,
    new_quantity,
    *,
    commit: bool = True,
    repos: Repositories | None = None,
) -> InventoryRecord:
    """
    Stock-take correction: set on-hand quantity directly.

    Refuses to go below reserved_quantity so in-flight reservations stay
    covered. The product must exist and the warehouse must be active before
    a ledger row is created for them.

    Raises:
        ProductNotFound / WarehouseNotFound / WarehouseInactive
        BelowReserved
    """
    qty = _quantity(new_quantity, "new_quantity", allow_zero=True)
    repos = repos or default_repositories()
    with transaction(commit=commit):
        if repos.products.find_by_id(product_id) is None:
            raise ProductNotFound(
                f"Product {product_id} not found",
                details={"items": [_line((product_id, warehouse_id), reason="not_found")]},
            )
        require_active_warehouse(repos, warehouse_id)
        record = ensure_record(product_id, warehouse_id, lock=True)
        if qty < record.reserved_quantity:
            raise BelowReserved(
                f"Cannot set quantity ({qty}) below reserved quantity ({record.reserved_quantity})",
                details={"items": [_line(
                    record,
                    new_quantity=str(qty),
                    reserved_quantity=str(record.reserved_quantity),
                )]},
            )
        record.quantity = qty
        _touch(record)
    return record


def receive(product_id: int, warehouse_id: int, quantity, *, commit: bool = True) -> InventoryRecord:
    """Increase on-hand stock (inbound goods, transfer arrivals)."""
    qty = _quantity(quantity)
    with transaction(commit=commit):
        record = ensure_record(product_id, warehouse_id, lock=True)
        increment_locked(record, qty)
    return record


def transfer_stock_locked(
    source: InventoryRecord | None,
    destination: InventoryRecord,
    source_key: tuple[int, int],
    quantity: Decimal,
    reserved: Decimal,
) -> None:
    """
    Move quantity out of a reservation at the source into the destination.

    Of the reserved amount, `quantity` is committed at the source and added
    at the destination; the remainder (short shipment) is released back to
    the source's available stock.
    """
    if quantity > reserved:
        raise InvariantViolation(
            "Cannot move more than was reserved",
            details={"items": [_line(source_key, quantity=str(quantity), reserved=str(reserved))]},
        )
    if quantity > 0:
        commit_locked(source, source_key, quantity)
        increment_locked(destination, quantity)
    remainder = reserved - quantity
    if remainder > 0:
        release_locked(source, source_key, remainder)


def transfer_stock(
    product_id: int,
    from_warehouse_id: int,
    to_warehouse_id: int,
    quantity,
    *,
    reserved=None,
    commit: bool = True,
) -> tuple[InventoryRecord, InventoryRecord]:
    """
    Atomic source-commit + destination-increment for one product.

    Both rows are locked in key order; if either side fails nothing is
    applied. `reserved` defaults to `quantity` (full shipment).
    """
    qty = _quantity(quantity, allow_zero=True)
    held = qty if reserved is None else _quantity(reserved, "reserved")
    if from_warehouse_id == to_warehouse_id:
        raise ValidationError("Source and destination warehouse must differ")

    source_key = (product_id, from_warehouse_id)
    destination_key = (product_id, to_warehouse_id)
    with transaction(commit=commit):
        locked = lock_records([source_key], create_for=[destination_key])
        transfer_stock_locked(locked[source_key], locked[destination_key], source_key, qty, held)
    return locked[source_key], locked[destination_key]
