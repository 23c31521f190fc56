"""
Sale Transaction Engine

Builds a sale from line items, reserves ledger stock for every line, computes
monetary totals and commission, and issues a sale number. Completion turns
the reservations into permanent deductions; cancellation releases them.

LIFECYCLE:
PENDING -> COMPLETED | CANCELLED  (REFUNDED is set by the payments side)
Every non-PENDING status is terminal for this engine.
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

from ..extensions import db
from ..errors import (
    CashierNotFound,
    InsufficientStock,
    InvalidStateTransition,
    InvalidWarehouseForSaleType,
    SaleNotFound,
    ValidationError,
)
from ..models import Sale, SaleItem
from ..models.catalog import WAREHOUSE_TYPE_ONLINE, WAREHOUSE_TYPE_PHYSICAL
from ..models.sales import (
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING,
    SALE_TYPE_ONLINE,
    SALE_TYPE_RETAIL,
    SALE_TYPE_WHOLESALE,
)
from ..money import ZERO, quantize
from ..time_utils import utcnow
from ..validation import SaleInput, parse_sale_input
from . import ledger_service, packing_service
from .concurrency import lock_for_update, transaction
from .document_service import next_document_number
from .repositories import (
    Repositories,
    default_repositories,
    require_active_products,
    require_active_user,
    require_active_warehouse,
)


# Which sale types each warehouse kind may take
SALE_TYPES_BY_WAREHOUSE = {
    WAREHOUSE_TYPE_PHYSICAL: {SALE_TYPE_RETAIL, SALE_TYPE_WHOLESALE},
    WAREHOUSE_TYPE_ONLINE: {SALE_TYPE_ONLINE},
}


def _aggregate_quantities(items) -> "OrderedDict[int, dict]":
    """Sum quantities per product, remembering which input lines contributed."""
    totals: OrderedDict[int, dict] = OrderedDict()
    for index, item in enumerate(items):
        entry = totals.setdefault(item.product_id, {"quantity": ZERO, "lines": []})
        entry["quantity"] += item.quantity
        entry["lines"].append(index)
    return totals


def _unit_price(item, product, sale_type: str) -> Decimal:
    if item.unit_price is not None:
        return item.unit_price
    if sale_type == SALE_TYPE_WHOLESALE:
        return Decimal(product.wholesale_price)
    return Decimal(product.retail_price)


def calculate_commission(sale_type: str, cashier, total: Decimal) -> Decimal | None:
    """
    Commission is earned on WHOLESALE sales only, and only by a cashier with
    a commission rate: total * rate / 100, rounded half-up to cents.
    """
    if cashier is None or sale_type != SALE_TYPE_WHOLESALE:
        return None
    if cashier.commission_rate is None:
        return None
    return quantize(total * Decimal(cashier.commission_rate) / Decimal(100))


def _build_lines(data: SaleInput, products: dict) -> tuple[list[dict], Decimal]:
    lines = []
    subtotal = ZERO
    for index, item in enumerate(data.items):
        product = products[item.product_id]
        unit_price = _unit_price(item, product, data.sale_type)
        line_total = quantize(item.quantity * unit_price - item.discount_amount)
        if line_total < 0:
            raise ValidationError(
                "Line discount exceeds line amount",
                details={"items": [{"line": index, "product_id": item.product_id}]},
            )
        lines.append({
            "product_id": item.product_id,
            "quantity": item.quantity,
            "unit_price": unit_price,
            "discount_amount": item.discount_amount,
            "total_amount": line_total,
            # Snapshot: later catalog price edits never alter historical margin
            "cost_price": Decimal(product.cost_price),
        })
        subtotal += line_total
    return lines, subtotal


def _reserve_all(warehouse_id: int, totals) -> None:
    """
    Reserve every product's aggregated quantity, or nothing at all.

    All rows are locked in key order and checked before the first
    reservation, so the caller sees every failing line at once.
    """
    keys = [(product_id, warehouse_id) for product_id in totals]
    locked = ledger_service.lock_records(keys)

    failures = []
    for key in keys:
        record = locked[key]
        requested = totals[key[0]]["quantity"]
        available = ZERO if record is None else record.quantity - record.reserved_quantity
        if requested > available:
            failures.append({
                "product_id": key[0],
                "warehouse_id": warehouse_id,
                "lines": totals[key[0]]["lines"],
                "requested_quantity": str(requested),
                "available_quantity": str(max(available, ZERO)),
            })
    if failures:
        raise InsufficientStock(failures)

    for key in keys:
        ledger_service.reserve_locked(locked[key], key, totals[key[0]]["quantity"])


def create_sale(
    sale_input: SaleInput | dict,
    cashier_id: int | None = None,
    *,
    repos: Repositories | None = None,
) -> Sale:
    """
    Create a PENDING sale with its stock reserved.

    Raises:
        WarehouseNotFound / WarehouseInactive
        InvalidWarehouseForSaleType
        CashierNotFound
        ProductNotFound (every missing/inactive line)
        InsufficientStock (every short line)

    Reservations, the sale, its items and (for ONLINE warehouses) its packing
    record are one transaction: any failure rolls all of them back.
    """
    data = sale_input if isinstance(sale_input, SaleInput) else parse_sale_input(sale_input)
    repos = repos or default_repositories()

    warehouse = require_active_warehouse(repos, data.warehouse_id)
    if data.sale_type not in SALE_TYPES_BY_WAREHOUSE.get(warehouse.type, set()):
        raise InvalidWarehouseForSaleType(
            f"{data.sale_type} sales are not allowed in {warehouse.type} warehouses",
            details={"warehouse_id": warehouse.id, "warehouse_type": warehouse.type, "sale_type": data.sale_type},
        )

    cashier = None
    if cashier_id is not None:
        cashier = require_active_user(repos, cashier_id, CashierNotFound)

    products = require_active_products(repos, [item.product_id for item in data.items])

    lines, subtotal = _build_lines(data, products)
    total = quantize(subtotal - data.discount_amount + data.tax_amount)
    if total < 0:
        raise ValidationError("Sale discount exceeds sale amount", details={"field": "discount_amount"})

    with transaction():
        _reserve_all(warehouse.id, _aggregate_quantities(data.items))

        sale = Sale(
            sale_number=next_document_number("SALE"),
            warehouse_id=warehouse.id,
            cashier_id=cashier.id if cashier else None,
            customer_name=data.customer_name,
            customer_contact=data.customer_contact,
            sale_type=data.sale_type,
            status=SALE_STATUS_PENDING,
            subtotal=quantize(subtotal),
            tax_amount=quantize(data.tax_amount),
            discount_amount=quantize(data.discount_amount),
            total_amount=total,
            commission_amount=calculate_commission(data.sale_type, cashier, total),
            tracking_number=data.tracking_number,
            notes=data.notes,
            sale_date=utcnow(),
        )
        sale.items = [SaleItem(**line) for line in lines]
        db.session.add(sale)
        db.session.flush()

        if warehouse.type == WAREHOUSE_TYPE_ONLINE:
            packing_service.create_packing_for_sale(sale)

    return sale


def _load_sale_for_update(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if not sale:
        raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def _sale_keys(sale: Sale) -> "OrderedDict[tuple[int, int], Decimal]":
    quantities: OrderedDict[tuple[int, int], Decimal] = OrderedDict()
    for item in sale.items:
        key = (item.product_id, sale.warehouse_id)
        quantities[key] = quantities.get(key, ZERO) + item.quantity
    return quantities


def complete_sale(sale_id: int) -> Sale:
    """Convert every reservation of a PENDING sale into a stock deduction."""
    with transaction():
        sale = _load_sale_for_update(sale_id)
        if sale.status != SALE_STATUS_PENDING:
            raise InvalidStateTransition("sale", sale.status, SALE_STATUS_COMPLETED)

        quantities = _sale_keys(sale)
        locked = ledger_service.lock_records(quantities.keys())
        for key, qty in quantities.items():
            ledger_service.commit_locked(locked[key], key, qty)

        sale.status = SALE_STATUS_COMPLETED
        sale.completed_at = utcnow()
    return sale


def cancel_sale(sale_id: int) -> Sale:
    """Release every reservation of a PENDING sale. Cancelling twice is an error, not a double release."""
    with transaction():
        sale = _load_sale_for_update(sale_id)
        if sale.status != SALE_STATUS_PENDING:
            raise InvalidStateTransition("sale", sale.status, SALE_STATUS_CANCELLED)

        quantities = _sale_keys(sale)
        locked = ledger_service.lock_records(quantities.keys())
        for key, qty in quantities.items():
            ledger_service.release_locked(locked[key], key, qty)

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_at = utcnow()
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales(status: str | None = None, warehouse_id: int | None = None) -> list[Sale]:
    query = db.session.query(Sale)
    if status:
        query = query.filter(Sale.status == status)
    if warehouse_id is not None:
        query = query.filter(Sale.warehouse_id == warehouse_id)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
