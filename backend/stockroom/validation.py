from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .errors import ValidationError
from .models.sales import SALE_TYPES
from .money import ZERO, to_decimal
from .time_utils import parse_iso_datetime

# Maximum monetary amount / quantity that fits Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    quantity: Decimal
    unit_price: Optional[Decimal] = None  # None -> product's retail/wholesale price
    discount_amount: Decimal = ZERO


@dataclass(frozen=True)
class SaleInput:
    warehouse_id: int
    sale_type: str
    items: list[SaleItemInput]
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    tax_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tracking_number: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class TransferItemInput:
    product_id: int
    requested_quantity: Decimal


@dataclass(frozen=True)
class TransferInput:
    from_warehouse_id: int
    to_warehouse_id: int
    items: list[TransferItemInput]
    notes: Optional[str] = None


@dataclass(frozen=True)
class TransferredItemInput:
    """Actual quantity shipped for one product when completing a transfer."""
    product_id: int
    transferred_quantity: Decimal


@dataclass(frozen=True)
class PackingMeta:
    packer_id: Optional[int] = None
    tracking_info: Optional[str] = None
    notes: Optional[str] = None
    packed_date: Optional[datetime] = None
    shipped_date: Optional[datetime] = None


def _require(data: dict, key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValidationError(f"Missing required field: {key}", details={"field": key})
    return data[key]


def coerce_int(value: Any, key: str) -> int:
    """Strict integer ids: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{key} must be an integer", details={"field": key})


def _amount(value: Any, key: str, *, positive: bool = False) -> Decimal:
    amount = to_decimal(value, key)
    if amount < 0 or (positive and amount == 0):
        raise ValidationError(
            f"{key} must be {'positive' if positive else 'non-negative'}",
            details={"field": key},
        )
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{key} is too large", details={"field": key})
    if amount.as_tuple().exponent < -2:
        raise ValidationError(f"{key} allows at most two decimal places", details={"field": key})
    return amount


def _optional_text(data: dict, key: str, max_length: int | None = None) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string", details={"field": key})
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters", details={"field": key})
    return value or None


def _items(data: dict) -> list[dict]:
    items = _require(data, "items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list", details={"field": "items"})
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object", details={"field": f"items[{index}]"})
    return items


def parse_sale_input(data: dict) -> SaleInput:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    sale_type = _require(data, "sale_type")
    if sale_type not in SALE_TYPES:
        raise ValidationError(
            f"sale_type must be one of {', '.join(SALE_TYPES)}",
            details={"field": "sale_type"},
        )

    items = []
    for index, raw in enumerate(_items(data)):
        prefix = f"items[{index}]"
        unit_price = raw.get("unit_price")
        items.append(SaleItemInput(
            product_id=coerce_int(_require(raw, "product_id"), f"{prefix}.product_id"),
            quantity=_amount(_require(raw, "quantity"), f"{prefix}.quantity", positive=True),
            unit_price=None if unit_price is None else _amount(unit_price, f"{prefix}.unit_price"),
            discount_amount=_amount(raw.get("discount_amount", 0), f"{prefix}.discount_amount"),
        ))

    return SaleInput(
        warehouse_id=coerce_int(_require(data, "warehouse_id"), "warehouse_id"),
        sale_type=sale_type,
        items=items,
        customer_name=_optional_text(data, "customer_name", 100),
        customer_contact=_optional_text(data, "customer_contact", 100),
        tax_amount=_amount(data.get("tax_amount", 0), "tax_amount"),
        discount_amount=_amount(data.get("discount_amount", 0), "discount_amount"),
        tracking_number=_optional_text(data, "tracking_number", 100),
        notes=_optional_text(data, "notes"),
    )


def parse_transfer_input(data: dict) -> TransferInput:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    items = []
    for index, raw in enumerate(_items(data)):
        prefix = f"items[{index}]"
        items.append(TransferItemInput(
            product_id=coerce_int(_require(raw, "product_id"), f"{prefix}.product_id"),
            requested_quantity=_amount(
                _require(raw, "requested_quantity"), f"{prefix}.requested_quantity", positive=True
            ),
        ))

    product_ids = [item.product_id for item in items]
    if len(set(product_ids)) != len(product_ids):
        raise ValidationError("Each product may appear only once per transfer", details={"field": "items"})

    return TransferInput(
        from_warehouse_id=coerce_int(_require(data, "from_warehouse_id"), "from_warehouse_id"),
        to_warehouse_id=coerce_int(_require(data, "to_warehouse_id"), "to_warehouse_id"),
        items=items,
        notes=_optional_text(data, "notes"),
    )


def parse_transferred_items(raw_items: Any) -> Optional[list[TransferredItemInput]]:
    if raw_items is None:
        return None
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list", details={"field": "items"})

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", details={"field": f"items[{index}]"})
        prefix = f"items[{index}]"
        items.append(TransferredItemInput(
            product_id=coerce_int(_require(raw, "product_id"), f"{prefix}.product_id"),
            transferred_quantity=_amount(_require(raw, "transferred_quantity"), f"{prefix}.transferred_quantity"),
        ))
    return items


def _optional_datetime(data: dict, key: str) -> Optional[datetime]:
    value = data.get(key)
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be an ISO-8601 string", details={"field": key})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 string", details={"field": key})


def parse_packing_meta(data: Optional[dict]) -> PackingMeta:
    if data is None:
        return PackingMeta()
    if not isinstance(data, dict):
        raise ValidationError("meta must be an object")

    packer_id = data.get("packer_id")
    return PackingMeta(
        packer_id=None if packer_id is None else coerce_int(packer_id, "packer_id"),
        tracking_info=_optional_text(data, "tracking_info"),
        notes=_optional_text(data, "notes"),
        packed_date=_optional_datetime(data, "packed_date"),
        shipped_date=_optional_datetime(data, "shipped_date"),
    )
