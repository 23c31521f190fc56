# backend/stockroom/routes/inventory.py
"""
Inventory ledger routes.

Reads are open to any caller; the stock-take adjustment needs an acting user.
Sale and transfer reservations never go through these routes; they are
driven by the sales and transfer engines.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockroomError, ValidationError
from ..decorators import require_actor
from ..money import to_str
from ..services import inventory_service, ledger_service
from ..services.concurrency import run_with_retry
from ..validation import coerce_int
from . import error_response, internal_error


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    warehouse_id = request.args.get("warehouse_id", type=int)
    records = inventory_service.list_inventory(warehouse_id=warehouse_id)
    return jsonify({"inventory": [record.to_dict() for record in records]}), 200


@inventory_bp.get("/low-stock")
def low_stock_route():
    """Rows at or below the product's minimum_stock_level."""
    warehouse_id = request.args.get("warehouse_id", type=int)
    records = inventory_service.list_low_stock(warehouse_id=warehouse_id)
    return jsonify({"inventory": [record.to_dict() for record in records]}), 200


@inventory_bp.get("/available")
def available_route():
    """GET /api/inventory/available?product_id=1&warehouse_id=2"""
    try:
        product_id = coerce_int(request.args.get("product_id"), "product_id")
        warehouse_id = coerce_int(request.args.get("warehouse_id"), "warehouse_id")
    except ValidationError as e:
        return error_response(e)

    available = inventory_service.get_available_stock(product_id, warehouse_id)
    return jsonify({
        "product_id": product_id,
        "warehouse_id": warehouse_id,
        "available_quantity": to_str(available),
    }), 200


@inventory_bp.put("")
@require_actor
def adjust_inventory_route():
    """
    Stock-take: set the on-hand quantity of one product in one warehouse.

    Request body:
    {
        "product_id": int,
        "warehouse_id": int,
        "quantity": num   (>= 0 and >= reserved_quantity)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        product_id = coerce_int(data.get("product_id"), "product_id")
        warehouse_id = coerce_int(data.get("warehouse_id"), "warehouse_id")
        if data.get("quantity") is None:
            raise ValidationError("Missing required field: quantity", details={"field": "quantity"})
        record = run_with_retry(
            lambda: ledger_service.adjust(product_id, warehouse_id, data["quantity"])
        )
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return internal_error()

    current_app.logger.info(
        "Inventory adjusted: product %s warehouse %s quantity=%s by user %s",
        product_id, warehouse_id, record.quantity, g.current_user.id,
    )
    return jsonify({"inventory": record.to_dict()}), 200
