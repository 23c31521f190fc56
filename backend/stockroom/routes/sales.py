# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockroom/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockroomError
from ..services import sales_service
from ..services.concurrency import run_with_retry
from ..decorators import optional_actor, require_actor
from . import error_response, internal_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@optional_actor
def create_sale_route():
    """
    Create a PENDING sale and reserve its stock.

    The acting user (if any) is recorded as the cashier.

    Request body:
    {
        "warehouse_id": int,
        "sale_type": "RETAIL" | "WHOLESALE" | "ONLINE",
        "items": [{"product_id": int, "quantity": num, "unit_price": num?, "discount_amount": num?}],
        "customer_name": str?, "customer_contact": str?,
        "tax_amount": num?, "discount_amount": num?, "tracking_number": str?, "notes": str?
    }
    """
    data = request.get_json(silent=True)
    cashier_id = g.current_user.id if g.current_user else None

    try:
        sale = run_with_retry(lambda: sales_service.create_sale(data, cashier_id))
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error()

    current_app.logger.info("Sale %s created in warehouse %s", sale.sale_number, sale.warehouse_id)
    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.get("")
def list_sales_route():
    status = request.args.get("status")
    warehouse_id = request.args.get("warehouse_id", type=int)
    sales = sales_service.list_sales(status=status, warehouse_id=warehouse_id)
    return jsonify({"sales": [sale.to_dict() for sale in sales]}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Get sale with items (and packing, for online sales)."""
    try:
        sale = sales_service.get_sale(sale_id)
    except StockroomError as e:
        return error_response(e)

    payload = {"sale": sale.to_dict(include_items=True)}
    if sale.packing is not None:
        payload["packing"] = sale.packing.to_dict()
    return jsonify(payload), 200


@sales_bp.post("/<int:sale_id>/complete")
@require_actor
def complete_sale_route(sale_id: int):
    """Complete a PENDING sale: reservations become stock deductions."""
    try:
        sale = run_with_retry(lambda: sales_service.complete_sale(sale_id))
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete sale")
        return internal_error()

    current_app.logger.info("Sale %s completed by user %s", sale.sale_number, g.current_user.id)
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200


@sales_bp.post("/<int:sale_id>/cancel")
@require_actor
def cancel_sale_route(sale_id: int):
    """Cancel a PENDING sale: reservations are released."""
    try:
        sale = run_with_retry(lambda: sales_service.cancel_sale(sale_id))
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return internal_error()

    current_app.logger.info("Sale %s cancelled by user %s", sale.sale_number, g.current_user.id)
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200
