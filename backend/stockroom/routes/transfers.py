# backend/stockroom/routes/transfers.py
"""
Inter-warehouse stock transfer API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockroomError
from ..decorators import require_actor
from ..services import transfer_service
from ..services.concurrency import run_with_retry
from . import error_response, internal_error


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_actor
def create_transfer():
    """
    Request a transfer; item quantities are reserved at the source.

    Request body:
    {
        "from_warehouse_id": int,
        "to_warehouse_id": int,
        "items": [{"product_id": int, "requested_quantity": num}],
        "notes": str (optional)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        404: Warehouse, product or requester not found
        409: Same warehouse, inactive warehouse or insufficient stock
    """
    data = request.get_json(silent=True)

    try:
        transfer = run_with_retry(
            lambda: transfer_service.create_stock_transfer(data, requested_by=g.current_user.id)
        )
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create transfer")
        return internal_error()

    current_app.logger.info(
        "Transfer %s requested from warehouse %s to %s",
        transfer.transfer_number, transfer.from_warehouse_id, transfer.to_warehouse_id,
    )
    return jsonify(transfer.to_dict(include_items=True)), 201


@transfers_bp.route("", methods=["GET"])
def list_transfers():
    status = request.args.get("status")
    warehouse_id = request.args.get("warehouse_id", type=int)
    transfers = transfer_service.list_transfers(status=status, warehouse_id=warehouse_id)
    return jsonify({"transfers": [t.to_dict() for t in transfers]}), 200


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
def get_transfer(transfer_id: int):
    try:
        transfer = transfer_service.get_transfer(transfer_id)
    except StockroomError as e:
        return error_response(e)
    return jsonify(transfer.to_dict(include_items=True)), 200


@transfers_bp.route("/<int:transfer_id>/advance", methods=["POST"])
@require_actor
def advance_transfer(transfer_id: int):
    """
    Advance a transfer one step (PENDING -> IN_TRANSIT -> COMPLETED).

    Request body:
    {
        "status": "IN_TRANSIT" | "COMPLETED",
        "items": [{"product_id": int, "transferred_quantity": num}]  (optional, COMPLETED only)
    }
    """
    data = request.get_json(silent=True) or {}
    next_status = data.get("status")
    if not next_status:
        return jsonify({"error": "Missing required field: status", "code": "VALIDATION_ERROR", "details": {}}), 400

    try:
        transfer = run_with_retry(
            lambda: transfer_service.advance_transfer(
                transfer_id,
                next_status,
                data.get("items"),
                actor_id=g.current_user.id,
            )
        )
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to advance transfer")
        return internal_error()

    current_app.logger.info("Transfer %s moved to %s", transfer.transfer_number, transfer.status)
    return jsonify(transfer.to_dict(include_items=True)), 200


@transfers_bp.route("/<int:transfer_id>/cancel", methods=["POST"])
@require_actor
def cancel_transfer(transfer_id: int):
    """Cancel a PENDING or IN_TRANSIT transfer; reservations are released."""
    try:
        transfer = run_with_retry(lambda: transfer_service.cancel_transfer(transfer_id))
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel transfer")
        return internal_error()

    current_app.logger.info("Transfer %s cancelled by user %s", transfer.transfer_number, g.current_user.id)
    return jsonify(transfer.to_dict(include_items=True)), 200
