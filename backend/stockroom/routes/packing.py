# Overview: Flask API routes for the packing workflow of online sales.

from flask import Blueprint, request, jsonify, current_app

from ..errors import StockroomError
from ..decorators import require_actor
from ..services import packing_service
from ..services.concurrency import run_with_retry
from . import error_response, internal_error


packing_bp = Blueprint("packing", __name__, url_prefix="/api/packing")


@packing_bp.get("")
def list_packing_route():
    """Packing queue, optionally filtered by ?status=."""
    records = packing_service.list_packing(status=request.args.get("status"))
    return jsonify({"packing": [record.to_dict() for record in records]}), 200


@packing_bp.get("/<int:packing_id>")
def get_packing_route(packing_id: int):
    try:
        packing = packing_service.get_packing(packing_id)
    except StockroomError as e:
        return error_response(e)
    return jsonify({"packing": packing.to_dict()}), 200


@packing_bp.post("/<int:packing_id>/advance")
@require_actor
def advance_packing_route(packing_id: int):
    """
    Advance packing exactly one step.

    Request body:
    {
        "status": "IN_PROGRESS" | "PACKED" | "SHIPPED",
        "packer_id": int?, "tracking_info": str?, "notes": str?,
        "packed_date": iso8601?, "shipped_date": iso8601?
    }
    """
    data = request.get_json(silent=True) or {}
    next_status = data.get("status")
    if not next_status:
        return jsonify({"error": "Missing required field: status", "code": "VALIDATION_ERROR", "details": {}}), 400
    meta = {key: value for key, value in data.items() if key != "status"}

    try:
        packing = run_with_retry(lambda: packing_service.advance_packing(packing_id, next_status, meta))
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to advance packing")
        return internal_error()

    current_app.logger.info("Packing %s for sale %s moved to %s", packing.id, packing.sale_id, packing.status)
    return jsonify({"packing": packing.to_dict()}), 200
