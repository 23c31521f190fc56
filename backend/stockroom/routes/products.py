# Overview: Flask API routes for the product removal policy.

from flask import Blueprint, jsonify, g, current_app

from ..errors import StockroomError
from ..decorators import require_actor
from ..services import products_service
from . import error_response, internal_error


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.delete("/<int:product_id>")
@require_actor
def delete_product_route(product_id: int):
    """
    Hard delete. Only allowed for products with no stock or document history;
    otherwise 409 PRODUCT_IN_USE and the caller should deactivate instead.
    """
    try:
        products_service.delete_product(product_id)
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error()

    current_app.logger.info("Product %s deleted by user %s", product_id, g.current_user.id)
    return "", 204


@products_bp.post("/<int:product_id>/deactivate")
@require_actor
def deactivate_product_route(product_id: int):
    try:
        product = products_service.deactivate_product(product_id)
    except StockroomError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return internal_error()

    current_app.logger.info("Product %s deactivated by user %s", product_id, g.current_user.id)
    return jsonify({"product": product.to_dict()}), 200
