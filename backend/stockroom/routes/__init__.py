# Overview: Shared helpers for the API blueprints.

from flask import jsonify

from ..extensions import db
from ..errors import StockroomError


def error_response(error: StockroomError):
    """Roll back the request's session and answer with the typed error."""
    db.session.rollback()
    return jsonify(error.to_dict()), error.status_code


def internal_error():
    db.session.rollback()
    return jsonify({"error": "Internal server error"}), 500
