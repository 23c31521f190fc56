# Overview: Request decorators for API routes; resolve the acting user.

"""
Authentication happens upstream (gateway / session layer). By the time a
request reaches these routes the caller's identity has been resolved and is
forwarded in the X-User-Id header. These decorators only turn that id into
an active User and put it on flask.g; they never read ambient global state
beyond the request itself.
"""

from functools import wraps
from flask import request, jsonify, g

from .errors import UserNotFound, ValidationError
from .services.repositories import default_repositories, require_active_user
from .validation import coerce_int

ACTOR_HEADER = "X-User-Id"


def _resolve_actor():
    raw = request.headers.get(ACTOR_HEADER)
    if not raw:
        return None
    user_id = coerce_int(raw, ACTOR_HEADER)
    return require_active_user(default_repositories(), user_id)


def require_actor(f):
    """
    Require a resolved acting user.

    Sets g.current_user. Returns 401 if the header is missing, malformed or
    does not resolve to an active user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            actor = _resolve_actor()
        except (UserNotFound, ValidationError) as e:
            return jsonify({"error": str(e), "code": "UNAUTHENTICATED"}), 401

        if actor is None:
            return jsonify({"error": "Acting user required", "code": "UNAUTHENTICATED"}), 401

        g.current_user = actor
        return f(*args, **kwargs)

    return decorated_function


def optional_actor(f):
    """Like require_actor, but anonymous requests proceed with g.current_user = None."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.current_user = _resolve_actor()
        except (UserNotFound, ValidationError) as e:
            return jsonify({"error": str(e), "code": "UNAUTHENTICATED"}), 401
        return f(*args, **kwargs)

    return decorated_function
