# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

OWNER_HEADER = "X-Owner-Id"


def require_owner(f):
    """
    Require the caller's identity and establish owner context.

    Authentication itself happens upstream; the gateway forwards the
    authenticated user id in the X-Owner-Id header. Sets:
    - g.owner_id: the id all catalog, sale and notification access is scoped to

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        owner_id = (request.headers.get(OWNER_HEADER) or "").strip()
        if not owner_id:
            return jsonify({"error": "Authentication required"}), 401
        if len(owner_id) > 128:
            return jsonify({"error": "Invalid owner id"}), 401

        g.owner_id = owner_id
        return f(*args, **kwargs)

    return decorated_function
