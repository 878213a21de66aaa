# Overview: Request decorators for API routes (tenant context, roles) and the error-to-response mapping.

from functools import wraps
from flask import request, jsonify, g

from .errors import (
    ConcurrencyConflict,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
    WarungError,
)

ROLE_OWNER = "owner"
ROLE_STAFF = "staff"
VALID_ROLES = {ROLE_OWNER, ROLE_STAFF}


def require_tenant(f):
    """
    Establish tenant context from the upstream auth layer.

    Sets the following Flask g attributes:
    - g.warung_id: tenant id from X-Warung-Id - REQUIRED
    - g.role: "owner" or "staff" from X-Warung-Role (defaults to staff)

    Returns 401 without a tenant id and 400 for an unknown role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        warung_id = (request.headers.get("X-Warung-Id") or "").strip()
        if not warung_id:
            return jsonify({"error": "Tenant context required"}), 401

        role = (request.headers.get("X-Warung-Role") or ROLE_STAFF).strip().lower()
        if role not in VALID_ROLES:
            return jsonify({"error": f"Invalid role: {role}"}), 400

        g.warung_id = warung_id
        g.role = role
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """Owner-only endpoints: catalog, suppliers, rewards, settings, maintenance."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_tenant was called first
            if not hasattr(g, "warung_id"):
                return jsonify({"error": "Tenant context required"}), 401
            if g.role != role:
                return jsonify({
                    "error": "Permission denied",
                    "required_role": role,
                }), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def error_response(e: WarungError):
    """Map a domain error to its JSON body and HTTP status."""
    if isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, (ConflictError, ConcurrencyConflict)):
        status = 409
    elif isinstance(e, StorageError):
        status = 503
    else:
        status = 400
    return jsonify({"error": str(e), "details": e.details}), status
