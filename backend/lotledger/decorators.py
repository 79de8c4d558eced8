# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _auth_error(code: str, message: str, status: int):
    return jsonify({"error": {"code": code, "message": message}}), status


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.tenant_id: The tenant ID (from the session record) - REQUIRED
    - g.role: The user's role ("admin" or "staff")
    - g.session_context: The full SessionContext object

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account or tenant deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return _auth_error("UNAUTHORIZED", "Authentication required", 401)

        context = session_service.validate_session(token)

        if not context:
            return _auth_error("UNAUTHORIZED", "Invalid or expired token", 401)

        g.current_user = context.user
        g.tenant_id = context.tenant_id
        g.role = context.role
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "current_user"):
                return _auth_error("UNAUTHORIZED", "Authentication required", 401)
            if g.role not in roles:
                return _auth_error("FORBIDDEN", "Not authorized", 403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
