# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/lotledger/routes/auth.py
"""
Authentication API routes

- signup creates a tenant and its first admin user
- login / logout manage bearer session tokens
- admins add further users (admin or staff) to their own tenant
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LedgerError, ServerError
from ..extensions import db
from ..models import User, ROLE_ADMIN
from ..schemas import LoginInput, SignupInput, UserInput
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth, require_role


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "tenant": user.tenant.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "tenant_id": session.tenant_id,
    }


@auth_bp.post("/signup")
def signup_route():
    """
    Create a tenant with its first admin user and log that user in.

    Request body:
    {
        "business_name": "Acme Textiles",
        "admin_name": "Ada",
        "email": "owner@acme.test",
        "password": "...",
        "lot_prefix": "ACME-"      // optional, defaults to "LOT-"
    }
    """
    try:
        data = SignupInput.from_payload(request.get_json(silent=True))
        tenant, user = auth_service.signup(data)

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _session_payload(user, session, token)
        payload["message"] = "Signup successful"
        return jsonify(payload), 201

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to sign up tenant")
        return ServerError().to_response()


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = LoginInput.from_payload(request.get_json(silent=True))
        user = auth_service.authenticate(data.email, data.password)

        if not user:
            current_app.logger.info("Failed login for %s from %s", data.email, request.remote_addr)
            return jsonify({"error": {"code": "UNAUTHORIZED", "message": "Invalid credentials"}}), 401

        session, token = session_service.create_session(
            user,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _session_payload(user, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to login user")
        return ServerError().to_response()


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": {"code": "UNAUTHORIZED", "message": "Authorization header required"}}), 401

        token = auth_header.split(" ", 1)[1]

        revoked = session_service.revoke_session(token, reason="User logout")

        if not revoked:
            return jsonify({"error": {"code": "UNAUTHORIZED", "message": "Invalid or expired token"}}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return ServerError().to_response()


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": g.current_user.to_dict(),
        "tenant": g.current_user.tenant.to_dict(),
        "tenant_id": g.tenant_id,
    }), 200


@auth_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    users = (
        db.session.query(User)
        .filter(User.tenant_id == g.tenant_id)
        .order_by(User.id.asc())
        .all()
    )
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@auth_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Admin creates a user in their own tenant.

    Request body: {"name", "email", "password", "role": "admin" | "staff"}
    """
    try:
        data = UserInput.from_payload(request.get_json(silent=True))
        user = auth_service.create_user(g.tenant_id, data)
        current_app.logger.info(
            "User %s (%s) created in tenant %s by %s",
            user.id, user.role, g.tenant_id, g.current_user.id,
        )
        return jsonify({"user": user.to_dict()}), 201

    except LedgerError as e:
        return e.to_response()
    except Exception:
        current_app.logger.exception("Failed to create user")
        return ServerError().to_response()
