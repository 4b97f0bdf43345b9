# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/storefront/routes/auth.py
"""Authentication API routes (bearer session tokens)"""

from flask import Blueprint, request, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..responses import envelope
from storefront.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return envelope(400, "email and password required")

        user = auth_service.authenticate(email, password)
        if not user:
            return envelope(401, "Invalid credentials")

        session, token = session_service.create_session(user.id)

        return envelope(200, "Login successful", {
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        })

    except Exception:
        current_app.logger.exception("Failed to login user")
        return envelope(500, "Internal server error")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    try:
        session_service.revoke_session(g.session_token)
        return envelope(200, "Logout successful")
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return envelope(500, "Internal server error")


@auth_bp.get("/me")
@require_auth
def me_route():
    return envelope(200, "OK", {"user": g.current_user.to_dict()})
