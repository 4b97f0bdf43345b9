# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, g

from .services import session_service
from .responses import envelope


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated User and g.session_token to
    the plaintext token (for logout). Returns 401 for a missing, invalid
    or expired token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return envelope(401, "Authentication required")

        user = session_service.validate_session(token)
        if not user:
            return envelope(401, "Invalid or expired token")

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Apply after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, 'current_user'):
            return envelope(401, "Authentication required")
        if not g.current_user.is_admin:
            return envelope(403, "Admin access required")
        return f(*args, **kwargs)
    return decorated_function
