# Overview: Resolves the user identifiers clients send to internal users.

from __future__ import annotations

from ..extensions import db
from ..models import User
from ..errors import UserNotFound, ValidationError


def resolve_user(identifier) -> User:
    """
    Resolve a user from either identifier form.

    Clients may send the opaque public UUID or the internal numeric id.
    An identifier containing a dash is treated as a public UUID and
    reconciled to the internal user; anything else must be an integer id.
    """
    if identifier is None or (isinstance(identifier, str) and not identifier.strip()):
        raise ValidationError("User ID is required")

    if isinstance(identifier, bool):
        raise ValidationError("Invalid user id")

    if isinstance(identifier, str) and "-" in identifier:
        user = db.session.query(User).filter_by(public_id=identifier.strip()).first()
    else:
        try:
            user_id = int(str(identifier).strip())
        except ValueError:
            raise ValidationError("Invalid user id")
        user = db.session.get(User, user_id)

    if user is None or not user.is_active:
        raise UserNotFound("User not found", details={"user_id": str(identifier)})
    return user
