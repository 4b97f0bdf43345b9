# Overview: Service-layer operations for users and passwords.

"""
User accounts and password verification.

Passwords are hashed with bcrypt; the cost factor comes from the
BCRYPT_LOG_ROUNDS setting (12 unless overridden).
"""

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..errors import ConflictError, ValidationError

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe bcrypt comparison; False for a missing or malformed hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    name: str | None = None,
    phone: str | None = None,
    is_admin: bool = False,
) -> User:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("User already exists", details={"email": email})

    user = User(
        email=email,
        name=name,
        phone=phone,
        password_hash=hash_password(password),
        is_admin=is_admin,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Return the active user for valid credentials, otherwise None."""
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None
    if verify_password(password, user.password_hash):
        return user
    return None
