# backend/storefront/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Flat delivery charges in paise (no weight/distance model)
    DELIVERY_CHARGE_NORMAL_PAISE = int(os.environ.get("DELIVERY_CHARGE_NORMAL_PAISE", "5000"))
    DELIVERY_CHARGE_EXPEDITED_PAISE = int(os.environ.get("DELIVERY_CHARGE_EXPEDITED_PAISE", "10000"))

    # Estimated delivery window in days
    DELIVERY_DAYS_NORMAL = int(os.environ.get("DELIVERY_DAYS_NORMAL", "5"))
    DELIVERY_DAYS_EXPEDITED = int(os.environ.get("DELIVERY_DAYS_EXPEDITED", "2"))

    # When False a failed reward redemption at checkout applies zero discount and continues
    REWARD_REDEMPTION_STRICT = _env_bool("REWARD_REDEMPTION_STRICT", False)

    # HTTP status returned when a cart line's product is gone or inactive
    PRODUCT_UNAVAILABLE_STATUS = int(os.environ.get("PRODUCT_UNAVAILABLE_STATUS", "409"))

    # bcrypt cost factor for password hashes
    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))
