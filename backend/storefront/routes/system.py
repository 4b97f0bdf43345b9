# backend/storefront/routes/system.py
"""
System health endpoint.

Checks the database and the active reward configuration so deployments
can tell a reachable-but-unconfigured storefront from a healthy one.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, Product, Order
from ..services import reward_service
from storefront.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        product_count = db.session.query(Product).count()
        order_count = db.session.query(Order).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "products": product_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_rewards_health() -> dict:
    """Degraded (not unhealthy) when no reward configuration is active."""
    try:
        config = reward_service.get_active_config()
    except Exception:
        current_app.logger.exception("Rewards health check failed")
        return {"status": "unhealthy", "error": "Rewards configuration error"}

    if config is None:
        return {"status": "degraded", "warning": "No active reward configuration"}
    return {"status": "healthy", "details": {"config": config.name}}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    rewards_health = check_rewards_health() if database_health["status"] == "healthy" else {"status": "unknown"}

    if database_health["status"] == "unhealthy" or rewards_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif rewards_health["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "rewards": rewards_health,
        }
    }
    return response, http_status
