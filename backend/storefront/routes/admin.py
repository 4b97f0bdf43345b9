# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin API routes: coupons, reward configuration and adjustments, order
status progression. Every route requires an authenticated admin.
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..services import coupon_service, identity_service, order_service, reward_service
from ..services.concurrency import run_with_retry
from ..errors import StorefrontError, ValidationError
from ..decorators import require_auth, require_admin
from ..responses import envelope, error_response


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/coupons")
@require_auth
@require_admin
def create_coupon_route():
    """
    Create a coupon.

    Body: {code, discount_type, discount_value, min_order_value_paise?,
    max_discount_paise?, usage_limit?, usage_limit_per_user?, expiry_date?,
    applicable_products?, applicable_categories?, description?, is_active?}
    Percentage discount_value is a whole percent (10 means 10% off).
    """
    try:
        data = request.get_json(silent=True) or {}
        coupon = coupon_service.create_coupon(data)
        current_app.logger.info("Coupon %s created by admin %s", coupon.code, g.current_user.id)
        return envelope(201, "Coupon created", coupon.to_dict())

    except StorefrontError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create coupon")
        return envelope(500, "Internal server error")


@admin_bp.get("/rewards/config")
@require_auth
@require_admin
def get_reward_config_route():
    config = reward_service.get_active_config()
    return envelope(200, "OK", config.to_dict() if config else None)


@admin_bp.put("/rewards/config")
@require_auth
@require_admin
def update_reward_config_route():
    try:
        data = request.get_json(silent=True) or {}
        config = reward_service.update_config(data)
        return envelope(200, "Reward configuration updated", config.to_dict())

    except StorefrontError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update reward configuration")
        return envelope(500, "Internal server error")


@admin_bp.post("/rewards/adjust")
@require_auth
@require_admin
def adjust_rewards_route():
    """Body: {userId, amount, reason}"""
    try:
        data = request.get_json(silent=True) or {}
        user = identity_service.resolve_user(data.get("userId", data.get("user_id")))
        amount = data.get("amount")
        reason = data.get("reason")

        txn = run_with_retry(lambda: reward_service.adjust(user.id, amount, reason))
        current_app.logger.info(
            "Reward adjustment %s for user %s by admin %s", amount, user.id, g.current_user.id
        )
        return envelope(200, "Reward points adjusted", txn.to_dict())

    except StorefrontError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust reward points")
        return envelope(500, "Internal server error")


@admin_bp.post("/orders/<order_ref>/status")
@require_auth
@require_admin
def update_order_status_route(order_ref: str):
    """Body: {status, trackingId?, trackingUrl?, deliveryPartnerId?, reason?}"""
    try:
        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if not status:
            raise ValidationError("status is required")

        order = order_service.transition_status(
            order_ref,
            status,
            actor="admin",
            actor_id=g.current_user.id,
            tracking_id=data.get("trackingId"),
            tracking_url=data.get("trackingUrl"),
            delivery_partner_id=data.get("deliveryPartnerId"),
            cancel_reason=data.get("reason"),
        )
        return envelope(200, "Order status updated", order.to_dict())

    except StorefrontError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order status")
        return envelope(500, "Internal server error")
