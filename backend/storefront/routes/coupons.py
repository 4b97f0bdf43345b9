# Overview: Flask API routes for coupons; parses input and returns JSON responses.

# backend/storefront/routes/coupons.py
"""Coupon API routes (customer side)"""

from flask import Blueprint, request, current_app, g

from ..services import coupon_service
from ..errors import StorefrontError
from ..decorators import require_auth
from ..responses import envelope, error_response


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


@coupons_bp.post("/validate")
@require_auth
def validate_coupon_route():
    """
    Check a coupon against a cart total without consuming it.

    Body: {code, cart_total_paise, items?: [{product_id}]}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = coupon_service.validate_coupon_for_cart(
            data.get("code"),
            g.current_user.id,
            data.get("cart_total_paise"),
            data.get("items"),
        )
        return envelope(200, "Coupon applied successfully", result)

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to validate coupon")
        return envelope(500, "Internal server error")


@coupons_bp.post("/select")
@require_auth
def select_coupon_route():
    """Remember the coupon to use at checkout. Body: {code}"""
    try:
        data = request.get_json(silent=True) or {}
        selection = coupon_service.select_coupon(g.current_user.id, data.get("code"))
        return envelope(200, "Coupon selected", selection.to_dict())

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to select coupon")
        return envelope(500, "Internal server error")
