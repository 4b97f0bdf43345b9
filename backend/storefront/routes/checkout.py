# Overview: Flask API route for checkout; parses input and returns JSON responses.

# backend/storefront/routes/checkout.py
"""Checkout API route"""

from flask import Blueprint, request, current_app, g

from ..services import checkout_service
from ..errors import StorefrontError
from ..decorators import require_auth
from ..responses import envelope, error_response


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@require_auth
def checkout_route():
    """
    Place an order from the caller's cart.

    Body: {userId?, addressId? | address?, skipAddress?, paymentMethod,
    deliveryType?, couponCode?, rewardPoints?, orderSummaryId?,
    idempotencyKey?}. The Idempotency-Key header takes precedence over
    the body field.

    Returns 201 with {orderId, total, estimatedDelivery, rewardsEarned}.
    """
    try:
        data = request.get_json(silent=True)
        if data is None:
            data = {}

        result = checkout_service.place_order(
            data,
            session_user=g.current_user,
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        return envelope(201, "Order placed successfully", result)

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to place order")
        return envelope(500, "Internal server error")
