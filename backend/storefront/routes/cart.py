# Overview: Flask API routes for the cart; parses input and returns JSON responses.

# backend/storefront/routes/cart.py
"""Cart API routes"""

from flask import Blueprint, request, current_app, g

from ..services import cart_service
from ..errors import StorefrontError
from ..decorators import require_auth
from ..responses import envelope, error_response


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_auth
def get_cart_route():
    cart = cart_service.get_cart(g.current_user.id)
    if cart is None:
        return envelope(200, "OK", {"items": [], "applied_coupon": None})
    return envelope(200, "OK", cart.to_dict())


@cart_bp.post("/items")
@require_auth
def set_item_route():
    """
    Add, update or remove (quantity 0) a cart line.

    Body: {productId, quantity, weightOption?}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("productId", data.get("product_id"))
        quantity = data.get("quantity")

        if product_id is None or quantity is None:
            return envelope(400, "productId and quantity required")
        try:
            product_id = int(product_id)
        except (TypeError, ValueError):
            return envelope(400, "Invalid productId")

        cart = cart_service.set_item(
            g.current_user.id,
            product_id,
            quantity,
            data.get("weightOption", data.get("weight_option")),
        )
        return envelope(200, "Cart updated", cart.to_dict())

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart")
        return envelope(500, "Internal server error")
