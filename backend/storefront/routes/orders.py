# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""Order history and cancellation API routes (owner side)"""

from flask import Blueprint, request, current_app, g

from ..services import order_service
from ..errors import StorefrontError
from ..decorators import require_auth
from ..responses import envelope, error_response


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    """List the caller's orders, newest first. Query: ?status=&limit="""
    try:
        limit = min(int(request.args.get("limit", 50)), 200)
        orders = order_service.list_orders_for_user(
            g.current_user.id,
            status=request.args.get("status"),
            limit=limit,
        )
        return envelope(200, "OK", {"orders": [o.to_dict() for o in orders]})

    except ValueError:
        return envelope(400, "limit must be an integer")
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return envelope(500, "Internal server error")


@orders_bp.get("/<order_ref>")
@require_auth
def get_order_route(order_ref: str):
    try:
        order = order_service.get_order_for_user(order_ref, g.current_user.id)
        return envelope(200, "OK", order.to_dict())

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return envelope(500, "Internal server error")


@orders_bp.get("/<order_ref>/logs")
@require_auth
def order_logs_route(order_ref: str):
    """Status history of one order, oldest first."""
    try:
        order = order_service.get_order_for_user(order_ref, g.current_user.id)
        logs = order_service.list_order_logs(order)
        return envelope(200, "OK", {"logs": [entry.to_dict() for entry in logs]})

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order logs")
        return envelope(500, "Internal server error")


@orders_bp.post("/<order_ref>/cancel")
@require_auth
def cancel_order_route(order_ref: str):
    """Cancel before dispatch. Body: {reason?}"""
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.cancel_order(order_ref, g.current_user.id, data.get("reason"))
        return envelope(200, "Order cancelled", order.to_dict())

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return envelope(500, "Internal server error")
