# Overview: Flask API routes for reward points; parses input and returns JSON responses.

# backend/storefront/routes/rewards.py
"""Reward points API routes (customer side)"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..services import reward_service
from ..services.concurrency import run_with_retry
from ..errors import StorefrontError, ValidationError
from ..decorators import require_auth
from ..responses import envelope, error_response


rewards_bp = Blueprint("rewards", __name__, url_prefix="/api/rewards")


@rewards_bp.get("")
@require_auth
def get_rewards_route():
    """Balance, active configuration and recent ledger entries."""
    try:
        account = reward_service.get_or_create_account(g.current_user.id)
        db.session.commit()
        config = reward_service.get_active_config()
        transactions = reward_service.list_transactions(g.current_user.id)
        return envelope(200, "OK", {
            "account": account.to_dict(),
            "config": config.to_dict() if config else None,
            "transactions": [t.to_dict() for t in transactions],
        })
    except Exception:
        current_app.logger.exception("Failed to load rewards")
        return envelope(500, "Internal server error")


@rewards_bp.post("/calculate")
@require_auth
def calculate_rewards_route():
    """Preview the points an order total would earn. Body: {order_total_paise}"""
    try:
        data = request.get_json(silent=True) or {}
        total = data.get("order_total_paise")
        if isinstance(total, bool) or not isinstance(total, int) or total < 0:
            raise ValidationError("order_total_paise must be a non-negative integer")

        quote = reward_service.calculate_rewards_for_order(g.current_user.id, total)
        return envelope(200, "OK", {
            "eligible": quote.eligible,
            "points": quote.points,
            "reason": quote.reason,
        })

    except StorefrontError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to calculate rewards")
        return envelope(500, "Internal server error")


@rewards_bp.post("/redeem")
@require_auth
def redeem_rewards_route():
    """Redeem points outside checkout. Body: {points, order_id?}"""
    try:
        data = request.get_json(silent=True) or {}
        points = data.get("points")
        if isinstance(points, bool) or not isinstance(points, int):
            raise ValidationError("points must be an integer")

        redemption = run_with_retry(
            lambda: reward_service.redeem(g.current_user.id, points, data.get("order_id"), commit=True)
        )
        return envelope(200, "Points redeemed", {
            "points": redemption.points,
            "discount_paise": redemption.discount_paise,
            "transaction": redemption.transaction.to_dict(),
        })

    except StorefrontError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to redeem rewards")
        return envelope(500, "Internal server error")
