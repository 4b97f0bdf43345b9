# Overview: Service-layer checkout orchestration; turns a cart into a committed order.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, User
from ..models.orders import DELIVERY_TYPES
from ..errors import EmptyCart, PermissionDenied, ProductUnavailable, StorefrontError, ValidationError
from . import (
    address_service,
    cart_service,
    coupon_service,
    identity_service,
    inventory_service,
    order_service,
    pricing_service,
    reward_service,
)
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import ReservationRequest
"""
Checkout Invariants (authoritative)

- Validation and resolution (user, cart, address, request fields) happen
  before any write; a failure there leaves the database untouched.
- Coupon usage, reward debit, every stock decrement and the Order row are
  written in ONE transaction; any failure rolls all of them back.
- Post-commit effects (order log, cart clear, selected coupon cleanup,
  reward award) each commit on their own. A failure is logged and does
  not affect the committed order or the other effects.
- A repeated idempotency key for the same user returns the original
  order's summary with no new side effects.
"""


class CheckoutState(str, Enum):
    VALIDATING = "validating"
    PRICING = "pricing"
    RESERVING = "reserving"
    COMMITTING = "committing"
    POST_COMMIT = "post_commit"
    DONE = "done"
    FAILED = "failed"


class _StateTracker:
    """Records the orchestrator's current state and logs each transition."""

    def __init__(self):
        self.state = CheckoutState.VALIDATING
        self.failure_reason: str | None = None

    def advance(self, new_state: CheckoutState) -> None:
        current_app.logger.debug("Checkout state %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def fail(self, reason: str) -> None:
        current_app.logger.info("Checkout failed in state %s: %s", self.state.value, reason)
        self.failure_reason = reason
        self.state = CheckoutState.FAILED


def _first(payload: dict, *keys):
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class CheckoutRequest:
    """The checkout body after alias normalization and type checks."""
    user_ref: str | int | None
    payment_method: str
    delivery_type: str = "normal"
    address_id: int | None = None
    inline_address: dict | None = None
    skip_address: bool = False
    coupon_code: str | None = None
    reward_points: int = 0
    order_summary_id: str | None = None
    idempotency_key: str | None = None

    @classmethod
    def from_payload(cls, payload, idempotency_header: str | None = None) -> "CheckoutRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        payment_method = _first(payload, "paymentMethod", "payment_method")
        if not isinstance(payment_method, str) or not payment_method.strip():
            raise ValidationError("Payment method is required")

        delivery_type = str(_first(payload, "deliveryType", "delivery_type") or "normal").strip().lower()
        if delivery_type not in DELIVERY_TYPES:
            raise ValidationError(
                f"Invalid delivery type: {delivery_type}",
                details={"allowed": list(DELIVERY_TYPES)},
            )

        address_id = _first(payload, "addressId", "addressID", "address_id")
        if address_id is not None:
            try:
                address_id = int(address_id)
            except (TypeError, ValueError):
                raise ValidationError("Invalid address id")

        inline_address = _first(payload, "address")
        if inline_address is not None and not isinstance(inline_address, dict):
            raise ValidationError("address must be an object")

        reward_points = _first(payload, "rewardPoints", "reward_points") or 0
        if isinstance(reward_points, bool):
            raise ValidationError("rewardPoints must be a non-negative integer")
        try:
            reward_points = int(reward_points)
        except (TypeError, ValueError):
            raise ValidationError("rewardPoints must be a non-negative integer")
        if reward_points < 0:
            raise ValidationError("rewardPoints must be a non-negative integer")

        key = idempotency_header or _first(payload, "idempotencyKey", "idempotency_key")
        if key is not None:
            key = str(key).strip() or None
            if key and len(key) > 128:
                raise ValidationError("Idempotency key must be at most 128 characters")

        coupon_code = _first(payload, "couponCode", "coupon_code")
        summary_id = _first(payload, "orderSummaryId", "order_summary_id")

        return cls(
            user_ref=_first(payload, "userId", "user_id"),
            payment_method=payment_method.strip(),
            delivery_type=delivery_type,
            address_id=address_id,
            inline_address=inline_address,
            skip_address=_as_bool(_first(payload, "skipAddress", "skip_address")),
            coupon_code=str(coupon_code).strip() if coupon_code is not None else None,
            reward_points=reward_points,
            order_summary_id=str(summary_id) if summary_id is not None else None,
            idempotency_key=key,
        )


def _resolve_checkout_user(req: CheckoutRequest, session_user: User | None) -> User:
    """
    The user the order is placed for.

    Defaults to the authenticated user. An explicit userId (either form)
    must name that same user unless the caller is an admin.
    """
    if req.user_ref is None:
        if session_user is None:
            raise ValidationError("User ID is required")
        return session_user

    user = identity_service.resolve_user(req.user_ref)
    if session_user is not None and user.id != session_user.id and not session_user.is_admin:
        raise PermissionDenied("Cannot place an order for another user")
    return user


def _coupon_code_for(req: CheckoutRequest, cart, user_id: int) -> str | None:
    """Request coupon first, then the cart's applied coupon, then the user's selected coupon."""
    if req.coupon_code:
        return req.coupon_code
    applied = cart.applied_coupon or {}
    if applied.get("code"):
        return applied["code"]
    return coupon_service.get_selected_code(user_id)


def _replay_summary(user_id: int, key: str | None) -> dict | None:
    """Summary of the order already placed under this idempotency key, if any."""
    existing = order_service.find_by_idempotency_key(user_id, key)
    if existing is None:
        return None
    current_app.logger.info("Replaying checkout for idempotency key %s (order %s)", key, existing.public_id)
    return existing.checkout_summary()


def _run_post_commit_step(name: str, func, default=None):
    try:
        return func()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Checkout post-commit step failed: %s", name)
        return default


def _award_rewards(order_id: int, user_id: int) -> int:
    order = db.session.get(Order, order_id)
    quote = reward_service.calculate_rewards_for_order(user_id, order.total_paise, exclude_order_id=order.id)
    if not quote.eligible or quote.points <= 0:
        current_app.logger.debug("No rewards for order %s: %s", order.public_id, quote.reason)
        return 0

    reward_service.award(
        user_id,
        order.id,
        quote.points,
        f"Earned {quote.points} points for order {order.public_id}",
        commit=False,
    )
    order.rewards_earned = quote.points
    db.session.commit()
    return quote.points


def place_order(payload, *, session_user: User | None = None, idempotency_key: str | None = None) -> dict:
    """
    Place an order from the user's cart.

    Returns {orderId, total, estimatedDelivery, rewardsEarned}. Raises a
    StorefrontError subclass for every client-facing failure before the
    order is committed.
    """
    tracker = _StateTracker()

    try:
        req = CheckoutRequest.from_payload(payload, idempotency_key)
        user = _resolve_checkout_user(req, session_user)
        user_id = user.id

        replay = _replay_summary(user_id, req.idempotency_key)
        if replay is not None:
            return replay

        cart = cart_service.get_cart(user_id)
        if cart is None or not cart.items:
            # A concurrent duplicate may have committed and cleared the cart since the check above
            replay = _replay_summary(user_id, req.idempotency_key)
            if replay is not None:
                return replay
            raise EmptyCart("Cart is empty")
        cart_id = cart.id
        coupon_code = _coupon_code_for(req, cart, user_id)

        delivery_address = address_service.resolve_delivery_address(
            user_id,
            address_id=req.address_id,
            inline_address=req.inline_address,
            skip_address=req.skip_address,
        )
        strict_rewards = bool(current_app.config.get("REWARD_REDEMPTION_STRICT"))

        def _transaction():
            begin_write_transaction()

            # Key check under the write lock; the duplicate that lost the race replays here
            committed = order_service.find_by_idempotency_key(user_id, req.idempotency_key)
            if committed is not None:
                committed_id = committed.id
                db.session.rollback()
                return committed_id, True

            tracker.advance(CheckoutState.PRICING)

            # Re-read inside the write lock; a concurrent checkout may have emptied it
            locked_cart = cart_service.get_cart(user_id)
            if locked_cart is None or not locked_cart.items:
                raise EmptyCart("Cart is empty")
            lines = pricing_service.resolve_lines(locked_cart.items)
            pricing = pricing_service.price_checkout(
                user_id=user_id,
                lines=lines,
                delivery_type=req.delivery_type,
                coupon_code=coupon_code,
                reward_points=req.reward_points,
                strict_rewards=strict_rewards,
            )

            tracker.advance(CheckoutState.RESERVING)
            inventory_service.reserve_stock([
                ReservationRequest(product_id=l.product_id, quantity=l.quantity, weight_option=l.weight_option)
                for l in lines
            ])

            tracker.advance(CheckoutState.COMMITTING)
            order = order_service.build_order(
                user_id=user_id,
                lines=lines,
                pricing=pricing,
                delivery_address=delivery_address,
                payment_method=req.payment_method,
                delivery_type=req.delivery_type,
                order_summary_id=req.order_summary_id,
                idempotency_key=req.idempotency_key,
            )
            db.session.add(order)
            db.session.flush()
            if pricing.redemption is not None:
                pricing.redemption.transaction.order_id = order.id
            db.session.commit()
            return order.id, False

        try:
            order_id, replayed = run_with_retry(_transaction)
        except IntegrityError:
            db.session.rollback()
            existing = order_service.find_by_idempotency_key(user_id, req.idempotency_key)
            if existing is None:
                raise
            current_app.logger.info("Concurrent checkout with idempotency key %s resolved to order %s", req.idempotency_key, existing.public_id)
            return existing.checkout_summary()
        except Exception:
            db.session.rollback()
            raise

    except ProductUnavailable as exc:
        exc.http_status = current_app.config.get("PRODUCT_UNAVAILABLE_STATUS", exc.http_status)
        tracker.fail(exc.message)
        raise
    except StorefrontError as exc:
        tracker.fail(exc.message)
        raise

    if replayed:
        order = db.session.get(Order, order_id)
        current_app.logger.info("Concurrent checkout with idempotency key %s resolved to order %s", req.idempotency_key, order.public_id)
        return order.checkout_summary()

    tracker.advance(CheckoutState.POST_COMMIT)
    _run_post_commit_step(
        "order log",
        lambda: order_service.append_order_log(order_id, "pending", actor="system"),
    )
    _run_post_commit_step("cart clear", lambda: cart_service.clear_cart(cart_id))
    _run_post_commit_step("selected coupon cleanup", lambda: coupon_service.clear_selected_coupon(user_id))
    _run_post_commit_step("reward award", lambda: _award_rewards(order_id, user_id), default=0)

    tracker.advance(CheckoutState.DONE)
    order = db.session.get(Order, order_id)
    current_app.logger.info("Order %s placed for user %s (total %s paise)", order.public_id, user_id, order.total_paise)
    return order.checkout_summary()
