# Overview: Service-layer operations for orders; aggregate assembly, status lifecycle and order logs.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, OrderLog
from ..models.orders import (
    ORDER_STATUSES,
    ORDER_STATUS_RANK,
    CANCELLABLE_STATUSES,
    ORDER_LOG_LABELS,
    DELIVERY_TYPES,
)
from ..errors import InvalidStatusTransition, NotFoundError, PermissionDenied, ValidationError
from storefront.time_utils import utcnow, days_after
from .concurrency import lock_for_update, run_with_retry
from .pricing_service import PricedLine, PricingResult


def estimated_delivery_for(delivery_type: str, now: datetime) -> datetime:
    if delivery_type == "expedited":
        days = current_app.config["DELIVERY_DAYS_EXPEDITED"]
    else:
        days = current_app.config["DELIVERY_DAYS_NORMAL"]
    return days_after(now, days)


def build_order(
    *,
    user_id: int,
    lines: list[PricedLine],
    pricing: PricingResult,
    delivery_address: dict | None,
    payment_method: str,
    delivery_type: str,
    order_summary_id: str | None = None,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Assemble a transient Order from priced lines and pricing output.

    Pure assembly: nothing is added to the session here.
    """
    if delivery_type not in DELIVERY_TYPES:
        raise ValidationError(f"Invalid delivery type: {delivery_type}")
    if not lines:
        raise ValidationError("Order must have at least one item")

    now = now or utcnow()
    order = Order(
        user_id=user_id,
        idempotency_key=idempotency_key,
        subtotal_paise=pricing.subtotal_paise,
        discount_paise=pricing.discount_paise,
        coupon_code=pricing.applied_coupon_code,
        reward_points_used=pricing.reward_points_used,
        reward_discount_paise=pricing.reward_discount_paise,
        delivery_charges_paise=pricing.delivery_charges_paise,
        total_paise=pricing.total_paise,
        payment_method=payment_method,
        payment_status="pending",
        delivery_type=delivery_type,
        delivery_address=dict(delivery_address) if delivery_address is not None else None,
        estimated_delivery=estimated_delivery_for(delivery_type, now),
        order_status="pending",
        order_summary_id=order_summary_id,
        rewards_earned=0,
    )
    order.items = [
        OrderItem(
            product_id=line.product_id,
            product_name=line.product_name,
            weight_option=line.weight_option,
            quantity=line.quantity,
            unit_price_paise=line.unit_price_paise,
            line_total_paise=line.line_total_paise,
        )
        for line in lines
    ]
    return order


def find_by_idempotency_key(user_id: int, key: str | None) -> Order | None:
    if not key:
        return None
    return db.session.query(Order).filter_by(user_id=user_id, idempotency_key=key).first()


def get_order(order_ref: str, *, lock: bool = False) -> Order:
    """Order by public id (or internal id for numeric references)."""
    query = db.session.query(Order)
    if str(order_ref).isdigit():
        query = query.filter_by(id=int(order_ref))
    else:
        query = query.filter_by(public_id=str(order_ref))
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError("Order not found", details={"order_id": str(order_ref)})
    return order


def get_order_for_user(order_ref: str, user_id: int) -> Order:
    order = get_order(order_ref)
    if order.user_id != user_id:
        raise PermissionDenied("Access denied")
    return order


def list_orders_for_user(user_id: int, status: str | None = None, limit: int = 50) -> list[Order]:
    query = db.session.query(Order).filter_by(user_id=user_id)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")
        query = query.filter_by(order_status=status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_order_logs(order: Order) -> list[OrderLog]:
    return (
        db.session.query(OrderLog)
        .filter_by(order_id=order.id)
        .order_by(OrderLog.created_at.asc(), OrderLog.id.asc())
        .all()
    )


def append_order_log(
    order_id: int,
    status: str,
    *,
    actor: str = "system",
    actor_id: int | None = None,
    note: str | None = None,
    commit: bool = True,
) -> OrderLog | None:
    """
    Append-only status history entry, at most one per (order, status).

    Returns the existing entry when the status was already logged.
    """
    existing = db.session.query(OrderLog).filter_by(order_id=order_id, status=status).first()
    if existing is not None:
        return existing

    entry = OrderLog(
        order_id=order_id,
        status=status,
        label=ORDER_LOG_LABELS[status],
        actor=actor,
        actor_id=actor_id,
        note=note,
    )
    db.session.add(entry)
    if not commit:
        db.session.flush()
        return entry
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent writer logged the same status first
        db.session.rollback()
        return db.session.query(OrderLog).filter_by(order_id=order_id, status=status).first()
    return entry


def _check_transition(current: str, new: str) -> None:
    if new not in ORDER_STATUSES:
        raise ValidationError("Invalid status", details={"status": new})
    if current == new:
        raise InvalidStatusTransition(f"Order is already {current}")
    if new == "cancelled":
        if current not in CANCELLABLE_STATUSES:
            raise InvalidStatusTransition(
                f"Order cannot be cancelled (status: {current})",
                details={"status": current},
            )
        return
    if current == "cancelled" or ORDER_STATUS_RANK[new] < ORDER_STATUS_RANK[current]:
        raise InvalidStatusTransition(
            f"Cannot move order from {current} to {new}",
            details={"from": current, "to": new},
        )


def transition_status(
    order_ref: str,
    new_status: str,
    *,
    actor: str,
    actor_id: int | None = None,
    tracking_id: str | None = None,
    tracking_url: str | None = None,
    delivery_partner_id: str | None = None,
    cancel_reason: str | None = None,
) -> Order:
    """
    Move an order forward (pending -> confirmed -> packed -> dispatched -> delivered)
    or cancel it before dispatch, appending the matching OrderLog entry in the
    same transaction.
    """
    def _op():
        order = get_order(order_ref, lock=True)
        _check_transition(order.order_status, new_status)

        order.order_status = new_status
        if tracking_id:
            order.tracking_id = str(tracking_id)
        if tracking_url:
            order.tracking_url = str(tracking_url)
        if delivery_partner_id:
            order.delivery_partner_id = str(delivery_partner_id)
        if new_status == "cancelled":
            order.cancel_reason = (str(cancel_reason).strip() if cancel_reason else None) or "Cancelled by user"

        append_order_log(order.id, new_status, actor=actor, actor_id=actor_id, note=cancel_reason, commit=False)
        db.session.commit()
        return order

    return run_with_retry(_op)


def cancel_order(order_ref: str, user_id: int, reason: str | None = None) -> Order:
    """Owner cancellation; not allowed once dispatched or delivered. Stock is not restored."""
    order = get_order_for_user(order_ref, user_id)
    return transition_status(
        order.public_id,
        "cancelled",
        actor="user",
        actor_id=user_id,
        cancel_reason=reason,
    )
