from __future__ import annotations

import uuid

from ..extensions import db
from storefront.time_utils import to_utc_z
from storefront.money import paise_to_rupees


def _new_public_id() -> str:
    return str(uuid.uuid4())


# Forward progression; cancelled is reachable from the first three only
ORDER_STATUSES = ("pending", "confirmed", "packed", "dispatched", "delivered", "cancelled")
ORDER_STATUS_RANK = {"pending": 1, "confirmed": 2, "packed": 3, "dispatched": 4, "delivered": 5}
CANCELLABLE_STATUSES = ("pending", "confirmed", "packed")

ORDER_LOG_LABELS = {
    "pending": "Order Placed",
    "confirmed": "Order Confirmed",
    "packed": "Order Packed",
    "dispatched": "Order Shipped",
    "delivered": "Order Delivered",
    "cancelled": "Order Cancelled",
}

DELIVERY_TYPES = ("normal", "expedited")


class Order(db.Model):
    """
    Order created by a successful checkout.

    IMMUTABLE except for status-progression fields (order_status,
    payment_status, tracking fields, cancel_reason). Line items are a
    snapshot and are never re-derived from live product data.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "order_status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    public_id = db.Column(db.String(36), nullable=False, unique=True, index=True, default=_new_public_id)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    idempotency_key = db.Column(db.String(128), nullable=True)

    # Pricing (all amounts in paise)
    subtotal_paise = db.Column(db.Integer, nullable=False)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    coupon_code = db.Column(db.String(32), nullable=True)
    reward_points_used = db.Column(db.Integer, nullable=False, default=0)
    reward_discount_paise = db.Column(db.Integer, nullable=False, default=0)
    delivery_charges_paise = db.Column(db.Integer, nullable=False, default=0)
    total_paise = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")

    delivery_type = db.Column(db.String(16), nullable=False, default="normal")
    delivery_address = db.Column(db.JSON, nullable=True)  # null for pickup
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)

    order_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    order_summary_id = db.Column(db.String(64), nullable=True, index=True)
    rewards_earned = db.Column(db.Integer, nullable=False, default=0)

    tracking_id = db.Column(db.String(128), nullable=True)
    tracking_url = db.Column(db.String(512), nullable=True)
    delivery_partner_id = db.Column(db.String(64), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def checkout_summary(self) -> dict:
        """Payload returned by checkout (and replayed for a repeated idempotency key)."""
        return {
            "orderId": self.public_id,
            "total": paise_to_rupees(self.total_paise),
            "estimatedDelivery": to_utc_z(self.estimated_delivery),
            "rewardsEarned": self.rewards_earned,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.public_id,
            "user_id": self.user_id,
            "items": [i.to_dict() for i in self.items],
            "subtotal_paise": self.subtotal_paise,
            "discount_paise": self.discount_paise,
            "coupon_code": self.coupon_code,
            "reward_points_used": self.reward_points_used,
            "reward_discount_paise": self.reward_discount_paise,
            "delivery_charges_paise": self.delivery_charges_paise,
            "total_paise": self.total_paise,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "delivery_type": self.delivery_type,
            "delivery_address": self.delivery_address,
            "estimated_delivery": to_utc_z(self.estimated_delivery),
            "order_status": self.order_status,
            "order_summary_id": self.order_summary_id,
            "rewards_earned": self.rewards_earned,
            "tracking_id": self.tracking_id,
            "tracking_url": self.tracking_url,
            "delivery_partner_id": self.delivery_partner_id,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Snapshot of one purchased line."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    weight_option = db.Column(db.String(32), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    line_total_paise = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "weight_option": self.weight_option,
            "quantity": self.quantity,
            "unit_price_paise": self.unit_price_paise,
            "line_total_paise": self.line_total_paise,
        }


class OrderLog(db.Model):
    """
    Append-only order status history.

    One row per (order, status). Not the source of truth for the current
    status (that lives on Order); used for history display and audit.
    """
    __tablename__ = "order_logs"
    __table_args__ = (
        db.UniqueConstraint("order_id", "status", name="uq_order_logs_order_status"),
        db.Index("ix_order_logs_order_created", "order_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False)
    label = db.Column(db.String(64), nullable=False)
    actor = db.Column(db.String(32), nullable=False, default="system")  # system, user, admin
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "label": self.label,
            "actor": self.actor,
            "actor_id": self.actor_id,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
