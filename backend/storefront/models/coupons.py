from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Coupon(db.Model):
    """
    Discount coupon.

    discount_value: basis points for PERCENTAGE, paise for FIXED. The API
    speaks whole percent for PERCENTAGE (see api_discount_value).

    INVARIANTS:
    - used_count <= usage_limit when usage_limit is set
    - per-user usage (CouponUserUsage.usage_count) <= usage_limit_per_user
    - discount never exceeds max_discount_paise (percentage) or the subtotal (fixed)
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.Index("ix_coupons_active", "is_active", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    DISCOUNT_PERCENTAGE = "percentage"
    DISCOUNT_FIXED = "fixed"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)

    discount_type = db.Column(db.String(16), nullable=False)  # percentage, fixed
    discount_value = db.Column(db.Integer, nullable=False)

    min_order_value_paise = db.Column(db.Integer, nullable=False, default=0)
    max_discount_paise = db.Column(db.Integer, nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    usage_limit_per_user = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    applicable_products = db.Column(db.JSON, nullable=False, default=list)  # product ids
    applicable_categories = db.Column(db.JSON, nullable=False, default=list)  # category names

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def api_discount_value(self):
        """Percent (12.5 for 1250 bps) for PERCENTAGE, paise for FIXED."""
        if self.discount_type != self.DISCOUNT_PERCENTAGE:
            return self.discount_value
        percent = self.discount_value / 100
        return int(percent) if percent.is_integer() else percent

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "discount_type": self.discount_type,
            "discount_value": self.api_discount_value,
            "min_order_value_paise": self.min_order_value_paise,
            "max_discount_paise": self.max_discount_paise,
            "usage_limit": self.usage_limit,
            "usage_limit_per_user": self.usage_limit_per_user,
            "used_count": self.used_count,
            "expiry_date": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "applicable_products": list(self.applicable_products or []),
            "applicable_categories": list(self.applicable_categories or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class CouponUserUsage(db.Model):
    """Per-user redemption counter for a coupon."""
    __tablename__ = "coupon_user_usage"
    __table_args__ = (
        db.UniqueConstraint("coupon_id", "user_id", name="uq_coupon_usage_coupon_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    coupon = db.relationship("Coupon", backref=db.backref("user_usage", lazy=True))
