from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storefront.time_utils import to_utc_z


class RewardConfig(db.Model):
    """
    Reward program settings. The most recently updated active row is used.

    - points_per_order + floor(order_total_rupees * points_per_rupee) earned per order
    - redemption_rate points buy one rupee of discount
    """
    __tablename__ = "reward_configs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, default="Default")

    points_per_order = db.Column(db.Integer, nullable=False, default=10)
    points_per_rupee = db.Column(db.Numeric(10, 4), nullable=False, default=Decimal("1"))
    min_order_for_reward_paise = db.Column(db.Integer, nullable=False, default=50000)
    redemption_rate = db.Column(db.Integer, nullable=False, default=10)
    min_redemption_points = db.Column(db.Integer, nullable=False, default=100)
    eligibility_after_orders = db.Column(db.Integer, nullable=False, default=1)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "points_per_order": self.points_per_order,
            "points_per_rupee": str(self.points_per_rupee),
            "min_order_for_reward_paise": self.min_order_for_reward_paise,
            "redemption_rate": self.redemption_rate,
            "min_redemption_points": self.min_redemption_points,
            "eligibility_after_orders": self.eligibility_after_orders,
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }


class RewardAccount(db.Model):
    """
    Points account, one per user.

    INVARIANT: balance >= 0 and lifetime_earned - lifetime_redeemed == balance,
    except where a clamped ADJUST moved it (those are logged as 'adjusted').
    """
    __tablename__ = "reward_accounts"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_reward_accounts_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    balance = db.Column(db.Integer, nullable=False, default=0)
    lifetime_earned = db.Column(db.Integer, nullable=False, default=0)
    lifetime_redeemed = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("reward_account", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance": self.balance,
            "lifetime_earned": self.lifetime_earned,
            "lifetime_redeemed": self.lifetime_redeemed,
            "is_active": self.is_active,
            "updated_at": to_utc_z(self.updated_at),
        }


class RewardTransaction(db.Model):
    """
    Append-only ledger of reward point events.

    TRANSACTION TYPES:
    - earned: points credited for an order
    - redeemed: points debited for a checkout discount (negative amount)
    - adjusted: manual adjustment by an admin (signed amount)

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "reward_transactions"
    __table_args__ = (
        db.Index("ix_reward_txns_account_created", "reward_account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    TYPE_EARNED = "earned"
    TYPE_REDEEMED = "redeemed"
    TYPE_ADJUSTED = "adjusted"

    id = db.Column(db.Integer, primary_key=True)
    reward_account_id = db.Column(db.Integer, db.ForeignKey("reward_accounts.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    reward_account = db.relationship("RewardAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reward_account_id": self.reward_account_id,
            "transaction_type": self.transaction_type,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "order_id": self.order_id,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
