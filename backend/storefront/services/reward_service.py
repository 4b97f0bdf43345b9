# Overview: Service-layer operations for the reward points ledger.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR

from ..extensions import db
from ..models import RewardAccount, RewardConfig, RewardTransaction, Order
from ..errors import BelowMinimumRedemption, InsufficientBalance, RewardsInactive, ValidationError
from .concurrency import lock_for_update
"""
Reward Ledger Invariants (authoritative)

- balance >= 0 at all times.
- Every balance change writes exactly one RewardTransaction carrying the
  signed amount and the resulting balance_after, in the same DB transaction.
- earned/redeemed keep lifetime_earned - lifetime_redeemed == balance;
  adjusted rows may break it when the resulting balance is clamped at 0.
- RewardTransaction rows are append-only.
"""


@dataclass(frozen=True)
class RewardQuote:
    eligible: bool
    points: int
    reason: str | None = None


@dataclass(frozen=True)
class Redemption:
    points: int
    discount_paise: int
    transaction: RewardTransaction


def get_active_config() -> RewardConfig | None:
    return (
        db.session.query(RewardConfig)
        .filter_by(is_active=True)
        .order_by(RewardConfig.updated_at.desc(), RewardConfig.id.desc())
        .first()
    )


def get_or_create_account(user_id: int, *, lock: bool = False) -> RewardAccount:
    """Fetch the user's account, creating an empty one if needed (flushed, not committed)."""
    query = db.session.query(RewardAccount).filter_by(user_id=user_id)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is None:
        account = RewardAccount(user_id=user_id, balance=0, lifetime_earned=0, lifetime_redeemed=0)
        db.session.add(account)
        db.session.flush()
    return account


def _append_transaction(
    account: RewardAccount,
    transaction_type: str,
    amount: int,
    *,
    order_id: int | None = None,
    description: str | None = None,
) -> RewardTransaction:
    txn = RewardTransaction(
        reward_account_id=account.id,
        user_id=account.user_id,
        transaction_type=transaction_type,
        amount=amount,
        balance_after=account.balance,
        order_id=order_id,
        description=description,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def _completed_order_count(user_id: int, exclude_order_id: int | None = None) -> int:
    query = db.session.query(Order).filter(Order.user_id == user_id, Order.order_status != "cancelled")
    if exclude_order_id is not None:
        query = query.filter(Order.id != exclude_order_id)
    return query.count()


def calculate_rewards_for_order(
    user_id: int,
    order_total_paise: int,
    *,
    exclude_order_id: int | None = None,
) -> RewardQuote:
    """
    Points a user earns for an order of the given total.

    points = points_per_order + floor(order_total_rupees * points_per_rupee)

    The order being rewarded counts toward eligibility_after_orders, so
    pass its id as exclude_order_id once it has been persisted.
    """
    config = get_active_config()
    if config is None:
        return RewardQuote(False, 0, "Rewards system is not active")

    if order_total_paise < config.min_order_for_reward_paise:
        return RewardQuote(
            False,
            0,
            f"Minimum order value of {config.min_order_for_reward_paise} paise required to earn rewards",
        )

    previous_orders = _completed_order_count(user_id, exclude_order_id)
    if previous_orders + 1 < config.eligibility_after_orders:
        return RewardQuote(
            False,
            0,
            f"Complete {config.eligibility_after_orders} orders to start earning rewards",
        )

    per_rupee = Decimal(str(config.points_per_rupee or 0))
    from_amount = (Decimal(order_total_paise) * per_rupee / 100).to_integral_value(rounding=ROUND_FLOOR)
    return RewardQuote(True, config.points_per_order + int(from_amount))


def redeem(user_id: int, points: int, order_id: int | None = None, *, commit: bool = False) -> Redemption:
    """
    Debit points for a checkout discount of floor(points / redemption_rate) rupees.

    Raises RewardsInactive, InsufficientBalance or BelowMinimumRedemption
    without touching the account. Locks the account row.
    """
    if points is None or points <= 0:
        raise ValidationError("Valid points amount is required")

    config = get_active_config()
    if config is None:
        raise RewardsInactive("Rewards system is not active")

    account = get_or_create_account(user_id, lock=True)

    if points > account.balance:
        raise InsufficientBalance(
            f"Insufficient reward balance. Available: {account.balance} points",
            details={"balance": account.balance, "requested": points},
        )

    if points < config.min_redemption_points:
        raise BelowMinimumRedemption(
            f"Minimum {config.min_redemption_points} points required for redemption",
            details={"min_redemption_points": config.min_redemption_points, "requested": points},
        )

    discount_rupees = points // config.redemption_rate

    account.balance -= points
    account.lifetime_redeemed += points
    txn = _append_transaction(
        account,
        RewardTransaction.TYPE_REDEEMED,
        -points,
        order_id=order_id,
        description=f"Redeemed {points} points for Rs.{discount_rupees} discount",
    )

    if commit:
        db.session.commit()
    return Redemption(points=points, discount_paise=discount_rupees * 100, transaction=txn)


def award(user_id: int, order_id: int | None, points: int, description: str, *, commit: bool = True) -> RewardTransaction:
    """Unconditional credit of points (after an order is placed)."""
    if points is None or points <= 0:
        raise ValueError("award points must be positive")

    account = get_or_create_account(user_id, lock=True)
    account.balance += points
    account.lifetime_earned += points
    txn = _append_transaction(
        account,
        RewardTransaction.TYPE_EARNED,
        points,
        order_id=order_id,
        description=description,
    )

    if commit:
        db.session.commit()
    return txn


def adjust(user_id: int, amount: int, reason: str, *, commit: bool = True) -> RewardTransaction:
    """
    Admin adjustment by a signed delta.

    The resulting balance is clamped at 0; positive amounts count toward
    lifetime_earned and negative ones toward lifetime_redeemed.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise ValidationError("amount must be a non-zero integer")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")

    account = get_or_create_account(user_id, lock=True)
    account.balance = max(0, account.balance + amount)
    if amount > 0:
        account.lifetime_earned += amount
    else:
        account.lifetime_redeemed += abs(amount)

    txn = _append_transaction(
        account,
        RewardTransaction.TYPE_ADJUSTED,
        amount,
        description=str(reason).strip(),
    )

    if commit:
        db.session.commit()
    return txn


def list_transactions(user_id: int, limit: int = 50) -> list[RewardTransaction]:
    return (
        db.session.query(RewardTransaction)
        .filter_by(user_id=user_id)
        .order_by(RewardTransaction.created_at.desc(), RewardTransaction.id.desc())
        .limit(limit)
        .all()
    )


_CONFIG_INT_FIELDS = (
    "points_per_order",
    "min_order_for_reward_paise",
    "redemption_rate",
    "min_redemption_points",
    "eligibility_after_orders",
)


def update_config(data: dict) -> RewardConfig:
    """Admin: create or update the active reward configuration."""
    changes: dict = {}
    for key in _CONFIG_INT_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"{key} must be a non-negative integer")
        changes[key] = value

    if changes.get("redemption_rate") == 0:
        raise ValidationError("redemption_rate must be at least 1")

    if "points_per_rupee" in data:
        try:
            per_rupee = Decimal(str(data["points_per_rupee"]))
        except InvalidOperation:
            raise ValidationError("points_per_rupee must be a number")
        if per_rupee < 0:
            raise ValidationError("points_per_rupee must be non-negative")
        changes["points_per_rupee"] = per_rupee

    if data.get("name"):
        changes["name"] = str(data["name"])
    if "is_active" in data:
        changes["is_active"] = bool(data["is_active"])

    config = get_active_config()
    if config is None:
        config = RewardConfig(name="Default")
        db.session.add(config)
    for key, value in changes.items():
        setattr(config, key, value)

    db.session.commit()
    return config
