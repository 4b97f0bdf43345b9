# Overview: Service-layer pricing for checkout; subtotal, coupon and reward discounts, delivery and total.

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import Product
from ..errors import CouponError, ProductUnavailable, RewardError
from . import coupon_service, reward_service
from .coupon_service import CouponLine
from .reward_service import Redemption


@dataclass(frozen=True)
class PricedLine:
    """A cart line resolved against current product data."""
    product_id: int
    product_name: str
    category: str | None
    weight_option: str | None
    quantity: int
    unit_price_paise: int

    @property
    def line_total_paise(self) -> int:
        return self.unit_price_paise * self.quantity


@dataclass
class PricingResult:
    subtotal_paise: int
    discount_paise: int
    reward_discount_paise: int
    delivery_charges_paise: int
    total_paise: int
    applied_coupon_code: str | None = None
    reward_points_used: int = 0
    redemption: Redemption | None = None
    skipped: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "subtotal_paise": self.subtotal_paise,
            "discount_paise": self.discount_paise,
            "reward_discount_paise": self.reward_discount_paise,
            "delivery_charges_paise": self.delivery_charges_paise,
            "total_paise": self.total_paise,
            "applied_coupon_code": self.applied_coupon_code,
        }


def resolve_lines(cart_items) -> list[PricedLine]:
    """
    Snapshot each cart item's name and price from the current catalog.

    The weight option's price is used when the product is sold by weight.
    Raises ProductUnavailable if any product is missing, inactive or deleted.
    """
    product_ids = {item.product_id for item in cart_items}
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }

    lines = []
    for item in cart_items:
        product = products.get(item.product_id)
        if product is None or not product.is_available:
            raise ProductUnavailable(
                f"Product {item.product_id} not found or unavailable",
                details={"product_id": item.product_id},
            )
        unit_price = product.price_paise
        weight = item.weight_option or None
        if weight and product.weight_options:
            option = product.find_weight_option(weight)
            if option is None:
                raise ProductUnavailable(
                    f"Weight option {weight} is not offered for product {product.id}",
                    details={"product_id": product.id, "weight_option": weight},
                )
            unit_price = option.price_paise
        lines.append(PricedLine(
            product_id=product.id,
            product_name=product.name,
            category=product.category,
            weight_option=weight,
            quantity=item.quantity,
            unit_price_paise=unit_price,
        ))
    return lines


def compute_subtotal(lines: list[PricedLine]) -> int:
    return sum(line.line_total_paise for line in lines)


def delivery_charge(delivery_type: str) -> int:
    if delivery_type == "expedited":
        return current_app.config["DELIVERY_CHARGE_EXPEDITED_PAISE"]
    return current_app.config["DELIVERY_CHARGE_NORMAL_PAISE"]


def compute_total(subtotal: int, discount: int, reward_discount: int, delivery_charges: int) -> int:
    return max(0, subtotal - discount - reward_discount + delivery_charges)


def apply_coupon(code, user_id: int, lines: list[PricedLine], subtotal_paise: int) -> tuple[int, str | None]:
    """
    Resolve and consume at most one coupon.

    Returns (discount_paise, applied_code). Ineligible coupons raise
    CouponError; coupons whose product/category restriction matches no
    line are ignored and return (0, None). On success the usage counters
    are incremented under the coupon row lock.
    """
    coupon = coupon_service.find_coupon(code, lock=True)
    if coupon is None:
        raise CouponError("Invalid coupon code", details={"reason": "not_found"})

    coupon_service.check_eligibility(coupon, user_id, subtotal_paise)

    coupon_lines = [CouponLine(product_id=l.product_id, category=l.category) for l in lines]
    matched = coupon_service.matching_products(coupon, coupon_lines)
    if matched is not None and not matched:
        return 0, None

    discount = coupon_service.compute_discount(coupon, subtotal_paise)
    coupon_service.record_usage(coupon, user_id)
    return discount, coupon.code


def price_checkout(
    *,
    user_id: int,
    lines: list[PricedLine],
    delivery_type: str,
    coupon_code: str | None = None,
    reward_points: int = 0,
    strict_rewards: bool = False,
) -> PricingResult:
    """
    Price an order and apply its coupon usage and reward debit.

    Runs inside the checkout write transaction so coupon counters and
    the reward debit roll back together with the inventory reservation.
    Coupon failures never fail the checkout; reward failures do only
    when strict_rewards is set.
    """
    subtotal = compute_subtotal(lines)
    skipped: dict = {}

    discount, applied_code = 0, None
    if coupon_code:
        try:
            discount, applied_code = apply_coupon(coupon_code, user_id, lines, subtotal)
        except CouponError as exc:
            skipped["coupon"] = exc.message
            current_app.logger.info("Coupon %s not applied for user %s: %s", coupon_code, user_id, exc.message)

    reward_discount, redemption = 0, None
    if reward_points and reward_points > 0:
        try:
            redemption = reward_service.redeem(user_id, reward_points)
            reward_discount = redemption.discount_paise
        except RewardError as exc:
            if strict_rewards:
                raise
            skipped["rewards"] = exc.message
            current_app.logger.info("Reward redemption skipped for user %s: %s", user_id, exc.message)

    delivery = delivery_charge(delivery_type)
    return PricingResult(
        subtotal_paise=subtotal,
        discount_paise=discount,
        reward_discount_paise=reward_discount,
        delivery_charges_paise=delivery,
        total_paise=compute_total(subtotal, discount, reward_discount, delivery),
        applied_coupon_code=applied_code,
        reward_points_used=redemption.points if redemption else 0,
        redemption=redemption,
        skipped=skipped,
    )
