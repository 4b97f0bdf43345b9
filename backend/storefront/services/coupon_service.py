# Overview: Service-layer operations for coupons; eligibility, discount math and usage counters.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Coupon, CouponUserUsage, SelectedCoupon, Product
from ..errors import CouponError, NotFoundError, ValidationError, ConflictError
from ..money import percent_of
from storefront.time_utils import utcnow, has_passed, parse_iso_datetime
from .concurrency import lock_for_update


@dataclass(frozen=True)
class CouponLine:
    """The parts of a priced line coupon applicability looks at."""
    product_id: int
    category: str | None


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


def find_coupon(code, *, lock: bool = False) -> Coupon | None:
    """Active-or-not, non-deleted coupon by case-insensitive code."""
    normalized = normalize_code(code)
    if not normalized:
        return None
    query = db.session.query(Coupon).filter_by(code=normalized, is_deleted=False)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_user_usage(coupon: Coupon, user_id: int) -> int:
    row = db.session.query(CouponUserUsage).filter_by(coupon_id=coupon.id, user_id=user_id).first()
    return row.usage_count if row else 0


def check_eligibility(coupon: Coupon, user_id: int, subtotal_paise: int, now=None) -> None:
    """
    Raise CouponError when the coupon cannot be used for this order.

    Order of checks follows the coupon validation endpoint: active,
    expiry, global limit, per-user limit, minimum order value.
    """
    now = now or utcnow()
    if coupon.is_deleted:
        raise CouponError("Invalid coupon code", details={"reason": "deleted"})
    if not coupon.is_active:
        raise CouponError("This coupon is currently inactive", details={"reason": "inactive"})
    if has_passed(coupon.expiry_date, now):
        raise CouponError("This coupon has expired", details={"reason": "expired"})
    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponError("Coupon usage limit has been reached", details={"reason": "usage_limit"})
    if get_user_usage(coupon, user_id) >= coupon.usage_limit_per_user:
        raise CouponError(
            "You have already used this coupon the maximum number of times",
            details={"reason": "user_usage_limit"},
        )
    if subtotal_paise < coupon.min_order_value_paise:
        raise CouponError(
            f"Minimum order value of {coupon.min_order_value_paise} paise required to use this coupon",
            details={"reason": "min_order_value", "min_order_value_paise": coupon.min_order_value_paise},
        )


def matching_products(coupon: Coupon, lines: list[CouponLine]) -> list[int] | None:
    """
    Product ids the coupon restriction matches.

    Returns None when the coupon is unrestricted. Each configured list is
    checked on its own: some line must be a listed product, and some line
    (not necessarily the same one) must be in a listed category. If either
    check fails the result is empty, otherwise it holds every cart product
    id that hit either list.
    """
    products = set(coupon.applicable_products or [])
    categories = set(coupon.applicable_categories or [])
    if not products and not categories:
        return None

    product_hits = [l.product_id for l in lines if l.product_id in products]
    category_hits = [l.product_id for l in lines if l.category in categories]
    if (products and not product_hits) or (categories and not category_hits):
        return []

    hits = set(product_hits) | set(category_hits)
    return [l.product_id for l in lines if l.product_id in hits]


def compute_discount(coupon: Coupon, subtotal_paise: int) -> int:
    """percentage: subtotal x value capped at max_discount; fixed: min(value, subtotal)."""
    if subtotal_paise <= 0:
        return 0
    if coupon.discount_type == Coupon.DISCOUNT_PERCENTAGE:
        discount = percent_of(subtotal_paise, coupon.discount_value)
        if coupon.max_discount_paise is not None and discount > coupon.max_discount_paise:
            discount = coupon.max_discount_paise
    else:
        discount = coupon.discount_value
    return max(0, min(discount, subtotal_paise))


def record_usage(coupon: Coupon, user_id: int) -> None:
    """
    Increment global and per-user usage counters.

    Caller must hold the coupon row lock (find_coupon(lock=True)) inside
    its transaction; version_id_col turns a lost update into StaleDataError.
    """
    coupon.used_count = (coupon.used_count or 0) + 1
    usage = db.session.query(CouponUserUsage).filter_by(coupon_id=coupon.id, user_id=user_id).first()
    if usage is None:
        usage = CouponUserUsage(coupon_id=coupon.id, user_id=user_id, usage_count=0)
        db.session.add(usage)
    usage.usage_count = (usage.usage_count or 0) + 1
    db.session.flush()


def validate_coupon_for_cart(code, user_id: int, cart_total_paise: int, items: list[dict] | None = None) -> dict:
    """
    Explicit coupon check used by the coupons page.

    Unlike checkout, an inapplicable coupon is reported as an error.
    """
    if not normalize_code(code):
        raise ValidationError("Coupon code is required")
    if isinstance(cart_total_paise, bool) or not isinstance(cart_total_paise, int) or cart_total_paise <= 0:
        raise ValidationError("Valid cart total is required")

    coupon = find_coupon(code)
    if coupon is None:
        raise NotFoundError("Invalid coupon code")

    check_eligibility(coupon, user_id, cart_total_paise)

    if items:
        lines = _coupon_lines_from_items(items)
        matched = matching_products(coupon, lines)
        if matched is not None and not matched:
            raise CouponError(
                "This coupon is not applicable to the items in your cart",
                details={"reason": "not_applicable"},
            )

    discount = compute_discount(coupon, cart_total_paise)
    return {
        "coupon": {
            "code": coupon.code,
            "description": coupon.description,
            "discount_type": coupon.discount_type,
            "discount_value": coupon.api_discount_value,
        },
        "discount_paise": discount,
        "final_total_paise": max(0, cart_total_paise - discount),
    }


def _coupon_lines_from_items(items: list[dict]) -> list[CouponLine]:
    product_ids = []
    for item in items:
        try:
            product_ids.append(int(item.get("product_id") or item.get("productId")))
        except (TypeError, ValueError):
            raise ValidationError("Each item needs a numeric product_id")
    categories = {
        p.id: p.category
        for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
    }
    return [CouponLine(product_id=pid, category=categories.get(pid)) for pid in product_ids]


def select_coupon(user_id: int, code) -> SelectedCoupon:
    """Remember the coupon a user picked; replaces any earlier selection."""
    coupon = find_coupon(code)
    if coupon is None or not coupon.is_active:
        raise NotFoundError("Invalid coupon code")

    selection = db.session.query(SelectedCoupon).filter_by(user_id=user_id).first()
    if selection is None:
        selection = SelectedCoupon(user_id=user_id, coupon_code=coupon.code)
        db.session.add(selection)
    else:
        selection.coupon_code = coupon.code
    db.session.commit()
    return selection


def get_selected_code(user_id: int) -> str | None:
    selection = db.session.query(SelectedCoupon).filter_by(user_id=user_id).first()
    return selection.coupon_code if selection else None


def clear_selected_coupon(user_id: int) -> bool:
    deleted = db.session.query(SelectedCoupon).filter_by(user_id=user_id).delete()
    db.session.commit()
    return bool(deleted)


def create_coupon(data: dict) -> Coupon:
    """
    Admin: create a coupon.

    Amounts are in paise. A percentage discount_value is a whole percent
    (up to two decimals, so 12.5 is allowed) and is stored as basis points.
    """
    code = normalize_code(data.get("code"))
    if not 3 <= len(code) <= 20:
        raise ValidationError("code must be 3-20 characters")

    discount_type = str(data.get("discount_type") or "").lower()
    if discount_type not in (Coupon.DISCOUNT_PERCENTAGE, Coupon.DISCOUNT_FIXED):
        raise ValidationError("discount_type must be 'percentage' or 'fixed'")

    if discount_type == Coupon.DISCOUNT_PERCENTAGE:
        discount_value = _percent_to_basis_points(data.get("discount_value"))
    else:
        discount_value = _non_negative_int(data, "discount_value", required=True)

    usage_limit = _non_negative_int(data, "usage_limit")
    if usage_limit is not None and usage_limit < 1:
        raise ValidationError("usage_limit must be at least 1")
    per_user = _non_negative_int(data, "usage_limit_per_user")
    if per_user is not None and per_user < 1:
        raise ValidationError("usage_limit_per_user must be at least 1")

    expiry = data.get("expiry_date")
    try:
        expiry_dt = parse_iso_datetime(expiry) if isinstance(expiry, str) else None
    except ValueError:
        raise ValidationError("expiry_date must be an ISO-8601 datetime")

    try:
        applicable_products = [int(p) for p in data.get("applicable_products") or []]
    except (TypeError, ValueError):
        raise ValidationError("applicable_products must be product ids")

    if db.session.query(Coupon).filter_by(code=code).first():
        raise ConflictError("Coupon code already exists", details={"code": code})

    coupon = Coupon(
        code=code,
        description=data.get("description"),
        discount_type=discount_type,
        discount_value=discount_value,
        min_order_value_paise=_non_negative_int(data, "min_order_value_paise") or 0,
        max_discount_paise=_non_negative_int(data, "max_discount_paise"),
        usage_limit=usage_limit,
        usage_limit_per_user=per_user or 1,
        expiry_date=expiry_dt,
        applicable_products=applicable_products,
        applicable_categories=[str(c) for c in data.get("applicable_categories") or []],
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(coupon)
    db.session.commit()
    return coupon


def _percent_to_basis_points(value) -> int:
    if value is None:
        raise ValidationError("discount_value is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("discount_value must be a number")

    basis_points = Decimal(str(value)) * 100
    if not basis_points.is_finite() or basis_points != basis_points.to_integral_value():
        raise ValidationError("percentage discount_value allows at most two decimal places")
    if not 0 < basis_points <= 10000:
        raise ValidationError("percentage discount_value must be above 0 and at most 100")
    return int(basis_points)


def _non_negative_int(data: dict, key: str, required: bool = False) -> int | None:
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if value < 0:
        raise ValidationError(f"{key} must be non-negative")
    return value
