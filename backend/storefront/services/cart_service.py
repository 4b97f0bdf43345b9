# Overview: Service-layer operations for carts.

from __future__ import annotations

from ..extensions import db
from ..models import Cart, CartItem, Product
from ..errors import ProductUnavailable, ValidationError


def get_cart(user_id: int) -> Cart | None:
    return db.session.query(Cart).filter_by(user_id=user_id).first()


def get_or_create_cart(user_id: int) -> Cart:
    cart = get_cart(user_id)
    if cart is None:
        cart = Cart(user_id=user_id)
        db.session.add(cart)
        db.session.flush()
    return cart


def set_item(user_id: int, product_id: int, quantity: int, weight_option: str | None = None) -> Cart:
    """
    Add, update or (quantity 0) remove a line for product + weight option.

    The line price is captured from the catalog at the time of the change.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")

    product = db.session.get(Product, product_id)
    if product is None or not product.is_available:
        raise ProductUnavailable("Product not found or unavailable", details={"product_id": product_id})

    weight = weight_option or None
    price = product.price_paise
    if weight and product.weight_options:
        option = product.find_weight_option(weight)
        if option is None:
            raise ValidationError(f"Weight option {weight} is not offered for this product")
        price = option.price_paise

    cart = get_or_create_cart(user_id)
    existing = next(
        (i for i in cart.items if i.product_id == product_id and (i.weight_option or None) == weight),
        None,
    )
    if quantity == 0:
        if existing is not None:
            cart.items.remove(existing)
    elif existing is not None:
        existing.quantity = quantity
        existing.price_paise = price
    else:
        cart.items.append(CartItem(product_id=product_id, quantity=quantity, weight_option=weight, price_paise=price))

    db.session.commit()
    return cart


def clear_cart(cart_id: int, *, commit: bool = True) -> None:
    """Empty the cart and drop its applied coupon snapshot; the cart row stays."""
    cart = db.session.get(Cart, cart_id)
    if cart is None:
        return
    cart.items.clear()
    cart.applied_coupon = None
    if commit:
        db.session.commit()
