# Overview: Service-layer operations for inventory; stock reservation for checkout.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Product, ProductWeightOption
from ..errors import InsufficientStock, ProductUnavailable
from .concurrency import lock_for_update
"""
Storefront Inventory Invariants (authoritative)

Stock model:
- A product is stocked either by its scalar stock_quantity or, when it is
  sold by weight, per ProductWeightOption.quantity.
- A reservation with a weight option against a product that has weight
  options decrements that option; any other reservation decrements the
  scalar quantity.

Business invariants:
- Quantities never go below zero (decrements are floor-clamped at 0).
- A reservation batch is all-or-nothing: every line is checked before any
  counter is touched, and the caller's transaction is rolled back on failure.
- Requests for the same (product, weight option) are summed before the check.

Concurrency:
- Rows are read with SELECT ... FOR UPDATE and carry version_id_col, so a
  concurrent writer either waits or fails with StaleDataError.
- Nothing here commits; the checkout transaction owns the boundary.
"""


@dataclass(frozen=True)
class ReservationRequest:
    product_id: int
    quantity: int
    weight_option: str | None = None


@dataclass
class Reservation:
    product_id: int
    weight_option: str | None
    quantity: int
    remaining: int


def _stock_key(product: Product, weight_option: str | None) -> str | None:
    """Weight label the stock lives under, or None for the scalar counter."""
    if weight_option and product.weight_options:
        return weight_option
    return None


def _load_products_locked(product_ids: list[int]) -> dict[int, Product]:
    query = db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
    products = lock_for_update(query).all()
    option_query = db.session.query(ProductWeightOption).filter(
        ProductWeightOption.product_id.in_(product_ids)
    ).order_by(ProductWeightOption.id)
    lock_for_update(option_query).all()
    return {p.id: p for p in products}


def get_available_quantity(product: Product, weight_option: str | None = None) -> int:
    key = _stock_key(product, weight_option)
    if key is None:
        return product.stock_quantity or 0
    option = product.find_weight_option(key)
    return option.quantity if option else 0


def reserve_stock(requests: list[ReservationRequest]) -> list[Reservation]:
    """
    Reserve stock for every request or for none of them.

    Raises ProductUnavailable for a missing/inactive product or a weight
    option the product does not offer, and InsufficientStock naming every
    short line. Must run inside the caller's write transaction.
    """
    if not requests:
        return []

    for req in requests:
        if req.quantity is None or req.quantity <= 0:
            raise ValueError("reservation quantity must be positive")

    product_ids = sorted({req.product_id for req in requests})
    products = _load_products_locked(product_ids)

    # Aggregate per stock counter, preserving first-seen order
    totals: dict[tuple[int, str | None], int] = {}
    for req in requests:
        product = products.get(req.product_id)
        if product is None or not product.is_available:
            raise ProductUnavailable(
                f"Product {req.product_id} not found or unavailable",
                details={"product_id": req.product_id},
            )
        key = _stock_key(product, req.weight_option)
        if key is not None and product.find_weight_option(key) is None:
            raise ProductUnavailable(
                f"Weight option {key} is not offered for product {product.id}",
                details={"product_id": product.id, "weight_option": key},
            )
        totals[(product.id, key)] = totals.get((product.id, key), 0) + req.quantity

    insufficient = []
    for (product_id, key), qty in totals.items():
        available = get_available_quantity(products[product_id], key)
        if qty > available:
            insufficient.append({
                "product_id": product_id,
                "product_name": products[product_id].name,
                "weight_option": key,
                "requested_quantity": qty,
                "available_quantity": available,
                "shortfall": qty - available,
            })

    if insufficient:
        first = insufficient[0]
        label = first["product_name"] + (f" ({first['weight_option']})" if first["weight_option"] else "")
        raise InsufficientStock(
            f"Insufficient stock for {label}: requested {first['requested_quantity']}, "
            f"available {first['available_quantity']}",
            details={"items": insufficient},
        )

    reservations = []
    for (product_id, key), qty in totals.items():
        product = products[product_id]
        if key is None:
            product.stock_quantity = max(0, (product.stock_quantity or 0) - qty)
            remaining = product.stock_quantity
        else:
            option = product.find_weight_option(key)
            option.quantity = max(0, (option.quantity or 0) - qty)
            remaining = option.quantity
        reservations.append(Reservation(product_id=product_id, weight_option=key, quantity=qty, remaining=remaining))

    db.session.flush()
    return reservations
