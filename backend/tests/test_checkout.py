# Overview: Pytest coverage for checkout through the HTTP API.

"""
Checkout Tests

Covers the happy path, stock reservation atomicity, coupons, reward
redemption and award, idempotent replays, address resolution, user
resolution and post-commit failure isolation.
"""

import pytest
from datetime import timedelta

from storefront.extensions import db
from storefront.models import Order, Product, Coupon, RewardTransaction
from storefront.services import cart_service, coupon_service, order_service, reward_service
from storefront.time_utils import utcnow, parse_iso_datetime
from conftest import add_to_cart, give_points


def checkout(client, headers, **body):
    body.setdefault("paymentMethod", "cod")
    return client.post("/api/checkout", json=body, headers=headers)


def placed(response) -> Order:
    assert response.status_code == 201, response.json
    return order_service.get_order(response.json["data"]["orderId"])


def _miss_first_lookup(monkeypatch):
    """Make the first idempotency lookup of the next checkout report no order."""
    real_lookup = order_service.find_by_idempotency_key
    calls = []

    def _lookup(user_id, key):
        calls.append(key)
        if len(calls) == 1:
            return None
        return real_lookup(user_id, key)

    monkeypatch.setattr(order_service, "find_by_idempotency_key", _lookup)


class TestCheckoutHappyPath:

    def test_single_item_order(self, client, customer, customer_headers, home_address, make_product):
        product = make_product(price_paise=10000, stock=10)
        add_to_cart(customer, product, 2)

        response = checkout(client, customer_headers, deliveryType="normal")

        assert response.status_code == 201
        assert response.json["message"] == "Order placed successfully"
        data = response.json["data"]
        assert data["total"] == 250.0
        assert data["rewardsEarned"] == 0

        order = placed(response)
        assert order.subtotal_paise == 20000
        assert order.delivery_charges_paise == 5000
        assert order.total_paise == 25000
        assert order.order_status == "pending"
        assert order.payment_status == "pending"
        assert order.delivery_address["city"] == "Bengaluru"
        assert db.session.get(Product, product.id).stock_quantity == 8

    def test_line_items_are_snapshots(self, client, customer, customer_headers, home_address, make_product):
        product = make_product(name="Toor Dal", price_paise=15000, stock=5)
        add_to_cart(customer, product, 1)

        order = placed(checkout(client, customer_headers))
        product.name = "Renamed"
        product.price_paise = 99900
        db.session.commit()

        item = order_service.get_order(order.public_id).items[0]
        assert item.product_name == "Toor Dal"
        assert item.unit_price_paise == 15000

    def test_cart_is_cleared(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)
        cart = cart_service.get_cart(customer.id)
        cart.applied_coupon = {"code": "NOPE"}
        db.session.commit()

        placed(checkout(client, customer_headers))

        response = client.get("/api/cart", headers=customer_headers)
        assert response.json["data"]["items"] == []
        assert response.json["data"]["applied_coupon"] is None

    def test_expedited_delivery(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(price_paise=10000), 1)

        response = checkout(client, customer_headers, deliveryType="expedited")

        order = placed(response)
        assert order.delivery_charges_paise == 10000
        estimated = parse_iso_datetime(response.json["data"]["estimatedDelivery"])
        assert abs(estimated - (utcnow() + timedelta(days=2))) < timedelta(minutes=1)

    def test_weight_option_price_and_stock(self, client, customer, customer_headers, home_address, make_product):
        product = make_product(price_paise=10000, stock=0, weight_options=[("500g", 6000, 4), ("1kg", 11000, 5)])
        add_to_cart(customer, product, 2, "1kg")

        order = placed(checkout(client, customer_headers))

        assert order.subtotal_paise == 22000
        assert order.items[0].weight_option == "1kg"
        options = {o.weight: o.quantity for o in db.session.get(Product, product.id).weight_options}
        assert options == {"500g": 4, "1kg": 3}

    def test_order_log_written(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers))

        logs = client.get(f"/api/orders/{order.public_id}/logs", headers=customer_headers)
        assert [entry["label"] for entry in logs.json["data"]["logs"]] == ["Order Placed"]


class TestStockReservation:

    def test_insufficient_stock(self, client, customer, customer_headers, home_address, make_product):
        product = make_product(stock=3)
        add_to_cart(customer, product, 5)

        response = checkout(client, customer_headers)

        assert response.status_code == 409
        assert response.json["data"]["items"][0]["available_quantity"] == 3
        assert db.session.get(Product, product.id).stock_quantity == 3
        assert db.session.query(Order).count() == 0

    def test_failure_rolls_back_everything(
        self, client, customer, customer_headers, home_address, make_product, make_coupon, reward_config
    ):
        plenty = make_product(name="Rice", stock=10)
        scarce = make_product(name="Saffron", stock=1)
        coupon = make_coupon(code="SAVE10")
        give_points(customer, 1000)
        add_to_cart(customer, plenty, 2)
        add_to_cart(customer, scarce, 2)

        response = checkout(client, customer_headers, couponCode="SAVE10", rewardPoints=500)

        assert response.status_code == 409
        assert db.session.get(Product, plenty.id).stock_quantity == 10
        assert db.session.get(Product, scarce.id).stock_quantity == 1
        assert db.session.get(Coupon, coupon.id).used_count == 0
        assert reward_service.get_or_create_account(customer.id).balance == 1000
        assert db.session.query(Order).count() == 0
        assert len(cart_service.get_cart(customer.id).items) == 2

    def test_last_unit_goes_to_one_buyer(
        self, client, customer, other_customer, customer_headers, other_headers, home_address, make_product
    ):
        product = make_product(stock=1)
        add_to_cart(customer, product, 1)
        add_to_cart(other_customer, product, 1)

        first = checkout(client, customer_headers)
        second = checkout(client, other_headers, skipAddress=True)

        assert first.status_code == 201
        assert second.status_code == 409
        assert db.session.get(Product, product.id).stock_quantity == 0
        assert db.session.query(Order).count() == 1

    def test_unavailable_product(self, client, customer, customer_headers, home_address, make_product):
        product = make_product()
        add_to_cart(customer, product, 1)
        product.is_active = False
        db.session.commit()

        response = checkout(client, customer_headers)

        assert response.status_code == 409
        assert response.json["data"]["product_id"] == product.id

    def test_unavailable_product_status_is_configurable(
        self, app, client, customer, customer_headers, home_address, make_product, monkeypatch
    ):
        monkeypatch.setitem(app.config, "PRODUCT_UNAVAILABLE_STATUS", 422)
        product = make_product()
        add_to_cart(customer, product, 1)
        product.is_deleted = True
        db.session.commit()

        response = checkout(client, customer_headers)

        assert response.status_code == 422


class TestCoupons:

    def test_percentage_coupon_capped(self, client, customer, customer_headers, home_address, make_product, make_coupon):
        coupon = make_coupon(code="SAVE10", discount_value=1000, max_discount_paise=5000)
        add_to_cart(customer, make_product(price_paise=50000), 2)

        order = placed(checkout(client, customer_headers, couponCode="save10"))

        assert order.discount_paise == 5000
        assert order.coupon_code == "SAVE10"
        assert order.total_paise == 100000 - 5000 + 5000
        assert db.session.get(Coupon, coupon.id).used_count == 1
        assert coupon_service.get_user_usage(coupon, customer.id) == 1

    def test_per_user_limit(self, client, customer, customer_headers, home_address, make_product, make_coupon):
        make_coupon(code="ONCE", discount_type="fixed", discount_value=2000, usage_limit_per_user=1)
        product = make_product(stock=10)

        add_to_cart(customer, product, 1)
        first = placed(checkout(client, customer_headers, couponCode="ONCE"))
        add_to_cart(customer, product, 1)
        second = placed(checkout(client, customer_headers, couponCode="ONCE"))

        assert first.discount_paise == 2000
        assert second.discount_paise == 0
        assert second.coupon_code is None

    def test_global_limit(
        self, client, customer, other_customer, customer_headers, other_headers, home_address, make_product, make_coupon
    ):
        coupon = make_coupon(code="FIRST1", usage_limit=1)
        product = make_product(stock=10)
        add_to_cart(customer, product, 1)
        add_to_cart(other_customer, product, 1)

        first = placed(checkout(client, customer_headers, couponCode="FIRST1"))
        second = placed(checkout(client, other_headers, couponCode="FIRST1", skipAddress=True))

        assert first.coupon_code == "FIRST1"
        assert second.coupon_code is None
        assert db.session.get(Coupon, coupon.id).used_count == 1

    def test_invalid_coupon_does_not_block_checkout(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers, couponCode="MISSING"))

        assert order.discount_paise == 0

    def test_coupon_from_cart(self, client, customer, customer_headers, home_address, make_product, make_coupon):
        make_coupon(code="CARTDEAL", discount_type="fixed", discount_value=1500)
        add_to_cart(customer, make_product(), 1)
        cart = cart_service.get_cart(customer.id)
        cart.applied_coupon = {"code": "CARTDEAL", "discount": 15}
        db.session.commit()

        order = placed(checkout(client, customer_headers))

        assert order.coupon_code == "CARTDEAL"
        assert order.discount_paise == 1500

    def test_selected_coupon_used_and_cleared(
        self, client, customer, customer_headers, home_address, make_product, make_coupon
    ):
        make_coupon(code="PICKED", discount_type="fixed", discount_value=1000)
        coupon_service.select_coupon(customer.id, "PICKED")
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers))

        assert order.coupon_code == "PICKED"
        assert coupon_service.get_selected_code(customer.id) is None

    def test_category_restricted_coupon_ignored(
        self, client, customer, customer_headers, home_address, make_product, make_coupon
    ):
        coupon = make_coupon(code="SNACKS", applicable_categories=["snacks"])
        add_to_cart(customer, make_product(category="grocery"), 1)

        order = placed(checkout(client, customer_headers, couponCode="SNACKS"))

        assert order.discount_paise == 0
        assert db.session.get(Coupon, coupon.id).used_count == 0


class TestRewards:

    def test_redemption_and_award(self, client, customer, customer_headers, home_address, make_product, reward_config):
        give_points(customer, 1000)
        add_to_cart(customer, make_product(price_paise=10000), 2)

        response = checkout(client, customer_headers, rewardPoints=500)

        order = placed(response)
        assert order.reward_points_used == 500
        assert order.reward_discount_paise == 5000
        assert order.total_paise == 20000 - 5000 + 5000
        earned = response.json["data"]["rewardsEarned"]
        assert earned == 10 + 200
        account = reward_service.get_or_create_account(customer.id)
        assert account.balance == 500 + earned

        redeemed = db.session.query(RewardTransaction).filter_by(
            user_id=customer.id, transaction_type=RewardTransaction.TYPE_REDEEMED
        ).one()
        assert redeemed.amount == -500
        assert redeemed.order_id == order.id

    def test_points_earned_for_order(self, client, customer, customer_headers, home_address, make_product, reward_config):
        add_to_cart(customer, make_product(price_paise=10000), 2)

        response = checkout(client, customer_headers)

        order = placed(response)
        assert response.json["data"]["rewardsEarned"] == 260
        assert order.rewards_earned == 260
        earned = db.session.query(RewardTransaction).filter_by(
            user_id=customer.id, transaction_type=RewardTransaction.TYPE_EARNED
        ).one()
        assert earned.amount == 260
        assert earned.order_id == order.id

    def test_failed_redemption_is_skipped(self, client, customer, customer_headers, home_address, make_product, reward_config):
        add_to_cart(customer, make_product(price_paise=10000), 1)

        order = placed(checkout(client, customer_headers, rewardPoints=500))

        assert order.reward_points_used == 0
        assert order.reward_discount_paise == 0

    def test_strict_redemption_fails_checkout(
        self, app, client, customer, customer_headers, home_address, make_product, reward_config, monkeypatch
    ):
        monkeypatch.setitem(app.config, "REWARD_REDEMPTION_STRICT", True)
        product = make_product(stock=5)
        add_to_cart(customer, product, 1)

        response = checkout(client, customer_headers, rewardPoints=500)

        assert response.status_code == 400
        assert "Insufficient reward balance" in response.json["message"]
        assert db.session.get(Product, product.id).stock_quantity == 5
        assert db.session.query(Order).count() == 0


class TestIdempotency:

    def test_header_key_replays_order(self, client, customer, customer_headers, home_address, make_product):
        product = make_product(stock=10)
        add_to_cart(customer, product, 2)
        headers = dict(customer_headers, **{"Idempotency-Key": "checkout-abc"})

        first = checkout(client, headers)
        second = checkout(client, headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json["data"] == second.json["data"]
        assert db.session.query(Order).count() == 1
        assert db.session.get(Product, product.id).stock_quantity == 8

    def test_body_key_replays_order(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        first = checkout(client, customer_headers, idempotencyKey="body-key-1")
        second = checkout(client, customer_headers, idempotencyKey="body-key-1")

        assert first.json["data"]["orderId"] == second.json["data"]["orderId"]

    def test_keys_are_per_user(
        self, client, customer, other_customer, customer_headers, other_headers, home_address, make_product
    ):
        product = make_product(stock=10)
        add_to_cart(customer, product, 1)
        add_to_cart(other_customer, product, 1)

        first = checkout(client, customer_headers, idempotencyKey="shared")
        second = checkout(client, other_headers, idempotencyKey="shared", skipAddress=True)

        assert first.json["data"]["orderId"] != second.json["data"]["orderId"]

    def test_overlong_key_rejected(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers, idempotencyKey="k" * 129)

        assert response.status_code == 400

    def test_duplicate_after_cart_cleared_replays(
        self, client, customer, customer_headers, home_address, make_product, monkeypatch
    ):
        product = make_product(stock=10)
        add_to_cart(customer, product, 1)
        headers = dict(customer_headers, **{"Idempotency-Key": "late-duplicate"})
        first = checkout(client, headers)

        # The duplicate checked the key before the first request committed
        _miss_first_lookup(monkeypatch)
        second = checkout(client, headers)

        assert second.status_code == 201, second.json
        assert second.json["data"] == first.json["data"]
        assert db.session.query(Order).count() == 1

    def test_duplicate_inside_write_lock_replays(
        self, client, customer, customer_headers, home_address, make_product, monkeypatch
    ):
        product = make_product(stock=10)
        add_to_cart(customer, product, 1)
        headers = dict(customer_headers, **{"Idempotency-Key": "locked-duplicate"})
        first = checkout(client, headers)

        # Cart still populated, as if the first request had not reached its cart clear yet
        add_to_cart(customer, product, 3)
        _miss_first_lookup(monkeypatch)
        second = checkout(client, headers)

        assert second.status_code == 201, second.json
        assert second.json["data"]["orderId"] == first.json["data"]["orderId"]
        assert db.session.query(Order).count() == 1
        assert db.session.get(Product, product.id).stock_quantity == 9
        assert len(cart_service.get_cart(customer.id).items) == 1


class TestRequestValidation:

    def test_empty_cart(self, client, customer, customer_headers, home_address):
        response = checkout(client, customer_headers)

        assert response.status_code == 400
        assert response.json["message"] == "Cart is empty"

    def test_payment_method_required(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        response = client.post("/api/checkout", json={}, headers=customer_headers)

        assert response.status_code == 400
        assert response.json["message"] == "Payment method is required"

    def test_invalid_delivery_type(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers, deliveryType="teleport")

        assert response.status_code == 400

    def test_address_required(self, client, customer, customer_headers, make_product):
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers)

        assert response.status_code == 400
        assert response.json["message"] == "Delivery address is required"

    def test_pickup_without_address(self, client, customer, customer_headers, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers, skipAddress=True))

        assert order.delivery_address is None

    def test_unknown_address_id(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers, addressID=9999)

        assert response.status_code == 404

    def test_inline_address(self, client, customer, customer_headers, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers, address={
            "name": "Asha", "phone": "9876543210", "address": "5 Lake View",
            "city": "Chennai", "pincode": "600001",
        }))

        assert order.delivery_address["city"] == "Chennai"

    def test_invalid_inline_address(self, client, customer, customer_headers, make_product):
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers, address={
            "name": "Asha", "phone": "12345", "address": "5 Lake View",
            "city": "Chennai", "pincode": "600001",
        })

        assert response.status_code == 400


class TestCheckoutIdentity:

    def test_requires_authentication(self, client, db_session):
        response = client.post("/api/checkout", json={"paymentMethod": "cod"})
        assert response.status_code == 401

    def test_own_public_id_accepted(self, client, customer, customer_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, customer_headers, userId=customer.public_id))

        assert order.user_id == customer.id

    def test_other_user_forbidden(
        self, client, customer, other_customer, customer_headers, make_product
    ):
        add_to_cart(other_customer, make_product(), 1)

        response = checkout(client, customer_headers, userId=other_customer.id, skipAddress=True)

        assert response.status_code == 403
        assert db.session.query(Order).count() == 0

    def test_admin_may_order_for_user(self, client, customer, admin_headers, home_address, make_product):
        add_to_cart(customer, make_product(), 1)

        order = placed(checkout(client, admin_headers, user_id=str(customer.id)))

        assert order.user_id == customer.id

    def test_unknown_user(self, client, admin_headers):
        response = checkout(client, admin_headers, userId="00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404


class TestPostCommitIsolation:

    def test_cart_clear_failure_keeps_order(
        self, client, customer, customer_headers, home_address, make_product, reward_config, monkeypatch
    ):
        def _boom(*args, **kwargs):
            raise RuntimeError("cart store down")

        monkeypatch.setattr(cart_service, "clear_cart", _boom)
        product = make_product(price_paise=10000, stock=5)
        add_to_cart(customer, product, 1)

        response = checkout(client, customer_headers)

        order = placed(response)
        assert db.session.get(Product, product.id).stock_quantity == 4
        assert len(cart_service.get_cart(customer.id).items) == 1
        assert response.json["data"]["rewardsEarned"] == order.rewards_earned == 10 + 150

    def test_award_failure_keeps_order(
        self, client, customer, customer_headers, home_address, make_product, reward_config, monkeypatch
    ):
        def _boom(*args, **kwargs):
            raise RuntimeError("ledger down")

        monkeypatch.setattr(reward_service, "award", _boom)
        add_to_cart(customer, make_product(), 1)

        response = checkout(client, customer_headers)

        order = placed(response)
        assert response.json["data"]["rewardsEarned"] == 0
        assert order.rewards_earned == 0
        assert cart_service.get_cart(customer.id).items == []
