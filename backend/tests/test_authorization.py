"""
Authorization tests for the storefront API.

Verifies:
- Unauthenticated requests return 401
- Customers are denied admin operations (403)
- Admin role can perform privileged operations
- Customers only see and cancel their own orders
"""

import pytest

from storefront.extensions import db
from storefront.models import Coupon, RewardTransaction
from storefront.services import checkout_service, reward_service
from conftest import add_to_cart, get_auth_token, auth_headers


@pytest.fixture
def customer_order(db_session, customer, home_address, make_product):
    add_to_cart(customer, make_product(stock=5), 1)
    summary = checkout_service.place_order({"paymentMethod": "cod"}, session_user=customer)
    return summary["orderId"]


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/checkout"),
            ("GET", "/api/cart"),
            ("POST", "/api/cart/items"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/abc"),
            ("POST", "/api/orders/abc/cancel"),
            ("GET", "/api/rewards"),
            ("POST", "/api/rewards/redeem"),
            ("POST", "/api/coupons/validate"),
            ("POST", "/api/coupons/select"),
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("POST", "/api/admin/coupons"),
            ("GET", "/api/admin/rewards/config"),
            ("PUT", "/api/admin/rewards/config"),
            ("POST", "/api/admin/rewards/adjust"),
            ("POST", "/api/admin/orders/abc/status"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path, json={})
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"
        assert resp.json["status"] == "degraded"


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestLogin:
    """Bearer tokens are issued on login and revoked on logout."""

    def test_login_and_me(self, client, customer):
        token = get_auth_token(client, "Customer@Example.com", "Password123!")
        assert token

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["email"] == "customer@example.com"

    def test_wrong_password(self, client, customer):
        resp = client.post("/api/auth/login", json={"email": "customer@example.com", "password": "wrong-pass"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "customer@example.com"})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, customer):
        token = get_auth_token(client, "customer@example.com", "Password123!")

        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401

    def test_inactive_user_cannot_login(self, client, db_session, customer):
        customer.is_active = False
        db_session.commit()

        assert get_auth_token(client, "customer@example.com", "Password123!") is None


# =============================================================================
# CUSTOMER DENIED ADMIN OPERATIONS — 403
# =============================================================================


class TestCustomerDeniedAdmin:
    """Customers cannot perform privileged operations."""

    def test_cannot_create_coupon(self, client, customer_headers):
        resp = client.post(
            "/api/admin/coupons",
            json={"code": "FREE100", "discount_type": "percentage", "discount_value": 100},
            headers=customer_headers,
        )
        assert resp.status_code == 403

    def test_cannot_adjust_rewards(self, client, customer, customer_headers):
        resp = client.post(
            "/api/admin/rewards/adjust",
            json={"userId": customer.id, "amount": 100000, "reason": "self-service"},
            headers=customer_headers,
        )
        assert resp.status_code == 403
        assert reward_service.get_or_create_account(customer.id).balance == 0

    def test_cannot_change_reward_config(self, client, customer_headers):
        resp = client.put("/api/admin/rewards/config", json={"points_per_order": 1000}, headers=customer_headers)
        assert resp.status_code == 403

    def test_cannot_move_order_status(self, client, customer_headers, customer_order):
        resp = client.post(
            f"/api/admin/orders/{customer_order}/status",
            json={"status": "delivered"},
            headers=customer_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ADMIN OPERATIONS
# =============================================================================


class TestAdminOperations:
    """Admins can manage coupons, rewards and order status."""

    def test_create_coupon(self, client, admin_headers):
        resp = client.post(
            "/api/admin/coupons",
            json={"code": "diwali25", "discount_type": "percentage", "discount_value": 25, "max_discount_paise": 20000},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["code"] == "DIWALI25"
        assert resp.json["data"]["discount_value"] == 25
        assert db.session.query(Coupon).filter_by(code="DIWALI25").one().discount_value == 2500

    def test_create_coupon_validation(self, client, admin_headers):
        resp = client.post(
            "/api/admin/coupons",
            json={"code": "BAD", "discount_type": "bogo", "discount_value": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_update_reward_config(self, client, admin_headers, reward_config):
        resp = client.put("/api/admin/rewards/config", json={"points_per_order": 25}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["data"]["points_per_order"] == 25
        resp = client.get("/api/admin/rewards/config", headers=admin_headers)
        assert resp.json["data"]["points_per_order"] == 25

    def test_adjust_rewards(self, client, db_session, customer, admin_headers):
        resp = client.post(
            "/api/admin/rewards/adjust",
            json={"userId": customer.public_id, "amount": 300, "reason": "Delivery delay goodwill"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        assert reward_service.get_or_create_account(customer.id).balance == 300
        txn = db_session.query(RewardTransaction).filter_by(user_id=customer.id).one()
        assert txn.transaction_type == RewardTransaction.TYPE_ADJUSTED

    def test_adjust_unknown_user(self, client, admin_headers):
        resp = client.post(
            "/api/admin/rewards/adjust",
            json={"userId": 9999, "amount": 300, "reason": "x"},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_move_order_status(self, client, admin_headers, customer_headers, customer_order):
        resp = client.post(
            f"/api/admin/orders/{customer_order}/status",
            json={"status": "dispatched", "trackingId": "TRK1"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["order_status"] == "dispatched"
        assert resp.json["data"]["tracking_id"] == "TRK1"

        resp = client.post(
            f"/api/admin/orders/{customer_order}/status",
            json={"status": "pending"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

        resp = client.post(f"/api/orders/{customer_order}/cancel", json={}, headers=customer_headers)
        assert resp.status_code == 409


# =============================================================================
# ORDER OWNERSHIP
# =============================================================================


class TestOrderOwnership:
    """Orders are visible only to the customer who placed them."""

    def test_owner_sees_order(self, client, customer_headers, customer_order):
        resp = client.get(f"/api/orders/{customer_order}", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["id"] == customer_order

        resp = client.get("/api/orders", headers=customer_headers)
        assert [o["id"] for o in resp.json["data"]["orders"]] == [customer_order]

    def test_other_customer_denied(self, client, other_headers, customer_order):
        assert client.get(f"/api/orders/{customer_order}", headers=other_headers).status_code == 403
        assert client.get(f"/api/orders/{customer_order}/logs", headers=other_headers).status_code == 403
        assert client.post(f"/api/orders/{customer_order}/cancel", json={}, headers=other_headers).status_code == 403

        resp = client.get("/api/orders", headers=other_headers)
        assert resp.json["data"]["orders"] == []

    def test_owner_cancels(self, client, customer_headers, customer_order):
        resp = client.post(f"/api/orders/{customer_order}/cancel", json={"reason": "Changed my mind"}, headers=customer_headers)

        assert resp.status_code == 200
        assert resp.json["data"]["order_status"] == "cancelled"
        assert resp.json["data"]["cancel_reason"] == "Changed my mind"

    def test_missing_order(self, client, customer_headers, db_session):
        resp = client.get("/api/orders/does-not-exist", headers=customer_headers)
        assert resp.status_code == 404
