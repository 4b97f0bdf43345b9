"""
Pytest fixtures for storefront backend tests.

Provides an in-memory application, a clean database per test, a test
client and seeded users, products, coupons and reward configuration.
"""

import pytest
from decimal import Decimal

from storefront import create_app
from storefront.extensions import db
from storefront.models import (
    User,
    Product,
    ProductWeightOption,
    Address,
    Coupon,
    RewardConfig,
)
from storefront.services.auth_service import hash_password
from storefront.services import cart_service, reward_service, session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def customer(db_session):
    """Active customer with a known password."""
    user = User(
        email="customer@example.com",
        name="Asha Customer",
        phone="9876543210",
        password_hash=hash_password("Password123!"),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def other_customer(db_session):
    user = User(
        email="other@example.com",
        name="Other Customer",
        password_hash=hash_password("Password123!"),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    user = User(
        email="admin@example.com",
        name="Admin",
        password_hash=hash_password("Password123!"),
        is_admin=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer_headers(customer):
    _, token = session_service.create_session(customer.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def other_headers(other_customer):
    _, token = session_service.create_session(other_customer.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    _, token = session_service.create_session(admin.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, price_paise, stock, category=None, weight_options=None)."""
    def _make(name="Basmati Rice", price_paise=10000, stock=10, category="grocery", weight_options=None):
        product = Product(
            name=name,
            category=category,
            price_paise=price_paise,
            stock_quantity=stock,
        )
        for weight, price, quantity in weight_options or []:
            product.weight_options.append(
                ProductWeightOption(weight=weight, price_paise=price, quantity=quantity)
            )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_coupon(db_session):
    """Factory for coupons; percentage values are basis points."""
    def _make(code="SAVE10", discount_type="percentage", discount_value=1000, **kwargs):
        kwargs.setdefault("applicable_products", [])
        kwargs.setdefault("applicable_categories", [])
        coupon = Coupon(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
        db_session.add(coupon)
        db_session.commit()
        return coupon
    return _make


@pytest.fixture(scope='function')
def reward_config(db_session):
    """10 points per order + 1 point per rupee, no minimum order, 10 points per rupee of discount."""
    config = RewardConfig(
        name="Test",
        points_per_order=10,
        points_per_rupee=Decimal("1"),
        min_order_for_reward_paise=0,
        redemption_rate=10,
        min_redemption_points=100,
        eligibility_after_orders=1,
        is_active=True,
    )
    db_session.add(config)
    db_session.commit()
    return config


@pytest.fixture(scope='function')
def home_address(db_session, customer):
    address = Address(
        user_id=customer.id,
        label="Home",
        name="Asha Customer",
        phone="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
        is_default=True,
    )
    db_session.add(address)
    db_session.commit()
    return address


def add_to_cart(user, product, quantity, weight_option=None):
    """Put a line in the user's cart through the cart service."""
    return cart_service.set_item(user.id, product.id, quantity, weight_option)


def give_points(user, points):
    """Credit reward points outside of any order."""
    return reward_service.award(user.id, None, points, "Test credit")


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json["data"]["token"]
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
