from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from inksoul.core.security import create_access_token, get_password_hash
from inksoul.db.session import create_db_and_tables, get_session
from inksoul.main import app
from inksoul.models.coupon import Coupon, CouponType
from inksoul.models.product import Product, ProductCategory
from inksoul.models.user import User, UserRole
from inksoul.services.payment import get_payment_client

PASSWORD = "secret123"


class SignatureVerificationError(Exception):
    pass


class FakeRazorpay:
    """Stands in for razorpay.Client: records calls and checks signatures against a flag."""

    def __init__(self):
        self.created_orders = []
        self.refunds = []
        self.signatures_valid = True
        self.order = SimpleNamespace(create=self._create_order)
        self.payment = SimpleNamespace(refund=self._refund)
        self.utility = SimpleNamespace(
            verify_payment_signature=self._verify_payment_signature,
            verify_webhook_signature=self._verify_webhook_signature,
        )

    def _create_order(self, data):
        self.created_orders.append(data)
        return {"id": f"order_rzp_{len(self.created_orders)}", "amount": data["amount"], "currency": data["currency"], "status": "created"}

    def _refund(self, payment_id, data):
        self.refunds.append((payment_id, data))
        return {"id": f"rfnd_{len(self.refunds)}", "payment_id": payment_id, "amount": data["amount"]}

    def _verify_payment_signature(self, params):
        if not self.signatures_valid:
            raise SignatureVerificationError("Razorpay Signature Verification Failed")
        return True

    def _verify_webhook_signature(self, body, signature, secret):
        if not self.signatures_valid:
            raise SignatureVerificationError("Razorpay Signature Verification Failed")
        return True


@pytest.fixture
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database so two sessions hold independent connections."""
    engine = create_engine(f"sqlite:///{tmp_path / 'inksoul.db'}", connect_args={"check_same_thread": False})
    create_db_and_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def razorpay_client():
    return FakeRazorpay()


@pytest.fixture
def client(session, razorpay_client):
    """Create test client wired to the test session and the fake payment client."""
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_payment_client] = lambda: razorpay_client
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(session, email, name="Test Customer", role=UserRole.CUSTOMER, **fields):
    user = User(name=name, email=email, password_hash=get_password_hash(PASSWORD), role=role, **fields)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def customer(session):
    return make_user(session, "customer@example.com")


@pytest.fixture
def other_customer(session):
    return make_user(session, "other@example.com", name="Other Customer")


@pytest.fixture
def admin(session):
    return make_user(session, "admin@inksoul.com", name="Store Admin", role=UserRole.ADMIN)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def make_product(session):
    """Factory for catalogue products with unique codes."""
    counter = {"n": 0}

    def factory(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            name=f"Test Tee {n}",
            slug=f"test-tee-{n}",
            description="A comfortable printed cotton tee.",
            category=ProductCategory.T_SHIRTS,
            product_code=f"TST-{n:03d}",
            sku=f"SKU-{n:03d}",
            price=20.0,
            stock=10,
            images=[{"url": f"/images/tee-{n}.webp", "is_primary": True}],
        )
        fields.update(overrides)
        product = Product(**fields)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return factory


@pytest.fixture
def make_coupon(session):
    """Factory for coupons valid from yesterday until next month unless overridden."""
    def factory(code="SAVE10", **overrides):
        now = datetime.utcnow()
        fields = dict(
            code=code,
            type=CouponType.PERCENTAGE,
            value=10,
            start_date=now - timedelta(days=1),
            expires_at=now + timedelta(days=30),
        )
        fields.update(overrides)
        coupon = Coupon(**fields)
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon

    return factory


def shipping_address(email="customer@example.com"):
    return {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": email,
        "phone": "5551234567",
        "address": "12 Analytical Way",
        "city": "London",
        "state": "LDN",
        "zip_code": "10001",
        "country": "United Kingdom",
    }


def order_payload(lines, items_price, **extra):
    """lines: [(product, quantity), ...]"""
    payload = {
        "items": [{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
        "shipping_address": shipping_address(),
        "payment_method": "razorpay",
        "items_price": items_price,
    }
    payload.update(extra)
    return payload
