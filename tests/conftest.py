"""Shared fixtures for the storefront API tests."""

import hashlib
import hmac
from types import SimpleNamespace

import pytest

from core.config import TestingConfig
from core.extensions import bcrypt, db
from main import create_app
from models.orderModels import Order, OrderItem, ShippingMethod
from models.productModels import Category, Products
from models.userModel import Users
from routes.auth import issue_token
from services.errors import GatewayError
from services.registry import get_services

KEY_SECRET = TestingConfig.RAZORPAY_KEY_SECRET

SHIPPING_ADDRESS = {
    "first_name": "Jane",
    "last_name": "Doe",
    "address_line_1": "12 MG Road",
    "city": "Pune",
    "state": "MH",
    "postal_code": "411001",
    "country": "India",
    "phone": "9876543210",
}


class FakeGateway:
    """Records calls instead of talking to Razorpay."""

    def __init__(self):
        self.created_orders = []
        self.refunds = []
        self.payment_status = "captured"
        self.fail_create = False
        self.fail_refund = False

    def create_order(self, amount, currency="INR", receipt=None, notes=None):
        if self.fail_create:
            raise GatewayError("gateway down", 502)
        order = {
            "id": f"order_test_{len(self.created_orders) + 1}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        self.created_orders.append(order)
        return order

    def fetch_payment(self, payment_id):
        return {"id": payment_id, "status": self.payment_status}

    def refund_payment(self, payment_id, amount, notes=None):
        if self.fail_refund:
            raise GatewayError("refund rejected", 400)
        refund = {"id": f"rfnd_test_{len(self.refunds) + 1}", "payment_id": payment_id, "amount": amount}
        self.refunds.append(refund)
        return refund


def sign(razorpay_order_id, razorpay_payment_id, secret=KEY_SECRET):
    return hmac.new(
        secret.encode(),
        f"{razorpay_order_id}|{razorpay_payment_id}".encode(),
        hashlib.sha256,
    ).hexdigest()


def _user(email, first_name, role="user"):
    user = Users(
        email=email,
        password=bcrypt.generate_password_hash("password123").decode("utf-8"),
        first_name=first_name,
        last_name="Tester",
        role=role,
    )
    db.session.add(user)
    return user


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    app = create_app(TestingConfig, gateway=gateway)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def seed(app):
    clothing = Category(name="Clothing", slug="clothing")
    db.session.add(clothing)
    db.session.flush()
    tops = Category(name="Tops", slug="tops", parent_id=clothing.id)
    db.session.add(tops)
    db.session.flush()

    tee = Products(
        name="Organic Tee", slug="organic-tee", sku="TEE-1",
        price=125.0, stock_quantity=10, category_id=tops.id,
        attributes={"material": "cotton", "organic_certified": True},
        is_featured=True,
    )
    dress = Products(
        name="Linen Dress", slug="linen-dress", sku="DRS-1",
        price=300.0, sale_price=250.0, stock_quantity=2, category_id=clothing.id,
        attributes={"material": "linen"},
    )
    retired = Products(
        name="Retired Scarf", slug="retired-scarf", sku="SCF-1",
        price=90.0, stock_quantity=5, category_id=clothing.id, is_active=False,
    )
    db.session.add_all([tee, dress, retired])
    db.session.add_all([
        ShippingMethod(id="standard", name="Standard", base_rate=50.0, weight_rate=20.0, estimated_days=5, sort_order=0),
        ShippingMethod(id="express", name="Express", base_rate=150.0, weight_rate=40.0, estimated_days=2, sort_order=1),
        ShippingMethod(id="freight", name="Freight", base_rate=500.0, weight_rate=0.0, is_active=False, sort_order=2),
    ])

    customer = _user("jane@example.com", "Jane")
    other = _user("omar@example.com", "Omar")
    admin = _user("admin@example.com", "Ada", role="admin")
    db.session.commit()

    return SimpleNamespace(
        clothing=clothing, tops=tops,
        tee=tee, dress=dress, retired=retired,
        customer=customer, other=other, admin=admin,
    )


def auth_header(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def customer_headers(seed):
    return auth_header(seed.customer)


@pytest.fixture
def other_headers(seed):
    return auth_header(seed.other)


@pytest.fixture
def admin_headers(seed):
    return auth_header(seed.admin)


def checkout_payload(product, quantity=2, shipping_method_id="standard", unit_price=None):
    unit_price = product.current_price if unit_price is None else unit_price
    return {
        "items": [{
            "product_id": product.id,
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": round(unit_price * quantity, 2),
        }],
        "shipping_address": dict(SHIPPING_ADDRESS),
        "shipping_method_id": shipping_method_id,
        "payment_method": "razorpay",
    }


@pytest.fixture
def make_order(seed):
    """Insert an order directly in a given state."""

    def _make(user=None, status="pending", payment_status="pending", product=None, quantity=2, paid=False):
        product = product or seed.tee
        subtotal = round(product.current_price * quantity, 2)
        order = Order(
            user_id=(user or seed.customer).id,
            order_number=get_services().checkout.generate_order_number(),
            status=status,
            payment_status="paid" if paid else payment_status,
            subtotal=subtotal,
            tax_amount=round(subtotal * 0.18, 2),
            shipping_amount=70.0,
            total_amount=round(subtotal * 1.18 + 70.0, 2),
            payment_method="razorpay",
            razorpay_order_id="order_seeded",
            razorpay_payment_id="pay_seeded" if paid else None,
            shipping_address=dict(SHIPPING_ADDRESS),
            shipping_method="standard",
        )
        order.order_items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            quantity=quantity,
            unit_price=product.current_price,
            total_price=subtotal,
        ))
        db.session.add(order)
        db.session.commit()
        return order

    return _make


@pytest.fixture
def paid_order(services, seed):
    """Run a real checkout for the customer and capture its payment."""
    data = checkout_payload(seed.tee)
    data["user_id"] = seed.customer.id
    result = services.checkout.initialize_checkout(data)
    verification = services.payments.process_payment_verification(
        result["razorpay_order_id"],
        "pay_test_1",
        sign(result["razorpay_order_id"], "pay_test_1"),
        result["order_id"],
    )
    assert verification["success"], verification
    return db.session.get(Order, result["order_id"])
