from core.extensions import db
from core.imports import current_app
from services.checkout import CheckoutService
from services.gateway import RazorpayGateway
from services.payments import PaymentService
from services.returns import OrderReturnService
from services.tracking import OrderTrackingService


class Services:
    def __init__(self, checkout, payments, tracking, returns):
        self.checkout = checkout
        self.payments = payments
        self.tracking = tracking
        self.returns = returns


def build_services(app, gateway=None, couriers=None):
    """Wire the order services once per app and keep them on ``app.extensions``."""
    gateway = gateway or RazorpayGateway.from_config(app.config)
    currency = app.config.get("CURRENCY", "INR")

    checkout = CheckoutService(
        db.session,
        gateway,
        tax_rate=app.config.get("TAX_RATE", 0.18),
        item_weight_kg=app.config.get("ITEM_WEIGHT_KG", 0.5),
        currency=currency,
    )
    payments = PaymentService(
        db.session,
        gateway,
        checkout,
        key_secret=app.config.get("RAZORPAY_KEY_SECRET"),
        currency=currency,
    )
    tracking = OrderTrackingService(db.session, couriers=couriers)
    returns = OrderReturnService(db.session, payments)

    services = Services(checkout, payments, tracking, returns)
    app.extensions["storefront"] = services
    return services


def get_services():
    return current_app.extensions["storefront"]
