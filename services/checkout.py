"""Checkout orchestration: cart validation, pricing, gateway order creation
and order persistence, plus the post-capture bookkeeping.
"""

from core.imports import datetime, secrets, update, SQLAlchemyError
from core.logger import get_logger
from models.orderModels import Order, OrderItem, OrderStatusHistory, PaymentTransaction, ShippingMethod
from models.productModels import Products
from services.errors import CheckoutError, GatewayError
from services.statuses import OrderStatus, PaymentStatus, confirm_paid_order

logger = get_logger(__name__)

PRICE_TOLERANCE = 0.01


class CheckoutService:
    def __init__(self, session, gateway, tax_rate=0.18, item_weight_kg=0.5, currency="INR"):
        self.session = session
        self.gateway = gateway
        self.tax_rate = tax_rate
        self.item_weight_kg = item_weight_kg
        self.currency = currency

    def initialize_checkout(self, data):
        """Validate the cart, price it, open a gateway order and persist a
        pending order with its line items.

        ``data`` carries ``items``, ``shipping_address``, optional
        ``billing_address``, ``shipping_method_id``, ``payment_method`` and
        optional ``user_id``. Every step is a hard stop: a failure raises
        ``CheckoutError`` and nothing after it runs.
        """
        items = data["items"]
        products = self.validate_cart_items(items)

        subtotal = round(sum(float(item["total_price"]) for item in items), 2)
        tax_amount = round(subtotal * self.tax_rate, 2)
        shipping_amount = self.calculate_shipping_cost(items, data["shipping_method_id"])
        total_amount = round(subtotal + tax_amount + shipping_amount, 2)

        user_id = data.get("user_id")
        try:
            gateway_order = self.gateway.create_order(
                amount=round(total_amount * 100),
                currency=self.currency,
                receipt=f"order_{int(datetime.utcnow().timestamp() * 1000)}",
                notes={
                    "user_id": str(user_id) if user_id else "guest",
                    "items_count": str(len(items)),
                },
            )
        except GatewayError as e:
            logger.error("gateway_order_failed", error=str(e), total_amount=total_amount)
            raise CheckoutError("Failed to create payment order") from e

        try:
            order = Order(
                user_id=user_id,
                order_number=self.generate_order_number(),
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                subtotal=subtotal,
                tax_amount=tax_amount,
                shipping_amount=shipping_amount,
                total_amount=total_amount,
                payment_method=data["payment_method"],
                razorpay_order_id=gateway_order["id"],
                shipping_address=data["shipping_address"],
                billing_address=data.get("billing_address") or data["shipping_address"],
                shipping_method=data["shipping_method_id"],
            )
            self.session.add(order)

            for item in items:
                product = products[int(item["product_id"])]
                order.order_items.append(OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    product_sku=product.sku,
                    quantity=int(item["quantity"]),
                    unit_price=float(item["unit_price"]),
                    total_price=float(item["total_price"]),
                    attributes=item.get("attributes"),
                ))

            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("order_persist_failed", error=str(e), razorpay_order_id=gateway_order.get("id"))
            raise CheckoutError(f"Failed to create order: {e}", "DATABASE_ERROR") from e

        logger.info(
            "checkout_initialized",
            order_id=order.id,
            order_number=order.order_number,
            total_amount=total_amount,
            user_id=user_id,
        )

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "razorpay_order_id": order.razorpay_order_id,
            "total_amount": total_amount,
            "shipping_amount": shipping_amount,
            "tax_amount": tax_amount,
            "subtotal": subtotal,
        }

    def validate_cart_items(self, items):
        """Check every line against the live catalogue; return products keyed by id."""
        products = {}
        for item in items:
            product = self.session.get(Products, int(item["product_id"]))
            if not product:
                raise CheckoutError(f"Product not found: {item['product_id']}", "PRODUCT_NOT_FOUND")

            if not product.is_active:
                raise CheckoutError(f"Product is not available: {product.name}", "PRODUCT_UNAVAILABLE")

            if product.stock_quantity < int(item["quantity"]):
                raise CheckoutError(f"Insufficient stock for {product.name}", "INSUFFICIENT_STOCK")

            if abs(product.current_price - float(item["unit_price"])) > PRICE_TOLERANCE:
                raise CheckoutError(f"Price mismatch for {product.name}", "PRICE_MISMATCH")

            products[product.id] = product
        return products

    def calculate_shipping_cost(self, items, shipping_method_id):
        # flat per-item weight until products carry their own
        total_weight = sum(int(item["quantity"]) * self.item_weight_kg for item in items)

        method = (
            ShippingMethod.query
            .filter_by(id=shipping_method_id, is_active=True)
            .first()
        )
        if not method:
            raise CheckoutError("Invalid shipping method", "INVALID_SHIPPING_METHOD")

        return round(max(method.base_rate + total_weight * method.weight_rate, 0), 2)

    def get_shipping_methods(self):
        methods = (
            ShippingMethod.query
            .filter_by(is_active=True)
            .order_by(ShippingMethod.sort_order)
            .all()
        )
        return [m.to_dict() for m in methods]

    def generate_order_number(self):
        prefix = f"MOR{datetime.utcnow().strftime('%Y%m%d')}"
        while True:
            candidate = f"{prefix}{secrets.token_hex(3).upper()}"
            if not Order.query.filter_by(order_number=candidate).first():
                return candidate

    def process_successful_payment(self, order, razorpay_order_id, razorpay_payment_id, gateway_response=None):
        """Confirm a captured order, log the transaction and draw down stock.

        The status change, the history row, the transaction row and the
        stock decrements go out in one commit, so a failure leaves the order
        pending and unpaid. Returns the shortfall product ids.
        """
        order.status = confirm_paid_order(order.status)
        order.payment_status = PaymentStatus.PAID.value
        order.razorpay_payment_id = razorpay_payment_id

        self.session.add(PaymentTransaction(
            order_id=order.id,
            razorpay_order_id=razorpay_order_id,
            razorpay_payment_id=razorpay_payment_id,
            amount=order.total_amount,
            currency=self.currency,
            status="success",
            payment_method="razorpay",
            gateway_response=gateway_response or {},
        ))
        self.session.add(OrderStatusHistory(
            order_id=order.id,
            status=OrderStatus.CONFIRMED.value,
            description="Payment captured",
            created_by="system",
        ))
        shortfalls = self.update_inventory(order, commit=False)
        self.session.commit()
        return shortfalls

    def update_inventory(self, order, commit=True):
        """Decrement stock for each line with a conditional update.

        The row only changes when enough stock remains, so concurrent
        captures can never drive stock below zero. Returns the ids of
        products that could not be fully decremented.
        """
        shortfalls = []
        for item in order.order_items:
            if item.product_id is None:
                continue
            result = self.session.execute(
                update(Products)
                .where(Products.id == item.product_id, Products.stock_quantity >= item.quantity)
                .values(stock_quantity=Products.stock_quantity - item.quantity)
            )
            if result.rowcount == 0:
                shortfalls.append(item.product_id)
                logger.warning(
                    "inventory_shortfall",
                    order_id=order.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                )
        if commit:
            self.session.commit()
        return shortfalls
