from core.imports import hashlib, hmac, SQLAlchemyError
from core.logger import get_logger
from models.orderModels import Order, OrderStatusHistory, PaymentTransaction
from services.errors import GatewayError
from services.statuses import OrderStatus, PaymentStatus, InvalidTransition

logger = get_logger(__name__)

PAYMENT_METHODS = [
    {
        "id": "razorpay",
        "name": "Razorpay",
        "description": "Pay securely with cards, UPI, net banking and wallets",
        "enabled": True,
    },
    {
        "id": "cod",
        "name": "Cash on Delivery",
        "description": "Pay when your order is delivered",
        "enabled": True,
    },
]


def _result(success, message, reason=None, **extra):
    data = {"success": success, "message": message, "reason": reason}
    data.update(extra)
    return data


class PaymentService:
    """Gateway-facing payment operations.

    Verification and refunds report their outcome as a result dict with
    ``success``, ``message`` and a machine readable ``reason``; they never
    raise to the caller.
    """

    def __init__(self, session, gateway, checkout, key_secret, currency="INR"):
        self.session = session
        self.gateway = gateway
        self.checkout = checkout
        self.key_secret = key_secret
        self.currency = currency

    def create_gateway_order(self, amount, receipt=None, notes=None):
        """Open a gateway order for ``amount`` in major units."""
        return self.gateway.create_order(
            amount=round(amount * 100),
            currency=self.currency,
            receipt=receipt,
            notes=notes,
        )

    def verify_payment_signature(self, razorpay_order_id, razorpay_payment_id, signature):
        if not all(isinstance(v, str) and v for v in (razorpay_order_id, razorpay_payment_id, signature)):
            return False
        if not self.key_secret:
            logger.error("payment_signature_unconfigured")
            return False

        expected = hmac.new(
            self.key_secret.encode(),
            f"{razorpay_order_id}|{razorpay_payment_id}".encode(),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)

    def verify_payment_with_gateway(self, razorpay_payment_id):
        """Return the fetched payment when it is captured, else None."""
        try:
            payment = self.gateway.fetch_payment(razorpay_payment_id)
        except GatewayError as e:
            logger.error("payment_fetch_failed", payment_id=razorpay_payment_id, error=str(e))
            return None
        if payment.get("status") != "captured":
            logger.warning("payment_not_captured", payment_id=razorpay_payment_id, status=payment.get("status"))
            return None
        return payment

    def process_payment_verification(self, razorpay_order_id, razorpay_payment_id, razorpay_signature, order_id):
        if not self.verify_payment_signature(razorpay_order_id, razorpay_payment_id, razorpay_signature):
            logger.warning("payment_signature_invalid", order_id=order_id, razorpay_order_id=razorpay_order_id)
            return _result(False, "Invalid payment signature", "invalid_signature")

        order = self.session.get(Order, order_id)
        if not order:
            return _result(False, "Order not found", "order_not_found")

        if order.razorpay_order_id != razorpay_order_id:
            logger.warning(
                "payment_order_mismatch",
                order_id=order.id,
                expected=order.razorpay_order_id,
                received=razorpay_order_id,
            )
            return _result(False, "Payment does not belong to this order", "order_mismatch")

        if order.status != OrderStatus.PENDING.value or order.payment_status != PaymentStatus.PENDING.value:
            return _result(False, "Order is not awaiting payment", "order_not_pending")

        payment = self.verify_payment_with_gateway(razorpay_payment_id)
        if payment is None:
            return _result(False, "Payment not captured", "payment_not_captured")

        try:
            self.checkout.process_successful_payment(order, razorpay_order_id, razorpay_payment_id, payment)
        except (SQLAlchemyError, InvalidTransition) as e:
            self.session.rollback()
            logger.exception("payment_processing_failed", order_id=order.id)
            return _result(False, f"Payment processing failed: {e}", "processing_error")

        logger.info("payment_verified", order_id=order.id, payment_id=razorpay_payment_id)
        return _result(True, "Payment verified successfully", order=order)

    def process_refund(self, order_id, amount=None, reason=None):
        """Refund a paid order through the gateway and cancel it.

        ``amount`` defaults to the order total and is passed through as
        given, so adjusted refunds above the total are accepted.
        """
        order = self.session.get(Order, order_id)
        if not order:
            return _result(False, "Order not found", "order_not_found")

        if not order.razorpay_payment_id:
            return _result(False, "No payment found for this order", "no_payment")

        if order.payment_status != PaymentStatus.PAID.value:
            return _result(False, "Order is not eligible for refund", "not_refundable")

        refund_amount = order.total_amount if amount is None else float(amount)

        try:
            refund = self.gateway.refund_payment(
                order.razorpay_payment_id,
                round(refund_amount * 100),
                notes={"reason": reason or "Customer request", "order_id": str(order.id)},
            )
        except GatewayError as e:
            return _result(False, f"Refund failed: {e}", "gateway_error")

        try:
            previous_status = order.status
            order.status = OrderStatus.CANCELLED.value
            order.payment_status = PaymentStatus.REFUNDED.value

            self.session.add(PaymentTransaction(
                order_id=order.id,
                razorpay_order_id=order.razorpay_order_id,
                razorpay_payment_id=order.razorpay_payment_id,
                amount=-refund_amount,
                currency=self.currency,
                status="refunded",
                payment_method="razorpay",
                gateway_response=refund,
            ))
            if previous_status != OrderStatus.CANCELLED.value:
                self.session.add(OrderStatusHistory(
                    order_id=order.id,
                    status=OrderStatus.CANCELLED.value,
                    description=f"Refunded: {reason or 'Customer request'}",
                    created_by="system",
                ))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("refund_persist_failed", order_id=order.id, refund_id=refund.get("id"), error=str(e))
            return _result(False, "Refund issued but order update failed", "processing_error", refund_id=refund.get("id"))

        logger.info("refund_processed", order_id=order.id, amount=refund_amount, refund_id=refund.get("id"))
        return _result(True, "Refund processed successfully", refund_id=refund.get("id"))

    def get_payment_transaction(self, order_id):
        return (
            PaymentTransaction.query
            .filter_by(order_id=order_id)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
            .first()
        )

    def get_payment_methods(self):
        return list(PAYMENT_METHODS)
