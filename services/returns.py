from core.imports import SQLAlchemyError
from core.logger import get_logger
from models.orderModels import Order, OrderReturn
from services.errors import ReturnRequestError
from services.statuses import ReturnStatus, can_transition_return, is_returnable

logger = get_logger(__name__)

RETURN_REASONS = [
    "Wrong item received",
    "Item damaged",
    "Item not as described",
    "Size doesn't fit",
    "Changed my mind",
    "Duplicate order",
    "Quality issues",
    "Other",
]

REFUND_METHODS = [
    "original_payment_method",
    "store_credit",
    "bank_transfer",
    "check",
]


class OrderReturnService:
    def __init__(self, session, payments):
        self.session = session
        self.payments = payments

    def create_return_request(self, order_id, return_reason, return_description=None, refund_amount=None, refund_method=None):
        """Open the return for an order.

        Raises ``ReturnRequestError`` when the order is missing, not yet
        shipped, or already has a return. Returns None if the row could not
        be written.
        """
        order = self.session.get(Order, order_id)
        if not order:
            raise ReturnRequestError("Order not found")

        if not is_returnable(order.status):
            raise ReturnRequestError("Order is not eligible for return")

        if OrderReturn.query.filter_by(order_id=order.id).first():
            raise ReturnRequestError("Return request already exists for this order")

        try:
            return_request = OrderReturn(
                order_id=order.id,
                return_reason=return_reason,
                return_description=return_description,
                refund_amount=refund_amount or order.total_amount,
                refund_method=refund_method or "original_payment_method",
                return_status=ReturnStatus.PENDING.value,
            )
            self.session.add(return_request)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("return_create_failed", order_id=order_id, error=str(e))
            return None

        logger.info("return_requested", order_id=order.id, return_id=return_request.id)
        return return_request.to_dict()

    def get_order_return(self, order_id):
        return_request = OrderReturn.query.filter_by(order_id=order_id).first()
        return return_request.to_dict() if return_request else None

    def update_return_status(self, return_id, status, refund_amount=None, return_tracking_number=None):
        return_request = self.session.get(OrderReturn, return_id)
        if not return_request:
            return False

        if not can_transition_return(return_request.return_status, status):
            logger.warning(
                "return_transition_rejected",
                return_id=return_id,
                current=return_request.return_status,
                target=status,
            )
            return False

        try:
            return_request.return_status = ReturnStatus(status).value
            if refund_amount is not None:
                return_request.refund_amount = refund_amount
            if return_tracking_number:
                return_request.return_tracking_number = return_tracking_number
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("return_status_update_failed", return_id=return_id, error=str(e))
            return False

        if return_request.return_status == ReturnStatus.APPROVED.value and refund_amount:
            self.process_refund(return_id, refund_amount)

        return True

    def process_refund(self, return_id, amount):
        """Refund an approved return and mark it processed."""
        return_request = self.session.get(OrderReturn, return_id)
        if not return_request:
            logger.warning("return_refund_missing", return_id=return_id)
            return False

        if not can_transition_return(return_request.return_status, ReturnStatus.PROCESSED):
            return False

        result = self.payments.process_refund(return_request.order_id, amount, "Order return")
        if not result["success"]:
            logger.error("return_refund_failed", return_id=return_id, reason=result["reason"], message=result["message"])
            return False

        try:
            return_request.return_status = ReturnStatus.PROCESSED.value
            return_request.refund_amount = amount
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("return_refund_persist_failed", return_id=return_id, error=str(e))
            return False
        return True

    def get_user_returns(self, user_id):
        returns = (
            OrderReturn.query
            .join(Order, OrderReturn.order_id == Order.id)
            .filter(Order.user_id == user_id)
            .order_by(OrderReturn.created_at.desc())
            .all()
        )
        return [r.to_dict() for r in returns]

    def get_return_reasons(self):
        return list(RETURN_REASONS)

    def get_refund_methods(self):
        return list(REFUND_METHODS)
