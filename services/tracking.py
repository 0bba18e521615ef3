from core.extensions import mail
from core.imports import datetime, Message, SQLAlchemyError
from core.logger import get_logger
from models.orderModels import Order, OrderNotification, OrderStatusHistory, OrderTracking
from models.userModel import Users
from services.couriers import default_couriers
from services.errors import UnsupportedCourierError
from services.statuses import OrderStatus, can_transition_order

logger = get_logger(__name__)

NOTIFICATION_TYPES = ("email", "sms", "push")


def _iso(value):
    return value.isoformat() if value else None


class OrderTrackingService:
    """Order status history, the current tracking row and courier lookups."""

    def __init__(self, session, couriers=None):
        self.session = session
        self.couriers = couriers if couriers is not None else default_couriers()

    def get_order_tracking(self, order_id):
        tracking = OrderTracking.query.filter_by(order_id=order_id).first()
        if not tracking:
            return None

        return {
            "orderId": tracking.order_id,
            "trackingNumber": tracking.tracking_number,
            "courierName": tracking.courier_name,
            "courierUrl": tracking.courier_url,
            "status": tracking.status or "pending",
            "location": tracking.location,
            "estimatedDelivery": _iso(tracking.estimated_delivery),
            "actualDelivery": _iso(tracking.actual_delivery_date),
            "timeline": self.get_order_timeline(order_id),
        }

    def update_order_status(self, order_id, status, description=None, location=None, created_by="system"):
        """Move an order to ``status`` and record it.

        The order row, a new history entry and the tracking row are written
        in a single commit. Returns False for unknown orders, illegal
        transitions and database failures.
        """
        order = self.session.get(Order, order_id)
        if not order:
            return False

        if not can_transition_order(order.status, status):
            logger.warning("order_transition_rejected", order_id=order_id, current=order.status, target=status)
            return False

        try:
            order.status = OrderStatus(status).value
            self.session.add(OrderStatusHistory(
                order_id=order.id,
                status=order.status,
                description=description or f"Order {order.status}",
                location=location,
                created_by=created_by,
            ))

            tracking = OrderTracking.query.filter_by(order_id=order.id).first()
            if tracking:
                tracking.status = order.status
                if location:
                    tracking.location = location
                if order.status == OrderStatus.DELIVERED.value:
                    tracking.actual_delivery_date = datetime.utcnow()

            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("order_status_update_failed", order_id=order_id, status=status, error=str(e))
            return False

        logger.info("order_status_updated", order_id=order_id, status=order.status, created_by=created_by)
        return True

    def track_order_with_courier(self, tracking_number, courier_name):
        courier = self.couriers.get((courier_name or "").lower())
        if not courier:
            raise UnsupportedCourierError(f"Courier {courier_name} not supported")
        return courier.track(tracking_number)

    def create_order_tracking(self, order_id, tracking_number, courier_name, courier_url=None, estimated_delivery=None):
        """Create or replace the single tracking row of an order."""
        if not courier_url:
            courier = self.couriers.get((courier_name or "").lower())
            courier_url = courier.tracking_url if courier else None

        try:
            tracking = OrderTracking.query.filter_by(order_id=order_id).first()
            if not tracking:
                tracking = OrderTracking(order_id=order_id)
                self.session.add(tracking)

            tracking.tracking_number = tracking_number
            tracking.courier_name = courier_name
            tracking.courier_url = courier_url
            tracking.estimated_delivery = estimated_delivery
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("order_tracking_create_failed", order_id=order_id, error=str(e))
            return False
        return True

    def get_order_timeline(self, order_id):
        history = (
            OrderStatusHistory.query
            .filter_by(order_id=order_id)
            .order_by(OrderStatusHistory.timestamp.asc(), OrderStatusHistory.id.asc())
            .all()
        )
        return [entry.to_dict() for entry in history]

    def send_order_notification(self, order_id, user_id, notification_type, notification_data):
        if notification_type not in NOTIFICATION_TYPES:
            return False

        try:
            notification = OrderNotification(
                order_id=order_id,
                user_id=user_id,
                notification_type=notification_type,
                notification_data=notification_data or {},
            )
            self.session.add(notification)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("notification_create_failed", order_id=order_id, error=str(e))
            return False

        if notification_type == "email":
            notification.is_sent = self._send_email(user_id, notification_data or {})
            self.session.commit()
        else:
            # sms and push are queued for an external sender
            logger.info("notification_queued", order_id=order_id, notification_type=notification_type)
        return True

    def _send_email(self, user_id, data):
        user = self.session.get(Users, user_id) if user_id else None
        if not user:
            return False

        msg = Message(
            subject=data.get("subject", "Update on your order"),
            recipients=[user.email],
        )
        msg.body = data.get("message", "")
        try:
            mail.send(msg)
        except Exception as e:
            logger.error("notification_email_failed", user_id=user_id, error=str(e))
            return False
        return True

    def get_available_couriers(self):
        return list(self.couriers)
