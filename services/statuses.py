"""Order, payment and return statuses with their legal transitions."""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class ReturnStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSED = "processed"
    COMPLETED = "completed"


# Moves an admin or customer may request. pending -> confirmed is not here:
# only a captured payment confirms an order (see confirm_paid_order).
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

RETURN_TRANSITIONS = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED},
    ReturnStatus.APPROVED: {ReturnStatus.PROCESSED},
    ReturnStatus.PROCESSED: {ReturnStatus.COMPLETED},
    ReturnStatus.COMPLETED: set(),
}

CANCELLABLE_STATUSES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}
RETURNABLE_STATUSES = {OrderStatus.DELIVERED, OrderStatus.SHIPPED}


class InvalidTransition(ValueError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current} to {target}")


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def can_transition_order(current, target):
    current, target = _coerce(OrderStatus, current), _coerce(OrderStatus, target)
    if current is None or target is None:
        return False
    return target in ORDER_TRANSITIONS[current]


def can_transition_return(current, target):
    current, target = _coerce(ReturnStatus, current), _coerce(ReturnStatus, target)
    if current is None or target is None:
        return False
    return target in RETURN_TRANSITIONS[current]


def transition_order(current, target):
    """Return the validated target status value or raise InvalidTransition."""
    if not can_transition_order(current, target):
        raise InvalidTransition(current, target)
    return OrderStatus(target).value


def transition_return(current, target):
    if not can_transition_return(current, target):
        raise InvalidTransition(current, target)
    return ReturnStatus(target).value


def is_cancellable(status):
    return _coerce(OrderStatus, status) in CANCELLABLE_STATUSES


def is_returnable(status):
    return _coerce(OrderStatus, status) in RETURNABLE_STATUSES


def confirm_paid_order(current):
    """The single pending -> confirmed move, taken once a payment is captured."""
    if _coerce(OrderStatus, current) is not OrderStatus.PENDING:
        raise InvalidTransition(current, OrderStatus.CONFIRMED.value)
    return OrderStatus.CONFIRMED.value
