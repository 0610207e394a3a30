# checkout/domain/order_status.py
from enum import Enum

from checkout.domain.errors import InvalidStateError


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    PIX = "pix"
    CARD = "card"


#delivered and cancelled are terminal
TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.PAID})


def can_transition(current: OrderStatus | str, new: OrderStatus | str) -> bool:
    try:
        current, new = OrderStatus(current), OrderStatus(new)
    except ValueError:
        return False
    return new in TRANSITIONS[current]


def ensure_transition(current: OrderStatus | str, new: OrderStatus | str) -> OrderStatus:
    """Return the new status as an enum, or raise InvalidStateError for an edge outside the table."""
    if not can_transition(current, new):
        raise InvalidStateError(str(getattr(current, "value", current)), str(getattr(new, "value", new)))
    return OrderStatus(new)


def is_terminal(status: OrderStatus | str) -> bool:
    return not TRANSITIONS[OrderStatus(status)]
