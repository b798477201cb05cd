"""Order and payment state machines enforced by the order/payment services."""

from enum import Enum

from foodpay.common.errors import InvalidState


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    PREPARED = "PREPARED"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


ORDER_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"CONFIRMED", "CANCELLED"},
    "CONFIRMED": {"PREPARING", "CANCELLED"},
    "PREPARING": {"PREPARED", "CANCELLED"},
    "PREPARED": {"OUT_FOR_DELIVERY", "CANCELLED"},
    "OUT_FOR_DELIVERY": {"DELIVERED", "CANCELLED"},
    "DELIVERED": {"COMPLETED"},
    "COMPLETED": set(),
    "CANCELLED": set(),
}

# FAILED -> PENDING is the retry reset applied when a new intent is opened.
PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"COMPLETED", "FAILED"},
    "FAILED": {"PENDING"},
    "COMPLETED": {"REFUNDED"},
    "REFUNDED": set(),
}

CANCELLABLE_ORDER_STATES: frozenset[str] = frozenset(
    state for state, targets in ORDER_TRANSITIONS.items() if "CANCELLED" in targets
)


def _value(status) -> str:
    return status.value if isinstance(status, Enum) else status


def validate_order_transition(current, new) -> None:
    """Raise when an order transition is not allowed by the state machine."""

    current, new = _value(current), _value(new)
    if new not in ORDER_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Invalid order transition: {current} -> {new}")


def validate_payment_transition(current, new) -> None:
    """Raise when a payment transition is not allowed by the state machine."""

    current, new = _value(current), _value(new)
    if new not in PAYMENT_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Invalid payment transition: {current} -> {new}")


def payment_sources(target) -> tuple[str, ...]:
    """States a payment may move to `target` from; used in guarded UPDATEs."""

    target = _value(target)
    return tuple(sorted(state for state, targets in PAYMENT_TRANSITIONS.items() if target in targets))
