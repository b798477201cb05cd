"""Unit tests for order and payment state-machine guardrails."""

import pytest

from foodpay.common.errors import InvalidState
from foodpay.common.state_machine import (
    CANCELLABLE_ORDER_STATES,
    OrderStatus,
    PaymentStatus,
    payment_sources,
    validate_order_transition,
    validate_payment_transition,
)


def test_valid_order_transition():
    """Sanity check: a legal transition should pass."""

    validate_order_transition("PENDING", "CONFIRMED")
    validate_order_transition(OrderStatus.PREPARED, OrderStatus.OUT_FOR_DELIVERY)


def test_order_steps_cannot_be_skipped():
    with pytest.raises(InvalidState):
        validate_order_transition("CONFIRMED", "DELIVERED")


@pytest.mark.parametrize("terminal", ["DELIVERED", "COMPLETED", "CANCELLED"])
def test_cancel_not_reachable_from_late_states(terminal):
    assert terminal not in CANCELLABLE_ORDER_STATES
    with pytest.raises(InvalidState):
        validate_order_transition(terminal, "CANCELLED")


def test_cancellable_states():
    assert CANCELLABLE_ORDER_STATES == {"PENDING", "CONFIRMED", "PREPARING", "PREPARED", "OUT_FOR_DELIVERY"}


def test_completed_payment_never_fails():
    """A late failure signal must not downgrade a captured payment."""

    with pytest.raises(InvalidState):
        validate_payment_transition(PaymentStatus.COMPLETED, PaymentStatus.FAILED)


def test_failed_payment_only_resets_to_pending():
    validate_payment_transition("FAILED", "PENDING")
    with pytest.raises(InvalidState):
        validate_payment_transition("FAILED", "COMPLETED")


def test_payment_sources_drive_guarded_updates():
    assert payment_sources(PaymentStatus.COMPLETED) == ("PENDING",)
    assert payment_sources("FAILED") == ("PENDING",)
    assert payment_sources("REFUNDED") == ("COMPLETED",)
