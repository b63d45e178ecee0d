"""Tests for the order lifecycle table: legal moves, self-transitions and reachability."""

import pytest
from storefront.exceptions import InvalidTransition
from storefront.ordering.lifecycle import (
    CANCELLABLE_STATES,
    INITIAL_STATUS,
    OrderStatus,
    allowed_targets,
    assert_can_transition,
    can_transition,
    is_terminal,
    reachable_from,
)

S = OrderStatus

EXPECTED = {
    S.PENDING: {S.PAYMENT_PROCESSING, S.CANCELLED},
    S.PAYMENT_PROCESSING: {S.PROCESSING, S.PAYMENT_FAILED, S.CANCELLED},
    S.PAYMENT_FAILED: {S.PAYMENT_PROCESSING, S.CANCELLED},
    S.PROCESSING: {S.SHIPPED, S.CANCELLED},
    S.SHIPPED: {S.DELIVERED, S.RETURNED},
    S.DELIVERED: {S.RETURNED, S.REFUNDED, S.PARTIALLY_REFUNDED},
    S.CANCELLED: {S.REFUNDED},
    S.RETURNED: {S.REFUNDED, S.PARTIALLY_REFUNDED},
    S.PARTIALLY_REFUNDED: {S.REFUNDED},
    S.REFUNDED: set(),
}


class TestTransitionTable:
    @pytest.mark.parametrize("current", list(OrderStatus))
    def test_allowed_targets_match_table(self, current):
        assert allowed_targets(current) == EXPECTED[current]

    @pytest.mark.parametrize("current", list(OrderStatus))
    def test_every_pair_agrees_with_table(self, current):
        for target in OrderStatus:
            expected = target == current or target in EXPECTED[current]
            assert can_transition(current, target) is expected, (current, target)

    def test_accepts_string_values(self):
        assert can_transition("Pending", "Payment_Processing") is True
        assert can_transition("Cancelled", "Shipped") is False

    def test_unknown_status_is_never_legal(self):
        assert can_transition("Pending", "Teleported") is False
        assert can_transition("Limbo", "Pending") is False


class TestSelfTransition:
    @pytest.mark.parametrize("status", list(OrderStatus))
    def test_self_transition_always_legal(self, status):
        assert can_transition(status, status) is True

    def test_self_transition_legal_even_for_terminal_state(self):
        assert can_transition(S.REFUNDED, S.REFUNDED) is True


class TestTerminalAndReachability:
    def test_initial_status_is_pending(self):
        assert INITIAL_STATUS == S.PENDING

    def test_refunded_is_the_only_terminal_state(self):
        assert [s for s in OrderStatus if is_terminal(s)] == [S.REFUNDED]

    def test_every_state_reachable_from_pending(self):
        assert reachable_from(S.PENDING) == set(OrderStatus)

    def test_nothing_leaves_refunded(self):
        assert reachable_from(S.REFUNDED) == {S.REFUNDED}

    def test_cancellable_states(self):
        assert CANCELLABLE_STATES == {S.PENDING, S.PAYMENT_PROCESSING, S.PAYMENT_FAILED, S.PROCESSING}


class TestAssertCanTransition:
    def test_cancelled_to_shipped_rejected(self):
        with pytest.raises(InvalidTransition) as exc:
            assert_can_transition(S.CANCELLED, S.SHIPPED)
        assert exc.value.current == "Cancelled"
        assert exc.value.target == "Shipped"

    def test_legal_transition_passes(self):
        assert_can_transition(S.SHIPPED, S.DELIVERED)
