"""
Tests for checkout state machines.

Covers the forward-only OrderPaymentState rules and the django-fsm
transitions of CheckoutSession.
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from checkout.models import CheckoutSession
from checkout.state_machines import (
    CheckoutSessionState,
    OrderPaymentState,
    can_transition,
    is_terminal,
)


# =============================================================================
# OrderPaymentState
# =============================================================================


class TestOrderPaymentState:
    @pytest.mark.parametrize(
        "target",
        [
            OrderPaymentState.AUTHORIZED,
            OrderPaymentState.RECEIVED,
            OrderPaymentState.REFUSED,
            OrderPaymentState.CANCELED,
        ],
    )
    def test_pending_moves_to_any_other_state(self, target):
        assert can_transition(OrderPaymentState.PENDING, target) is True

    def test_authorized_moves_forward(self):
        assert can_transition(OrderPaymentState.AUTHORIZED, OrderPaymentState.RECEIVED) is True
        assert can_transition(OrderPaymentState.AUTHORIZED, OrderPaymentState.REFUSED) is True
        assert can_transition(OrderPaymentState.AUTHORIZED, OrderPaymentState.PENDING) is False

    def test_received_never_goes_back_to_authorized(self):
        assert can_transition(OrderPaymentState.RECEIVED, OrderPaymentState.AUTHORIZED) is False

    @pytest.mark.parametrize(
        "terminal",
        [OrderPaymentState.RECEIVED, OrderPaymentState.REFUSED, OrderPaymentState.CANCELED],
    )
    def test_terminal_states_allow_nothing(self, terminal):
        assert is_terminal(terminal) is True
        for target in OrderPaymentState.values:
            assert can_transition(terminal, target) is False

    def test_same_state_is_not_a_transition(self):
        assert can_transition(OrderPaymentState.AUTHORIZED, OrderPaymentState.AUTHORIZED) is False

    def test_non_terminal_states(self):
        assert is_terminal(OrderPaymentState.PENDING) is False
        assert is_terminal(OrderPaymentState.AUTHORIZED) is False


# =============================================================================
# CheckoutSession (in-memory, no database)
# =============================================================================


def _session(state=CheckoutSessionState.FORM_PENDING, **kwargs):
    return CheckoutSession(
        order_id="1001",
        gateway="stripe",
        state=state,
        expires_at=timezone.now() + timedelta(minutes=30),
        **kwargs,
    )


class TestCheckoutSessionTransitions:
    def test_collect_token(self):
        session = _session()

        session.collect_token("tok_visa")

        assert session.state == CheckoutSessionState.TOKEN_COLLECTED
        assert session.client_token == "tok_visa"
        assert session.token_collected_at is not None

    def test_collect_token_again_replaces_token(self):
        session = _session(CheckoutSessionState.TOKEN_COLLECTED, client_token="tok_visa")

        session.collect_token("tok_mastercard")

        assert session.client_token == "tok_mastercard"

    def test_confirm(self):
        session = _session(CheckoutSessionState.TOKEN_COLLECTED)

        session.confirm("ch_123")

        assert session.state == CheckoutSessionState.CONFIRMED
        assert session.transaction_ref == "ch_123"
        assert session.completed_at is not None

    def test_confirm_requires_token(self):
        session = _session()

        with pytest.raises(TransitionNotAllowed):
            session.confirm("ch_123")

    def test_refuse_from_token_collected(self):
        session = _session(CheckoutSessionState.TOKEN_COLLECTED)

        session.refuse()

        assert session.state == CheckoutSessionState.REFUSED

    def test_refuse_after_confirmation(self):
        session = _session(CheckoutSessionState.CONFIRMED)

        session.refuse()

        assert session.state == CheckoutSessionState.REFUSED

    def test_refused_is_final(self):
        session = _session(CheckoutSessionState.REFUSED)

        with pytest.raises(TransitionNotAllowed):
            session.collect_token("tok_visa")
        with pytest.raises(TransitionNotAllowed):
            session.confirm()

    @pytest.mark.parametrize(
        "state",
        [CheckoutSessionState.FORM_PENDING, CheckoutSessionState.TOKEN_COLLECTED],
    )
    def test_open_sessions_expire(self, state):
        session = _session(state)

        session.expire()

        assert session.state == CheckoutSessionState.EXPIRED

    def test_confirmed_session_does_not_expire(self):
        session = _session(CheckoutSessionState.CONFIRMED)

        with pytest.raises(TransitionNotAllowed):
            session.expire()

    def test_is_expired(self):
        session = _session()
        assert session.is_expired is False

        session.expires_at = timezone.now() - timedelta(seconds=1)
        assert session.is_expired is True
