"""Vendor order fulfillment state machine."""

import itertools

import pytest

from utils.errors import InvalidTransition
from utils.order_status import (
    VENDOR_ORDER_TRANSITIONS,
    VendorOrderStatus,
    buyer_status_for,
    parse_vendor_status,
    validate_transition,
)

S = VendorOrderStatus

ALLOWED = {
    (S.NEW, S.PROCESSING),
    (S.NEW, S.CANCELED),
    (S.PROCESSING, S.SHIPPED),
    (S.PROCESSING, S.CANCELED),
    (S.SHIPPED, S.DELIVERED),
}


class TestValidateTransition:
    @pytest.mark.parametrize("current,requested", list(itertools.product(S, S)))
    def test_every_pair(self, current, requested):
        if current == requested:
            assert validate_transition(current, requested) is False
        elif (current, requested) in ALLOWED:
            assert validate_transition(current, requested) is True
        else:
            with pytest.raises(InvalidTransition) as exc:
                validate_transition(current, requested)
            assert exc.value.status_code == 400
            assert exc.value.current == current.value
            assert exc.value.requested == requested.value

    def test_terminal_states_have_no_exits(self):
        assert VENDOR_ORDER_TRANSITIONS[S.DELIVERED] == frozenset()
        assert VENDOR_ORDER_TRANSITIONS[S.CANCELED] == frozenset()

    def test_shipped_cannot_go_back_to_processing(self):
        with pytest.raises(InvalidTransition):
            validate_transition(S.SHIPPED, S.PROCESSING)

    def test_shipped_cannot_be_canceled(self):
        with pytest.raises(InvalidTransition):
            validate_transition(S.SHIPPED, S.CANCELED)


class TestBuyerStatus:
    def test_delivered_fulfils_the_order(self):
        assert buyer_status_for(S.DELIVERED) == "fulfilled"

    def test_canceled_cancels_the_order(self):
        assert buyer_status_for(S.CANCELED) == "cancelled"

    @pytest.mark.parametrize("status", [S.NEW, S.PROCESSING, S.SHIPPED])
    def test_intermediate_states_leave_buyer_status(self, status):
        assert buyer_status_for(status) is None


def test_null_vendor_status_reads_as_new():
    assert parse_vendor_status(None) == S.NEW
    assert parse_vendor_status("shipped") == S.SHIPPED
