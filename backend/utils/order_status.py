"""
Vendor fulfillment state machine for orders.

vendor_status is the vendor-facing state; the buyer-facing ``status`` column
only changes when fulfillment reaches a terminal state.
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from utils.errors import InvalidTransition


class VendorOrderStatus(str, Enum):
    NEW = "new"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELED = "canceled"


VENDOR_ORDER_TRANSITIONS: Dict[VendorOrderStatus, FrozenSet[VendorOrderStatus]] = {
    VendorOrderStatus.NEW: frozenset({VendorOrderStatus.PROCESSING, VendorOrderStatus.CANCELED}),
    VendorOrderStatus.PROCESSING: frozenset({VendorOrderStatus.SHIPPED, VendorOrderStatus.CANCELED}),
    VendorOrderStatus.SHIPPED: frozenset({VendorOrderStatus.DELIVERED}),
    VendorOrderStatus.DELIVERED: frozenset(),
    VendorOrderStatus.CANCELED: frozenset(),
}

# Buyer-facing status forced by a vendor transition
BUYER_STATUS_SIDE_EFFECTS: Dict[VendorOrderStatus, str] = {
    VendorOrderStatus.CANCELED: "cancelled",
    VendorOrderStatus.DELIVERED: "fulfilled",
}


def parse_vendor_status(value: Optional[str]) -> VendorOrderStatus:
    """Stored NULL reads as 'new'"""
    if value is None:
        return VendorOrderStatus.NEW
    return VendorOrderStatus(value)


def can_transition(current: VendorOrderStatus, requested: VendorOrderStatus) -> bool:
    return current == requested or requested in VENDOR_ORDER_TRANSITIONS[current]


def validate_transition(current: VendorOrderStatus, requested: VendorOrderStatus) -> bool:
    """
    Returns True when the order must be written, False for an idempotent
    re-submit of the current state. Raises InvalidTransition otherwise.
    """
    if current == requested:
        return False
    if requested not in VENDOR_ORDER_TRANSITIONS[current]:
        raise InvalidTransition(current.value, requested.value)
    return True


def buyer_status_for(requested: VendorOrderStatus) -> Optional[str]:
    return BUYER_STATUS_SIDE_EFFECTS.get(requested)
