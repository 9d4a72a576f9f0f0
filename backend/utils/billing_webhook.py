"""
Stripe billing webhook processing.

Deliveries may be duplicated or arrive out of order. Idempotency comes from
the stripe_webhook_events ledger; handlers only write absolute state (never
increments), so replaying them in another order converges on the provider's
latest view.

The ledger row is inserted before dispatch but inside the same transaction
as the handler's writes. The caller commits only after the handler succeeds,
so a failed handler leaves no ledger row and the provider's redelivery is
applied normally.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy.exc import IntegrityError
from typing import Any, Awaitable, Callable, Dict, List, Optional
import hashlib
import hmac
import logging

from records import SubscriptionStatus
from routers.stripe.schemas import (
    StripeCheckoutSession,
    StripeEvent,
    StripeInvoice,
    StripeSubscriptionObject,
)
from utils.vendor_store import VendorStore

logger = logging.getLogger(__name__)


class VisibilityTrigger(str, Enum):
    INVOICE_FAILED = "invoice_failed"
    INVOICE_PAID = "invoice_paid"
    SUBSCRIPTION_UPDATED = "subscription_updated"


UNPAID_STATUSES = frozenset({SubscriptionStatus.PAST_DUE, SubscriptionStatus.UNPAID})
LIVE_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


@dataclass
class WebhookResult:
    duplicate: bool = False
    handled: bool = False


# =================
# Signature
# =================

def parse_signature_header(header: Optional[str]) -> Dict[str, List[str]]:
    """Split "t=..,v1=..,v1=.." into lists; Stripe sends one v1 per secret while rotating"""
    parts: Dict[str, List[str]] = {}
    if not header:
        return parts
    for item in header.split(","):
        key, sep, value = item.partition("=")
        if not sep or not key.strip() or not value.strip():
            continue
        parts.setdefault(key.strip(), []).append(value.strip())
    return parts


def verify_stripe_signature(raw_body: bytes, header: Optional[str], secret: str) -> bool:
    """HMAC-SHA256 over "<t>.<raw body>" compared in constant time with every v1"""
    parts = parse_signature_header(header)
    timestamps = parts.get("t")
    signatures = parts.get("v1")
    if not timestamps or not signatures:
        return False

    signed_payload = timestamps[0].encode("utf-8") + b"." + raw_body
    expected = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, signature.lower()) for signature in signatures)


# =================
# Status + visibility
# =================

def normalize_subscription_status(value: Optional[str]) -> SubscriptionStatus:
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return SubscriptionStatus.INACTIVE


def unpublish_reason_for(status: SubscriptionStatus, trigger: VisibilityTrigger) -> str:
    if trigger == VisibilityTrigger.INVOICE_FAILED or status in UNPAID_STATUSES:
        return "subscription_unpaid"
    if status == SubscriptionStatus.CANCELED:
        return "subscription_canceled"
    return "subscription_inactive"


async def reconcile_shop_visibility(
    store: VendorStore,
    shop_id: str,
    status: SubscriptionStatus,
    trigger: VisibilityTrigger
):
    """
    The one place billing state drives Shop.status/is_active. Live
    subscriptions restore the shop and keep its original published_at.
    """
    shop = await store.get_shop(shop_id)
    if shop is None:
        logger.warning(f"Shop {shop_id} not found while reconciling visibility")
        return

    now = datetime.now(timezone.utc)
    if status in LIVE_STATUSES:
        await store.update_shop(
            shop.id,
            status="active",
            is_active=True,
            published_at=shop.published_at or now,
            unpublished_at=None,
            unpublished_reason=None
        )
        logger.info(f"Shop {shop.id} restored by billing ({trigger.value})")
        return

    reason = unpublish_reason_for(status, trigger)
    await store.update_shop(
        shop.id,
        status="unpaid" if status in UNPAID_STATUSES else "paused",
        is_active=False,
        unpublished_at=now,
        unpublished_reason=reason
    )
    logger.info(f"Shop {shop.id} unpublished by billing: {reason}")


# =================
# Handlers
# =================

async def handle_invoice_payment_failed(store: VendorStore, obj: Dict[str, Any]):
    invoice = StripeInvoice.model_validate(obj)
    subscription = await store.find_subscription(invoice.subscription, invoice.customer)
    if subscription is None:
        logger.info(f"No vendor subscription for failed invoice {invoice.id}")
        return

    await store.update_subscription(
        subscription.id,
        status=SubscriptionStatus.PAST_DUE.value,
        last_invoice_status=invoice.status or "payment_failed"
    )
    await reconcile_shop_visibility(
        store, subscription.shop_id, SubscriptionStatus.PAST_DUE, VisibilityTrigger.INVOICE_FAILED
    )


async def handle_invoice_paid(store: VendorStore, obj: Dict[str, Any]):
    invoice = StripeInvoice.model_validate(obj)
    subscription = await store.find_subscription(invoice.subscription, invoice.customer)
    if subscription is None:
        logger.info(f"No vendor subscription for paid invoice {invoice.id}")
        return

    await store.update_subscription(
        subscription.id,
        status=SubscriptionStatus.ACTIVE.value,
        last_invoice_status=invoice.status or "paid"
    )
    await reconcile_shop_visibility(
        store, subscription.shop_id, SubscriptionStatus.ACTIVE, VisibilityTrigger.INVOICE_PAID
    )


async def handle_checkout_session_completed(store: VendorStore, obj: Dict[str, Any]):
    """Initial activation: create or update the row keyed by metadata.shop_id"""
    session = StripeCheckoutSession.model_validate(obj)
    shop_id = session.metadata.get("shop_id")
    if not shop_id:
        logger.warning(f"Checkout session {session.id} has no shop_id metadata")
        return

    existing = await store.get_subscription(shop_id)
    await store.upsert_subscription(
        shop_id,
        provider="stripe",
        status=SubscriptionStatus.ACTIVE.value,
        stripe_customer_id=session.customer or (existing.stripe_customer_id if existing else None),
        stripe_subscription_id=session.subscription or (existing.stripe_subscription_id if existing else None)
    )
    logger.info(f"Subscription activated for shop {shop_id} via checkout {session.id}")


async def handle_subscription_changed(store: VendorStore, obj: Dict[str, Any]):
    stripe_subscription = StripeSubscriptionObject.model_validate(obj)
    status = normalize_subscription_status(stripe_subscription.status)

    subscription = await store.find_subscription(stripe_subscription.id, stripe_subscription.customer)
    if subscription is None:
        logger.info(f"No vendor subscription for Stripe subscription {stripe_subscription.id}")
        return

    current_period_end = None
    if stripe_subscription.current_period_end is not None:
        current_period_end = datetime.fromtimestamp(stripe_subscription.current_period_end, tz=timezone.utc)

    await store.update_subscription(
        subscription.id,
        status=status.value,
        stripe_subscription_id=stripe_subscription.id,
        stripe_customer_id=stripe_subscription.customer or subscription.stripe_customer_id,
        stripe_price_id=stripe_subscription.price_id,
        current_period_end=current_period_end,
        cancel_at_period_end=bool(stripe_subscription.cancel_at_period_end)
    )
    await reconcile_shop_visibility(
        store, subscription.shop_id, status, VisibilityTrigger.SUBSCRIPTION_UPDATED
    )


EVENT_HANDLERS: Dict[str, Callable[[VendorStore, Dict[str, Any]], Awaitable[None]]] = {
    "invoice.payment_failed": handle_invoice_payment_failed,
    "invoice.paid": handle_invoice_paid,
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_changed,
    "customer.subscription.updated": handle_subscription_changed,
    "customer.subscription.deleted": handle_subscription_changed,
}


async def process_stripe_event(store: VendorStore, event: StripeEvent, payload: Dict[str, Any]) -> WebhookResult:
    """
    Dedupe by event id, record it, then dispatch. Does not commit; the caller
    commits on success and rolls back on any exception.
    """
    if await store.webhook_event_exists(event.id):
        logger.info(f"Duplicate Stripe event {event.id} ({event.type})")
        return WebhookResult(duplicate=True)

    try:
        await store.record_webhook_event(event.id, event.type, payload)
    except IntegrityError:
        # Lost the race against a concurrent delivery of the same event
        await store.session.rollback()
        logger.info(f"Stripe event {event.id} recorded concurrently; treating as duplicate")
        return WebhookResult(duplicate=True)

    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.info(f"Ignoring unhandled Stripe event type {event.type}")
        return WebhookResult()

    logger.info(f"Processing Stripe event {event.id} ({event.type})")
    await handler(store, event.data.object)
    return WebhookResult(handled=True)
