from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timedelta, timezone
from typing import Optional
import json
import logging

import config
from config import get_db
from dependencies.data_access import build_platform_store
from dependencies.feature_flags import get_billing_bypass_enabled, get_stripe_webhook_secret, require_vendor_mode
from dependencies.vendor_context import VendorContext, get_vendor_context, provision_vendor
from records import SubscriptionStatus
from utils.billing_webhook import process_stripe_event, verify_stripe_signature
from utils.errors import ExternalServiceError, MarketplaceError, ValidationError
from utils.stripe_client import StripeBilling, get_stripe_billing
from .schemas import (
    ConnectAccountLinkResponse,
    StripeEvent,
    SubscriptionCheckoutResponse,
    WebhookResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["Stripe"])

BYPASS_PERIOD_DAYS = 30
BYPASS_PRICE_ID = "price_dev_bypass_monthly_10"


def onboarding_url(step: int, **params: str) -> str:
    base = (config.APP_URL or "").rstrip("/")
    query = "&".join([f"step={step}"] + [f"{key}={value}" for key, value in params.items()])
    return f"{base}/vendedor/onboarding?{query}"


@router.post("/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    webhook_secret: Optional[str] = Depends(get_stripe_webhook_secret)
):
    """
    Billing webhook. The signature is checked against the raw body before
    anything is parsed; the event is applied and recorded in one transaction.
    """
    if not webhook_secret:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not configured")
        raise ExternalServiceError("Missing STRIPE_WEBHOOK_SECRET.")

    raw_body = await request.body()
    if not verify_stripe_signature(raw_body, request.headers.get("stripe-signature"), webhook_secret):
        logger.warning("Rejected Stripe webhook with an invalid signature")
        raise ValidationError("Invalid Stripe signature.")

    try:
        payload = json.loads(raw_body)
        event = StripeEvent.model_validate(payload)
    except (ValueError, PydanticValidationError):
        raise ValidationError("Invalid JSON payload.")

    store = build_platform_store(db)
    try:
        result = await process_stripe_event(store, event, payload)
        await db.commit()
    except Exception as e:
        logger.error(f"Error processing Stripe event {event.id} ({event.type}): {str(e)}")
        await db.rollback()
        message = e.message if isinstance(e, MarketplaceError) else str(e)
        return JSONResponse(status_code=500, content={"error": message or "Webhook handler failed."})

    if result.duplicate:
        return WebhookResponse(received=True, duplicate=True)
    return WebhookResponse(received=True)


@router.post("/connect/account-link", response_model=ConnectAccountLinkResponse)
async def create_connect_account_link(
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context),
    bypass: bool = Depends(get_billing_bypass_enabled),
    billing: StripeBilling = Depends(get_stripe_billing)
):
    """Start (or resume) Stripe Express onboarding for the caller's shop"""
    shop = await provision_vendor(context)
    store = context.store

    try:
        if bypass:
            account_id = shop.stripe_connect_account_id or f"dev_connect_{context.profile.id[:8]}"
            if account_id != shop.stripe_connect_account_id:
                await store.update_shop(shop.id, stripe_connect_account_id=account_id)
                await context.session.commit()
            logger.info(f"Billing bypass: connect account {account_id} for shop {shop.id}")
            return ConnectAccountLinkResponse(
                url=onboarding_url(5, connect="done"),
                stripeConnectAccountId=account_id
            )

        account_id = shop.stripe_connect_account_id
        if not account_id:
            account_id = await billing.create_express_account(
                context.profile.email or context.email,
                {"shop_id": shop.id, "vendor_profile_id": context.profile.id}
            )
            await store.update_shop(shop.id, stripe_connect_account_id=account_id)
            await context.session.commit()
            logger.info(f"Created Stripe Express account {account_id} for shop {shop.id}")

        url = await billing.create_account_link(
            account_id,
            refresh_url=onboarding_url(5),
            return_url=onboarding_url(5, connect="done")
        )
        return ConnectAccountLinkResponse(url=url, stripeConnectAccountId=account_id)

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error creating connect account link: {str(e)}")
        await context.session.rollback()
        raise


@router.post("/subscription/checkout", response_model=SubscriptionCheckoutResponse)
async def create_subscription_checkout(
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context),
    bypass: bool = Depends(get_billing_bypass_enabled),
    billing: StripeBilling = Depends(get_stripe_billing)
):
    """Open a Checkout Session for the monthly vendor plan"""
    shop = await provision_vendor(context)
    store = context.store
    profile = context.profile

    try:
        if bypass:
            await store.upsert_subscription(
                shop.id,
                provider="stripe",
                status=SubscriptionStatus.ACTIVE.value,
                stripe_customer_id=f"cus_dev_{profile.id[:10]}",
                stripe_subscription_id=f"sub_dev_{shop.id[:10]}",
                stripe_price_id=BYPASS_PRICE_ID,
                current_period_end=datetime.now(timezone.utc) + timedelta(days=BYPASS_PERIOD_DAYS),
                last_invoice_status="paid",
                cancel_at_period_end=False
            )
            await context.session.commit()
            logger.info(f"Billing bypass: subscription activated for shop {shop.id}")
            return SubscriptionCheckoutResponse(
                url=onboarding_url(6, subscription="success"),
                checkoutSessionId=None,
                bypass=True
            )

        metadata = {"shop_id": shop.id, "vendor_profile_id": profile.id}
        existing = await store.get_subscription(shop.id)

        customer_id = existing.stripe_customer_id if existing else None
        if not customer_id:
            customer_id = await billing.create_customer(
                profile.email or context.email,
                shop.vendor_name or profile.full_name,
                metadata
            )

        session = await billing.create_subscription_checkout(
            customer_id,
            success_url=onboarding_url(6, subscription="success"),
            cancel_url=onboarding_url(6, subscription="cancel"),
            metadata=metadata
        )

        await store.upsert_subscription(
            shop.id,
            provider="stripe",
            status=existing.status.value if existing else SubscriptionStatus.INACTIVE.value,
            stripe_customer_id=customer_id,
            stripe_price_id=billing.price_id
        )
        await context.session.commit()
        logger.info(f"Checkout session {session['id']} created for shop {shop.id}")

        return SubscriptionCheckoutResponse(url=session["url"], checkoutSessionId=session["id"])

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error creating subscription checkout: {str(e)}")
        await context.session.rollback()
        raise
