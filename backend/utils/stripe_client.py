"""
Thin async wrapper over the Stripe SDK for vendor billing.

The SDK is blocking, so every call runs in the threadpool. Stripe errors and
missing configuration surface as ExternalServiceError.
"""
from starlette.concurrency import run_in_threadpool
from typing import Any, Dict, Optional
import logging
import stripe

import config
from utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class StripeBilling:
    def __init__(self, api_key: Optional[str], price_id: Optional[str] = None):
        self.api_key = api_key
        self.price_id = price_id

    def _require_key(self) -> str:
        if not self.api_key:
            raise ExternalServiceError("Missing STRIPE_SECRET_KEY.")
        return self.api_key

    async def _call(self, operation: str, fn, **params) -> Any:
        api_key = self._require_key()
        try:
            return await run_in_threadpool(lambda: fn(api_key=api_key, **params))
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e.user_message or str(e)}")
            raise ExternalServiceError(e.user_message or str(e) or f"Stripe {operation} failed.")

    async def create_express_account(self, email: Optional[str], metadata: Dict[str, str]) -> str:
        params: Dict[str, Any] = {"type": "express", "metadata": metadata}
        if email:
            params["email"] = email
        account = await self._call("account creation", stripe.Account.create, **params)
        return account["id"]

    async def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = await self._call(
            "account link",
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding"
        )
        return link["url"]

    async def create_customer(self, email: Optional[str], name: Optional[str], metadata: Dict[str, str]) -> str:
        params: Dict[str, Any] = {"metadata": metadata}
        if email:
            params["email"] = email
        if name:
            params["name"] = name
        customer = await self._call("customer creation", stripe.Customer.create, **params)
        return customer["id"]

    async def create_subscription_checkout(
        self,
        customer_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str]
    ) -> Dict[str, Optional[str]]:
        if not self.price_id:
            raise ExternalServiceError("Missing STRIPE_VENDOR_PRICE_ID.")

        session = await self._call(
            "checkout session",
            stripe.checkout.Session.create,
            mode="subscription",
            customer=customer_id,
            line_items=[{"price": self.price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            subscription_data={"metadata": metadata}
        )
        url = session.get("url")
        if not url:
            raise ExternalServiceError("Stripe no devolvio una URL de checkout.")
        return {"id": session.get("id"), "url": url}


def get_stripe_billing() -> StripeBilling:
    return StripeBilling(config.STRIPE_SECRET_KEY, config.STRIPE_VENDOR_PRICE_ID)
