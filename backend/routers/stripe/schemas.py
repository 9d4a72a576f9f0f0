from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional


def _string_ref(value):
    """Stripe references may arrive expanded as objects; only plain ids are kept"""
    return value if isinstance(value, str) and value else None


# Webhook payloads

class StripeEventData(BaseModel):
    object: Dict[str, Any]


class StripeEvent(BaseModel):
    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    data: StripeEventData

    class Config:
        extra = "allow"


class StripeInvoice(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None

    class Config:
        extra = "ignore"

    @field_validator("status", "customer", "subscription", mode="before")
    @classmethod
    def plain_ref(cls, value):
        return _string_ref(value)


class StripePrice(BaseModel):
    id: Optional[str] = None


class StripeSubscriptionItem(BaseModel):
    price: Optional[StripePrice] = None


class StripeSubscriptionItems(BaseModel):
    data: List[StripeSubscriptionItem] = []


class StripeSubscriptionObject(BaseModel):
    id: str = Field(..., min_length=1)
    status: Optional[str] = None
    customer: Optional[str] = None
    items: Optional[StripeSubscriptionItems] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: Optional[bool] = None

    class Config:
        extra = "ignore"

    @field_validator("customer", "status", mode="before")
    @classmethod
    def plain_ref(cls, value):
        return _string_ref(value)

    @field_validator("current_period_end", mode="before")
    @classmethod
    def unix_seconds(cls, value):
        return value if isinstance(value, int) and not isinstance(value, bool) else None

    @property
    def price_id(self) -> Optional[str]:
        if self.items and self.items.data and self.items.data[0].price:
            return self.items.data[0].price.id
        return None


class StripeCheckoutSession(BaseModel):
    id: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    metadata: Dict[str, str] = {}

    class Config:
        extra = "ignore"

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def plain_ref(cls, value):
        return _string_ref(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def string_metadata(cls, value):
        if not isinstance(value, dict):
            return {}
        return {str(k): v for k, v in value.items() if isinstance(v, str)}


class WebhookResponse(BaseModel):
    received: bool = True
    duplicate: Optional[bool] = None


# Billing endpoints

class ConnectAccountLinkResponse(BaseModel):
    url: str
    stripeConnectAccountId: str


class SubscriptionCheckoutResponse(BaseModel):
    url: str
    checkoutSessionId: Optional[str] = None
    bypass: bool = False
