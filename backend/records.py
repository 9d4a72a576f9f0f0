"""
Typed row records validated at the data-access boundary.

VendorStore returns these instead of ORM instances so the rest of the code
never reads an unchecked column. Enumerated columns are validated against
their enums: a malformed stored value raises instead of flowing on silently.
"""
from pydantic import BaseModel, field_validator
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum

from utils.order_status import VendorOrderStatus


STEP_COUNT = 8


class ProfileRole(str, Enum):
    BUYER = "buyer"
    VENDOR = "vendor"
    ADMIN = "admin"


class ShopStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    UNPAID = "unpaid"


class OnboardingStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    PAUSED = "paused"
    INACTIVE = "inactive"


class BuyerOrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class ProfileRecord(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: ProfileRole = ProfileRole.BUYER

    class Config:
        from_attributes = True


class ShopRecord(BaseModel):
    id: str
    slug: str
    vendor_profile_id: str
    vendor_name: str = ""
    description: str = ""
    logo_url: Optional[str] = None
    share_code: Optional[str] = None
    status: ShopStatus = ShopStatus.DRAFT
    is_active: bool = False
    shipping_flat_fee_usd: float = 0.0
    offers_pickup: bool = False
    stripe_connect_account_id: Optional[str] = None
    published_at: Optional[datetime] = None
    unpublished_at: Optional[datetime] = None
    unpublished_reason: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OnboardingRecord(BaseModel):
    profile_id: str
    status: OnboardingStatus = OnboardingStatus.NOT_STARTED
    current_step: int = 1
    data_json: Dict[str, Any] = {}
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("current_step", mode="before")
    @classmethod
    def clamp_step(cls, value):
        if not isinstance(value, int) or isinstance(value, bool):
            return 1
        return min(STEP_COUNT, max(1, value))

    @field_validator("data_json", mode="before")
    @classmethod
    def normalize_data(cls, value):
        return dict(value) if isinstance(value, dict) else {}


class SubscriptionRecord(BaseModel):
    id: str
    shop_id: str
    provider: str = "stripe"
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    last_invoice_status: Optional[str] = None
    cancel_at_period_end: bool = False

    class Config:
        from_attributes = True


class ShopPoliciesRecord(BaseModel):
    shop_id: str
    refund_policy: str = ""
    shipping_policy: str = ""
    privacy_policy: str = ""
    terms: str = ""

    class Config:
        from_attributes = True


class ProductRecord(BaseModel):
    id: str
    shop_id: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    price_usd: float = 0.0
    is_active: bool = True
    rating: float = 0.0
    review_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VariantRecord(BaseModel):
    id: str
    product_id: str
    title: str
    sku: Optional[str] = None
    attributes_json: Dict[str, Any] = {}
    price_usd: float = 0.0
    stock_qty: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("attributes_json", mode="before")
    @classmethod
    def normalize_attributes(cls, value):
        return dict(value) if isinstance(value, dict) else {}


class ImageRecord(BaseModel):
    id: str
    product_id: str
    image_url: str
    alt: Optional[str] = None
    sort_order: int = 0

    class Config:
        from_attributes = True


class OrderRecord(BaseModel):
    id: str
    profile_id: str
    status: BuyerOrderStatus = BuyerOrderStatus.PENDING
    vendor_status: VendorOrderStatus = VendorOrderStatus.NEW
    subtotal_usd: float = 0.0
    total_usd: float = 0.0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("vendor_status", mode="before")
    @classmethod
    def default_vendor_status(cls, value):
        return VendorOrderStatus.NEW if value is None else value


class OrderItemRecord(BaseModel):
    id: str
    order_id: str
    product_id: str
    product_variant_id: Optional[str] = None
    quantity: int
    unit_price_usd: float

    class Config:
        from_attributes = True


class ReviewRecord(BaseModel):
    id: str
    product_id: str
    profile_id: str
    reviewer_display_name: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
