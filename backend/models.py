from sqlalchemy import (
    JSON,
    Boolean,
    String,
    Text,
    DateTime,
    CheckConstraint,
    UniqueConstraint,
    Index,
    text,
    ForeignKey,
    Float,
    Integer
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.ext.declarative import declarative_base
from datetime import datetime, timezone
from typing import Optional
import secrets
import uuid

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (local sqlite runs)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Short lower-case hex code used by /s/<code> share links
SHARE_CODE_BYTES = 5


def new_id() -> str:
    return str(uuid.uuid4())


def new_share_code() -> str:
    return secrets.token_hex(SHARE_CODE_BYTES)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def created_at_column():
    return mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False
    )


def updated_at_column():
    return mapped_column(
        DateTime(True),
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utcnow,
        nullable=False
    )


class Profile(Base):
    """
    Application profile, one per Supabase auth user (id is the auth user id)
    """
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('buyer', 'vendor', 'admin')", name="profiles_role_check"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    full_name: Mapped[Optional[str]] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(20), default="buyer", server_default="buyer", nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class Shop(Base):
    """
    A vendor storefront. is_active mirrors status == 'active' for fast filtering.
    """
    __tablename__ = "shops"
    __table_args__ = (
        UniqueConstraint("slug", name="uq_shops_slug"),
        UniqueConstraint("share_code", name="uq_shops_share_code"),
        CheckConstraint("status IN ('draft', 'active', 'paused', 'unpaid')", name="shops_status_check"),
        CheckConstraint("(status = 'active') = is_active", name="shops_active_matches_status"),
        CheckConstraint("shipping_flat_fee_usd >= 0", name="shops_shipping_fee_check"),
        Index("ix_shops_vendor_profile_id", "vendor_profile_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(120), nullable=False)
    vendor_profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    vendor_name: Mapped[str] = mapped_column(String(200), default="", server_default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500))
    share_code: Mapped[str] = mapped_column(String(32), default=new_share_code, nullable=False)

    # Visibility
    status: Mapped[str] = mapped_column(String(20), default="draft", server_default="draft", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"), nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(True))
    unpublished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(True))
    unpublished_reason: Mapped[Optional[str]] = mapped_column(String(100))

    # Fulfillment
    shipping_flat_fee_usd: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    offers_pickup: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"), nullable=False)

    stripe_connect_account_id: Mapped[Optional[str]] = mapped_column(String(255))

    rating: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class VendorOnboarding(Base):
    __tablename__ = "vendor_onboarding"
    __table_args__ = (
        CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed')",
            name="vendor_onboarding_status_check"
        ),
        CheckConstraint("current_step >= 1 AND current_step <= 8", name="vendor_onboarding_step_check"),
    )

    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True
    )
    status: Mapped[str] = mapped_column(String(20), default="not_started", server_default="not_started", nullable=False)
    current_step: Mapped[int] = mapped_column(Integer, default=1, server_default="1", nullable=False)
    data_json: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)  # step_<n> -> payload
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(True))

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class VendorSubscription(Base):
    """
    Platform subscription for a shop. Written only by checkout and Stripe webhooks.
    """
    __tablename__ = "vendor_subscriptions"
    __table_args__ = (
        UniqueConstraint("shop_id", name="uq_vendor_subscriptions_shop_id"),
        Index("ix_vendor_subscriptions_stripe_subscription_id", "stripe_subscription_id"),
        Index("ix_vendor_subscriptions_stripe_customer_id", "stripe_customer_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("shops.id", ondelete="CASCADE"),
        nullable=False
    )
    provider: Mapped[str] = mapped_column(String(20), default="stripe", server_default="stripe", nullable=False)
    status: Mapped[str] = mapped_column(String(30), default="inactive", server_default="inactive", nullable=False)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(255))
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(True))
    last_invoice_status: Mapped[Optional[str]] = mapped_column(String(50))
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"), nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class ShopPolicies(Base):
    __tablename__ = "shop_policies"

    shop_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("shops.id", ondelete="CASCADE"),
        primary_key=True
    )
    refund_policy: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    shipping_policy: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    privacy_policy: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    terms: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class Product(Base):
    """
    Products listed by a shop. price_usd mirrors the cheapest active variant.
    """
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_shop_id", "shop_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    shop_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("shops.id", ondelete="CASCADE"),
        nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", server_default="", nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    price_usd: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"), nullable=False)

    rating: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("price_usd >= 0", name="product_variants_price_check"),
        CheckConstraint("stock_qty >= 0", name="product_variants_stock_check"),
        Index("ix_product_variants_product_id", "product_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    attributes_json: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    price_usd: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    stock_qty: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)  # advisory only
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text("true"), nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class ProductImage(Base):
    __tablename__ = "product_images"
    __table_args__ = (
        Index("ix_product_images_product_id", "product_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    alt: Mapped[Optional[str]] = mapped_column(String(200))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    created_at: Mapped[datetime] = created_at_column()


class Order(Base):
    """
    Buyer order. status is buyer-facing, vendor_status tracks fulfillment.
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'paid', 'fulfilled', 'cancelled', 'refunded')",
            name="orders_status_check"
        ),
        CheckConstraint(
            "vendor_status IS NULL OR vendor_status IN ('new', 'processing', 'shipped', 'delivered', 'canceled')",
            name="orders_vendor_status_check"
        ),
        Index("ix_orders_profile_id", "profile_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default="pending", server_default="pending", nullable=False)
    vendor_status: Mapped[Optional[str]] = mapped_column(String(20), default="new", server_default="new")
    subtotal_usd: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)
    total_usd: Mapped[float] = mapped_column(Float, default=0.0, server_default="0", nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class OrderItem(Base):
    """
    Immutable line snapshot taken at purchase time
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="order_items_quantity_check"),
        Index("ix_order_items_order_id", "order_id"),
        Index("ix_order_items_product_id", "product_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False
    )
    product_variant_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("product_variants.id", ondelete="SET NULL")
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_usd: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = created_at_column()


class ProductReview(Base):
    __tablename__ = "product_reviews"
    __table_args__ = (
        UniqueConstraint("product_id", "profile_id", name="uq_product_reviews_product_profile"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="product_reviews_rating_check"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    product_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )
    profile_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    reviewer_display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class StripeWebhookEvent(Base):
    """
    Idempotency ledger: one row per Stripe event id that has been applied
    """
    __tablename__ = "stripe_webhook_events"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    processed_at: Mapped[datetime] = created_at_column()
