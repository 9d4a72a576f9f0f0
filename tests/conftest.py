"""Shared fixtures: in-memory SQLite database, FastAPI app with overridden dependencies."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import get_db
from dependencies.data_access import AccessTier, get_access_tier
from dependencies.feature_flags import (
    get_billing_bypass_enabled,
    get_stripe_webhook_secret,
    get_vendor_mode_enabled,
)
from main import app
from models import (
    Base,
    Order,
    OrderItem,
    Product,
    ProductVariant,
    Profile,
    Shop,
    VendorSubscription,
)
from routers.auth.auth import get_current_user, get_optional_user
from utils.errors import Unauthorized
from utils.stripe_client import StripeBilling, get_stripe_billing

WEBHOOK_SECRET = "whsec_test_secret"


# =================
# Database
# =================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# =================
# Seed helpers
# =================

async def seed_profile(session, profile_id: str, email: Optional[str] = None,
                       full_name: Optional[str] = None, role: str = "buyer") -> Profile:
    profile = Profile(id=profile_id, email=email, full_name=full_name, role=role)
    session.add(profile)
    await session.commit()
    return profile


async def seed_shop(session, profile_id: str, slug: str, **fields) -> Shop:
    values = {
        "vendor_name": "Tienda",
        "description": "",
        "status": "draft",
        "is_active": False,
    }
    values.update(fields)
    shop = Shop(vendor_profile_id=profile_id, slug=slug, **values)
    session.add(shop)
    await session.commit()
    return shop


async def seed_subscription(session, shop_id: str, **fields) -> VendorSubscription:
    subscription = VendorSubscription(shop_id=shop_id, provider="stripe", **fields)
    session.add(subscription)
    await session.commit()
    return subscription


async def seed_product(session, shop_id: str, name: str = "Pan", price: float = 5.0,
                       is_active: bool = True, variant_active: bool = True) -> Product:
    product = Product(shop_id=shop_id, name=name, price_usd=price, is_active=is_active)
    session.add(product)
    await session.flush()
    session.add(ProductVariant(
        product_id=product.id,
        title="Default",
        price_usd=price,
        stock_qty=10,
        is_active=variant_active,
    ))
    await session.commit()
    return product


async def seed_order(session, buyer_id: str, product_id: str, vendor_status: Optional[str] = "new",
                     quantity: int = 1, unit_price: float = 5.0) -> Order:
    order = Order(
        profile_id=buyer_id,
        status="paid",
        vendor_status=vendor_status,
        subtotal_usd=quantity * unit_price,
        total_usd=quantity * unit_price,
    )
    session.add(order)
    await session.flush()
    session.add(OrderItem(order_id=order.id, product_id=product_id, quantity=quantity, unit_price_usd=unit_price))
    await session.commit()
    return order


async def seed_publishable_shop(session, profile_id: str, slug: str = "panaderia") -> Shop:
    """A shop that passes every publish check but is not yet live"""
    shop = await seed_shop(
        session,
        profile_id,
        slug,
        vendor_name="Panaderia",
        description="Pan de la casa",
        stripe_connect_account_id="acct_123",
    )
    await seed_subscription(
        session,
        shop.id,
        status="active",
        stripe_customer_id="cus_123",
        stripe_subscription_id="sub_123",
    )
    await seed_product(session, shop.id)
    return shop


# =================
# Stripe
# =================

def sign_payload(body: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = str(timestamp).encode("utf-8") + b"." + body
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_id: str, event_type: str, obj: Dict[str, Any]) -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode("utf-8")


class FakeStripeBilling(StripeBilling):
    """Records calls instead of reaching the Stripe API"""

    def __init__(self):
        super().__init__("sk_test_fake", "price_monthly_10")
        self.calls = []

    async def create_express_account(self, email, metadata):
        self.calls.append(("account", email, metadata))
        return "acct_fake_1"

    async def create_account_link(self, account_id, refresh_url, return_url):
        self.calls.append(("account_link", account_id, refresh_url, return_url))
        return f"https://connect.stripe.test/{account_id}"

    async def create_customer(self, email, name, metadata):
        self.calls.append(("customer", email, name, metadata))
        return "cus_fake_1"

    async def create_subscription_checkout(self, customer_id, success_url, cancel_url, metadata):
        self.calls.append(("checkout", customer_id, success_url, cancel_url, metadata))
        return {"id": "cs_fake_1", "url": "https://checkout.stripe.test/cs_fake_1"}


# =================
# App
# =================

class AuthState:
    def __init__(self):
        self.user: Optional[Dict[str, Any]] = None

    def login(self, user_id: str, email: Optional[str] = None, role: str = "buyer"):
        self.user = {"user_id": user_id, "email": email, "role": role}

    def logout(self):
        self.user = None


class Flags:
    def __init__(self):
        self.vendor_mode = True
        self.billing_bypass = True
        self.webhook_secret: Optional[str] = WEBHOOK_SECRET


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
def flags():
    return Flags()


@pytest.fixture
def fake_billing():
    return FakeStripeBilling()


@pytest.fixture
async def client(session_factory, auth, flags, fake_billing):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_current_user():
        if auth.user is None:
            raise Unauthorized()
        return auth.user

    async def override_optional_user():
        return auth.user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_optional_user] = override_optional_user
    app.dependency_overrides[get_access_tier] = lambda: AccessTier.ELEVATED
    app.dependency_overrides[get_vendor_mode_enabled] = lambda: flags.vendor_mode
    app.dependency_overrides[get_billing_bypass_enabled] = lambda: flags.billing_bypass
    app.dependency_overrides[get_stripe_webhook_secret] = lambda: flags.webhook_secret
    app.dependency_overrides[get_stripe_billing] = lambda: fake_billing

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)
