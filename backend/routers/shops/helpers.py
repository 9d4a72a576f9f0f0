from typing import Any, Optional, Tuple
import math

import config
from records import ProductRecord, ProfileRecord, ShopRecord, ShopStatus
from utils.errors import NotFound
from utils.vendor_store import VendorStore
from .schemas import ReviewSummary, ShopShareResponse

PRODUCT_REVIEWS_LIMIT = 30
SHOP_REVIEWS_DEFAULT_LIMIT = 8
SHOP_REVIEWS_MAX_LIMIT = 20
MAX_COMMENT_LENGTH = 500
DEFAULT_REVIEWER_NAME = "Usuario"


def is_shop_public(shop: Optional[ShopRecord]) -> bool:
    return shop is not None and shop.is_active and shop.status == ShopStatus.ACTIVE


def build_review_summary(rating: Optional[float], review_count: Optional[int]) -> ReviewSummary:
    return ReviewSummary(
        average_rating=f"{float(rating or 0):.1f}",
        review_count=int(review_count or 0)
    )


def parse_reviews_limit(raw: Optional[str], fallback: int = SHOP_REVIEWS_DEFAULT_LIMIT) -> int:
    if not raw:
        return fallback
    try:
        parsed = float(raw)
    except ValueError:
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return min(SHOP_REVIEWS_MAX_LIMIT, max(1, math.trunc(parsed)))


def is_valid_review_rating(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return value.is_integer() and 1 <= value <= 5
    return isinstance(value, int) and 1 <= value <= 5


def normalize_review_comment(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def reviewer_display_name(profile: Optional[ProfileRecord], email: Optional[str] = None) -> str:
    if profile and profile.full_name and profile.full_name.strip():
        return profile.full_name.strip()
    fallback_email = (profile.email if profile and profile.email else email) or ""
    return fallback_email.strip() or DEFAULT_REVIEWER_NAME


async def get_public_shop(store: VendorStore, slug: str) -> ShopRecord:
    shop = await store.get_shop_by_slug(slug)
    if not is_shop_public(shop):
        raise NotFound("Tienda no encontrada.")
    return shop


async def resolve_active_shop_and_product(
    store: VendorStore,
    slug: str,
    product_id: str
) -> Tuple[ShopRecord, ProductRecord]:
    """Reviews only exist on active products of active shops"""
    shop = await store.get_shop_by_slug(slug)
    if not is_shop_public(shop):
        raise NotFound("Producto no encontrado.")

    product = await store.get_product(product_id, shop.id)
    if product is None or not product.is_active:
        raise NotFound("Producto no encontrado.")
    return shop, product


def normalize_share_code(value: str) -> str:
    return (value or "").strip().lower()


def build_share_payload(shop: ShopRecord) -> ShopShareResponse:
    base = (config.APP_URL or "").rstrip("/")
    return ShopShareResponse(
        shop_slug=shop.slug,
        vendor_name=shop.vendor_name,
        share_code=shop.share_code,
        share_url=f"{base}/s/{shop.share_code}"
    )
