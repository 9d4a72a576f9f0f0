"""
Request context for vendor-facing routes: who is calling and which shop is theirs.

Role promotion and shop provisioning are explicit steps that write routes
call; read-only routes only resolve the context.
"""
from dataclasses import dataclass
from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from config import get_db
from dependencies.data_access import AccessTier, build_store, get_access_tier
from records import ProfileRecord, ProfileRole, ShopRecord
from routers.auth.auth import get_current_user
from utils.errors import ProvisioningError, Unauthorized
from utils.slug import slug_candidate, slugify_shop_name
from utils.vendor_store import VendorStore

logger = logging.getLogger(__name__)

MAX_SHOP_SLUG_ATTEMPTS = 8
DEFAULT_SHOP_NAME = "Mi tienda"
DEFAULT_SHOP_SLUG = "mi-tienda"


@dataclass
class VendorContext:
    user_id: str
    email: Optional[str]
    profile: ProfileRecord
    store: VendorStore

    @property
    def session(self) -> AsyncSession:
        return self.store.session


async def get_vendor_context(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    tier: AccessTier = Depends(get_access_tier)
) -> VendorContext:
    store = build_store(db, tier, current_user["user_id"])
    profile = await store.get_profile(current_user["user_id"])
    if profile is None:
        raise Unauthorized()

    return VendorContext(
        user_id=current_user["user_id"],
        email=current_user.get("email"),
        profile=profile,
        store=store
    )


def display_name_for(profile: ProfileRecord) -> str:
    if profile.full_name and profile.full_name.strip():
        return profile.full_name.strip()
    if profile.email and "@" in profile.email:
        return profile.email.split("@")[0] or DEFAULT_SHOP_NAME
    return DEFAULT_SHOP_NAME


async def ensure_vendor_role(context: VendorContext) -> ProfileRecord:
    """Promote a buyer to vendor. Vendors and admins are left as they are."""
    if context.profile.role in (ProfileRole.VENDOR, ProfileRole.ADMIN):
        return context.profile

    profile = await context.store.update_profile(context.profile.id, role=ProfileRole.VENDOR.value)
    await context.session.commit()
    logger.info(f"Promoted profile {profile.id} to vendor")
    context.profile = profile
    return profile


async def ensure_vendor_shop(context: VendorContext) -> ShopRecord:
    """
    Return the caller's shop, provisioning a draft one on first use.
    Slug collisions retry as base, base-2, base-3 ... up to MAX_SHOP_SLUG_ATTEMPTS.
    """
    store = context.store
    profile = context.profile

    existing = await store.get_shop_for_profile(profile.id)
    if existing:
        return existing

    display_name = display_name_for(profile)
    base_slug = slugify_shop_name(display_name) or DEFAULT_SHOP_SLUG

    for attempt in range(MAX_SHOP_SLUG_ATTEMPTS):
        candidate = slug_candidate(base_slug, attempt)
        if await store.slug_taken(candidate):
            continue

        try:
            shop = await store.insert_shop(profile.id, candidate, display_name)
            await context.session.commit()
            logger.info(f"Provisioned shop {shop.id} ({shop.slug}) for profile {profile.id}")
            return shop
        except IntegrityError:
            await context.session.rollback()
            logger.warning(f"Slug {candidate} taken while provisioning shop for {profile.id}")
            # A concurrent request may have provisioned this profile's shop already
            existing = await store.get_shop_for_profile(profile.id)
            if existing:
                return existing

    logger.error(f"Exhausted slug attempts for base {base_slug} (profile {profile.id})")
    raise ProvisioningError("No se pudo crear la tienda: no hay slugs disponibles.")


async def provision_vendor(context: VendorContext) -> ShopRecord:
    """Entry point for write actions: promote the caller and make sure a shop exists"""
    await ensure_vendor_role(context)
    return await ensure_vendor_shop(context)
