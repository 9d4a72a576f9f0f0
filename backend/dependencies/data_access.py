"""
Two-tier data access, resolved once per process from configuration.

With a service role key configured the API acts with elevated privileges and
filters by owner explicitly in its queries. Without it every vendor query is
additionally scoped to the caller's own rows.
"""
from enum import Enum
from functools import lru_cache
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from config import SUPABASE_SERVICE_ROLE_KEY
from utils.vendor_store import VendorStore

logger = logging.getLogger(__name__)


class AccessTier(str, Enum):
    ELEVATED = "elevated"
    CALLER_SCOPED = "caller_scoped"


@lru_cache(maxsize=1)
def get_access_tier() -> AccessTier:
    tier = AccessTier.ELEVATED if SUPABASE_SERVICE_ROLE_KEY else AccessTier.CALLER_SCOPED
    logger.info(f"Data access tier resolved: {tier.value}")
    return tier


def build_store(session: AsyncSession, tier: AccessTier, caller_profile_id: str) -> VendorStore:
    if tier == AccessTier.ELEVATED:
        return VendorStore(session)
    return VendorStore(session, scope_profile_id=caller_profile_id)


def build_platform_store(session: AsyncSession) -> VendorStore:
    """Store used when acting as the platform (billing webhooks)"""
    return VendorStore(session)


def build_public_store(session: AsyncSession) -> VendorStore:
    """Storefront reads and buyer reviews; callers filter by active status and caller id themselves"""
    return VendorStore(session)
