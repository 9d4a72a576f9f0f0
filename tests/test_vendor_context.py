"""Vendor context resolution: role promotion and shop provisioning."""

import pytest

from dependencies.vendor_context import (
    MAX_SHOP_SLUG_ATTEMPTS,
    VendorContext,
    display_name_for,
    ensure_vendor_role,
    ensure_vendor_shop,
    provision_vendor,
)
from records import ProfileRecord, ProfileRole
from utils.errors import ProvisioningError
from utils.vendor_store import VendorStore
from conftest import seed_profile, seed_shop


async def make_context(session, profile_id: str, **profile_fields) -> VendorContext:
    await seed_profile(session, profile_id, **profile_fields)
    store = VendorStore(session)
    profile = await store.get_profile(profile_id)
    return VendorContext(user_id=profile_id, email=profile.email, profile=profile, store=store)


class TestDisplayName:
    def test_full_name_wins(self):
        assert display_name_for(ProfileRecord(id="u", email="a@b.c", full_name=" Ana ")) == "Ana"

    def test_email_local_part(self):
        assert display_name_for(ProfileRecord(id="u", email="ana.perez@example.com")) == "ana.perez"

    def test_default(self):
        assert display_name_for(ProfileRecord(id="u")) == "Mi tienda"


class TestEnsureVendorRole:
    async def test_buyer_is_promoted(self, session):
        context = await make_context(session, "user-1")
        profile = await ensure_vendor_role(context)
        assert profile.role == ProfileRole.VENDOR
        assert (await context.store.get_profile("user-1")).role == ProfileRole.VENDOR

    async def test_admin_is_left_alone(self, session):
        context = await make_context(session, "admin-1", role="admin")
        profile = await ensure_vendor_role(context)
        assert profile.role == ProfileRole.ADMIN


class TestEnsureVendorShop:
    async def test_provisions_draft_shop_once(self, session):
        context = await make_context(session, "user-1", full_name="Foo")
        shop = await ensure_vendor_shop(context)
        assert shop.slug == "foo"
        assert shop.status.value == "draft"
        assert shop.is_active is False
        assert shop.vendor_name == "Foo"

        again = await ensure_vendor_shop(context)
        assert again.id == shop.id

    async def test_slug_collision_takes_next_suffix(self, session):
        first = await make_context(session, "user-1", full_name="Foo")
        second = await make_context(session, "user-2", full_name="Foo")

        assert (await ensure_vendor_shop(first)).slug == "foo"
        assert (await ensure_vendor_shop(second)).slug == "foo-2"

    async def test_name_without_slug_characters_uses_default(self, session):
        context = await make_context(session, "user-1", full_name="***")
        shop = await ensure_vendor_shop(context)
        assert shop.slug == "mi-tienda"

    async def test_exhausted_slugs_raise(self, session):
        await seed_profile(session, "owner", full_name="Foo")
        await seed_shop(session, "owner", "foo")
        for attempt in range(2, MAX_SHOP_SLUG_ATTEMPTS + 1):
            await seed_shop(session, "owner", f"foo-{attempt}")

        context = await make_context(session, "user-1", full_name="Foo")
        with pytest.raises(ProvisioningError):
            await ensure_vendor_shop(context)

    async def test_provision_vendor_promotes_and_provisions(self, session):
        context = await make_context(session, "user-1", email="ana@example.com")
        shop = await provision_vendor(context)
        assert context.profile.role == ProfileRole.VENDOR
        assert shop.slug == "ana"
