"""Vendor status snapshot, shop settings and publishing."""

import pytest

from utils.publish_checks import REASON_INCOMPLETE_SHOP, REASON_NO_SHOP, REASON_NO_SUBSCRIPTION
from utils.vendor_store import VendorStore
from conftest import seed_order, seed_product, seed_profile, seed_publishable_shop, seed_shop


class TestStatusSnapshot:
    async def test_snapshot_is_read_only(self, client, auth, session, session_factory):
        await seed_profile(session, "user-1", email="ana@example.com")
        auth.login("user-1", "ana@example.com")

        response = await client.get("/vendor/status")
        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == "user-1"
        assert data["isVendor"] is False
        assert data["hasShop"] is False
        assert data["checks"]["blockingReasons"] == [REASON_NO_SHOP]
        assert data["metrics"] == {"productCount": 0, "orderCount": 0}

        async with session_factory() as fresh:
            store = VendorStore(fresh)
            assert (await store.get_profile("user-1")).role.value == "buyer"
            assert await store.get_shop_for_profile("user-1") is None

    async def test_snapshot_metrics(self, client, auth, session):
        await seed_profile(session, "vendor-1", role="vendor")
        await seed_profile(session, "buyer-1")
        shop = await seed_shop(session, "vendor-1", "panaderia")
        product = await seed_product(session, shop.id)
        await seed_product(session, shop.id, name="Viejo", is_active=False)
        await seed_order(session, "buyer-1", product.id)
        auth.login("vendor-1")

        data = (await client.get("/vendor/status")).json()
        assert data["isVendor"] is True
        assert data["metrics"] == {"productCount": 1, "orderCount": 1}

    async def test_hidden_when_vendor_mode_is_off(self, client, auth, flags, session):
        flags.vendor_mode = False
        await seed_profile(session, "user-1")
        auth.login("user-1")

        response = await client.get("/vendor/status")
        assert response.status_code == 404

    async def test_unknown_profile_is_unauthorized(self, client, auth):
        auth.login("ghost")
        response = await client.get("/vendor/status")
        assert response.status_code == 401


class TestShopSettings:
    async def test_get_without_shop(self, client, auth, session):
        await seed_profile(session, "user-1")
        auth.login("user-1")

        data = (await client.get("/vendor/shop")).json()
        assert data["shop"] is None
        assert data["checks"]["canPublish"] is False

    async def test_patch_fields_and_policies(self, client, auth, session):
        await seed_profile(session, "user-1", full_name="Ana")
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={
            "vendorName": " Panes Ana ",
            "slug": "Panes Ana",
            "description": "Pan",
            "shippingFlatFeeUsd": -2,
            "offersPickup": True,
            "policies": {"terms": "Terminos"},
        })
        assert response.status_code == 200
        data = response.json()
        assert data["shop"]["vendor_name"] == "Panes Ana"
        assert data["shop"]["slug"] == "panes-ana"
        assert data["shop"]["shipping_flat_fee_usd"] == 0
        assert data["shop"]["offers_pickup"] is True
        assert data["policies"]["terms"] == "Terminos"
        assert data["policies"]["refund_policy"] == ""

    async def test_logo_can_be_cleared(self, client, auth, session):
        await seed_profile(session, "user-1", role="vendor")
        await seed_shop(session, "user-1", "ana", logo_url="https://img.test/a.png")
        auth.login("user-1")

        untouched = await client.patch("/vendor/shop", json={"description": "x"})
        assert untouched.json()["shop"]["logo_url"] == "https://img.test/a.png"

        cleared = await client.patch("/vendor/shop", json={"logoUrl": None})
        assert cleared.json()["shop"]["logo_url"] is None

    async def test_taken_slug(self, client, auth, session):
        await seed_profile(session, "other")
        await seed_shop(session, "other", "ocupado")
        await seed_profile(session, "user-1")
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={"slug": "ocupado"})
        assert response.status_code == 400
        assert response.json() == {"error": "Ese slug ya esta en uso."}

    async def test_invalid_slug(self, client, auth, session):
        await seed_profile(session, "user-1")
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={"slug": "!!!"})
        assert response.status_code == 400
        assert response.json() == {"error": "Slug invalido."}

    async def test_draft_and_unpaid_are_not_settable(self, client, auth, session):
        await seed_profile(session, "user-1")
        auth.login("user-1")

        for status in ("draft", "unpaid", "closed"):
            response = await client.patch("/vendor/shop", json={"status": status})
            assert response.status_code == 400
            assert response.json() == {"error": "Estado de tienda invalido."}

    async def test_activation_is_rechecked(self, client, auth, session):
        await seed_profile(session, "user-1", role="vendor")
        await seed_shop(session, "user-1", "ana", vendor_name="Ana", description="Pan", stripe_connect_account_id="acct_1")
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={"status": "active"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "No puedes activar la tienda aun."
        assert REASON_NO_SUBSCRIPTION in body["blockingReasons"]

    @pytest.mark.parametrize("fields", [
        {"description": "   "},
        {"vendorName": " "},
    ])
    async def test_activation_judges_fields_patched_in_same_request(
        self, client, auth, session, session_factory, fields
    ):
        await seed_profile(session, "user-1", role="vendor")
        shop = await seed_publishable_shop(session, "user-1")
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={**fields, "status": "active"})
        assert response.status_code == 400
        assert response.json()["blockingReasons"] == [REASON_INCOMPLETE_SHOP]

        async with session_factory() as fresh:
            stored = await VendorStore(fresh).get_shop(shop.id)
            assert stored.status.value == "draft"
            assert stored.is_active is False
            assert stored.description == "Pan de la casa"

    async def test_activation_counts_fields_fixed_in_same_request(self, client, auth, session):
        await seed_profile(session, "user-1", role="vendor")
        shop = await seed_publishable_shop(session, "user-1")
        await VendorStore(session).update_shop(shop.id, description="")
        await session.commit()
        auth.login("user-1")

        response = await client.patch("/vendor/shop", json={"description": "Pan de masa madre", "status": "active"})
        assert response.status_code == 200
        data = response.json()
        assert data["shop"]["status"] == "active"
        assert data["checks"]["canPublish"] is True

    async def test_pause_and_reactivate(self, client, auth, session):
        await seed_profile(session, "user-1", role="vendor")
        await seed_publishable_shop(session, "user-1")
        auth.login("user-1")

        active = (await client.patch("/vendor/shop", json={"status": "active"})).json()["shop"]
        assert active["status"] == "active"
        assert active["is_active"] is True
        first_published = active["published_at"]

        paused = (await client.patch("/vendor/shop", json={"status": "paused"})).json()["shop"]
        assert paused["status"] == "paused"
        assert paused["is_active"] is False
        assert paused["unpublished_reason"] == "paused_by_vendor"

        again = (await client.patch("/vendor/shop", json={"status": "active"})).json()["shop"]
        assert again["published_at"][:19] == first_published[:19]
        assert again["unpublished_reason"] is None


class TestPublish:
    async def test_without_shop(self, client, auth, session):
        await seed_profile(session, "user-1")
        auth.login("user-1")

        response = await client.post("/vendor/shop/publish")
        assert response.status_code == 200
        assert response.json() == {"published": False, "blockingReasons": [REASON_NO_SHOP]}

    async def test_blocked(self, client, auth, session, session_factory):
        await seed_profile(session, "user-1", role="vendor")
        shop = await seed_shop(session, "user-1", "ana")
        auth.login("user-1")

        data = (await client.post("/vendor/shop/publish")).json()
        assert data["published"] is False
        assert len(data["blockingReasons"]) == 4

        async with session_factory() as fresh:
            assert (await VendorStore(fresh).get_shop(shop.id)).status.value == "draft"

    async def test_publish_completes_onboarding(self, client, auth, session, session_factory):
        await seed_profile(session, "user-1", role="vendor")
        shop = await seed_publishable_shop(session, "user-1")
        auth.login("user-1")

        data = (await client.post("/vendor/shop/publish")).json()
        assert data["published"] is True
        assert data["blockingReasons"] == []
        assert data["onboarding"]["status"] == "completed"
        assert data["onboarding"]["current_step"] == 8

        async with session_factory() as fresh:
            published = await VendorStore(fresh).get_shop(shop.id)
            assert published.status.value == "active"
            assert published.is_active is True
            assert published.published_at is not None

    async def test_full_bypass_journey(self, client, auth, session):
        """Onboard from scratch with billing bypass and go live"""
        await seed_profile(session, "user-1", email="ana@example.com", full_name="Ana")
        auth.login("user-1", "ana@example.com")

        await client.post("/vendor/onboarding/start")
        await client.patch("/vendor/onboarding/step", json={
            "step": 3, "payload": {"shopName": "Panes Ana", "description": "Pan artesanal"}
        })
        await client.post("/stripe/connect/account-link")
        await client.post("/stripe/subscription/checkout")
        created = await client.post("/vendor/products", json={"name": "Baguette", "variant": {"priceUsd": 3}})
        assert created.status_code == 201

        data = (await client.post("/vendor/shop/publish")).json()
        assert data["published"] is True
        assert data["blockingReasons"] == []

        storefront = await client.get("/shops/panes-ana")
        assert storefront.status_code == 200
        assert storefront.json()["products"][0]["name"] == "Baguette"
