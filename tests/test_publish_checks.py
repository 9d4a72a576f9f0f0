"""Publish eligibility evaluator."""

import itertools

import pytest

from records import ShopRecord, SubscriptionRecord
from utils.publish_checks import (
    REASON_INCOMPLETE_SHOP,
    REASON_NO_CONNECT,
    REASON_NO_SHOP,
    REASON_NO_SUBSCRIPTION,
    REASON_NO_VARIANTS,
    evaluate_publish_eligibility,
    get_vendor_publish_checks,
)
from utils.vendor_store import VendorStore
from conftest import seed_product, seed_profile, seed_shop, seed_subscription


def make_shop(**fields) -> ShopRecord:
    values = {
        "id": "shop-1",
        "slug": "panaderia",
        "vendor_profile_id": "user-1",
        "vendor_name": "Panaderia",
        "description": "Pan de la casa",
        "stripe_connect_account_id": "acct_1",
    }
    values.update(fields)
    return ShopRecord(**values)


def make_subscription(status: str = "active") -> SubscriptionRecord:
    return SubscriptionRecord(id="sub-row-1", shop_id="shop-1", status=status)


class TestEvaluatePublishEligibility:
    def test_missing_shop_is_the_only_reason(self):
        checks = evaluate_publish_eligibility(None, make_subscription(), 3)
        assert checks.can_publish is False
        assert checks.blocking_reasons == [REASON_NO_SHOP]

    @pytest.mark.parametrize(
        "complete,connected,subscribed,has_variant",
        list(itertools.product([True, False], repeat=4))
    )
    def test_reasons_accumulate_in_order(self, complete, connected, subscribed, has_variant):
        shop = make_shop(
            description="Pan de la casa" if complete else "   ",
            stripe_connect_account_id="acct_1" if connected else None,
        )
        subscription = make_subscription("active" if subscribed else "past_due")

        checks = evaluate_publish_eligibility(shop, subscription, 1 if has_variant else 0)

        expected = []
        if not complete:
            expected.append(REASON_INCOMPLETE_SHOP)
        if not connected:
            expected.append(REASON_NO_CONNECT)
        if not subscribed:
            expected.append(REASON_NO_SUBSCRIPTION)
        if not has_variant:
            expected.append(REASON_NO_VARIANTS)

        assert checks.blocking_reasons == expected
        assert checks.can_publish == (not expected)

    def test_trialing_counts_as_subscribed(self):
        checks = evaluate_publish_eligibility(make_shop(), make_subscription("trialing"), 1)
        assert checks.can_publish is True

    @pytest.mark.parametrize("status", ["inactive", "canceled", "unpaid", "incomplete", "paused"])
    def test_other_subscription_statuses_block(self, status):
        checks = evaluate_publish_eligibility(make_shop(), make_subscription(status), 1)
        assert checks.blocking_reasons == [REASON_NO_SUBSCRIPTION]

    def test_missing_subscription_blocks(self):
        checks = evaluate_publish_eligibility(make_shop(), None, 1)
        assert checks.blocking_reasons == [REASON_NO_SUBSCRIPTION]

    def test_blank_connect_account_blocks(self):
        checks = evaluate_publish_eligibility(make_shop(stripe_connect_account_id="  "), make_subscription(), 1)
        assert checks.blocking_reasons == [REASON_NO_CONNECT]


class TestGetVendorPublishChecks:
    async def test_no_shop(self, session):
        await seed_profile(session, "user-1")
        checks = await get_vendor_publish_checks(VendorStore(session), "user-1")
        assert checks.shop is None
        assert checks.blocking_reasons == [REASON_NO_SHOP]

    async def test_counts_only_active_variants_of_active_products(self, session):
        await seed_profile(session, "user-1", role="vendor")
        shop = await seed_shop(
            session, "user-1", "panaderia",
            vendor_name="Panaderia", description="Pan", stripe_connect_account_id="acct_1"
        )
        await seed_subscription(session, shop.id, status="active")
        await seed_product(session, shop.id, name="Archivado", is_active=False)
        await seed_product(session, shop.id, name="Sin variante", variant_active=False)

        checks = await get_vendor_publish_checks(VendorStore(session), "user-1")
        assert checks.active_variant_count == 0
        assert checks.blocking_reasons == [REASON_NO_VARIANTS]

        await seed_product(session, shop.id, name="Pan")
        checks = await get_vendor_publish_checks(VendorStore(session), "user-1")
        assert checks.active_variant_count == 1
        assert checks.can_publish is True
