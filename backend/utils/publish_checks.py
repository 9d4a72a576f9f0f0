"""
Publish eligibility: the single gate deciding whether a shop may go live.

The evaluator is pure; ``get_vendor_publish_checks`` only loads its inputs.
Reasons accumulate past the first failure so the vendor sees a full checklist.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from records import ShopRecord, SubscriptionRecord, SubscriptionStatus
from utils.vendor_store import VendorStore

REASON_NO_SHOP = "Debes crear tu tienda."
REASON_INCOMPLETE_SHOP = "Completa nombre, slug y descripcion de la tienda."
REASON_NO_CONNECT = "Conecta Stripe Express para recibir pagos."
REASON_NO_SUBSCRIPTION = "Activa la suscripcion mensual de $10."
REASON_NO_VARIANTS = "Debes tener al menos una variante activa."

PUBLISHABLE_SUBSCRIPTION_STATUSES = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING})


@dataclass
class PublishChecks:
    shop: Optional[ShopRecord]
    subscription: Optional[SubscriptionRecord]
    active_variant_count: int
    can_publish: bool
    blocking_reasons: List[str] = field(default_factory=list)


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def is_subscription_publishable(subscription: Optional[SubscriptionRecord]) -> bool:
    return subscription is not None and subscription.status in PUBLISHABLE_SUBSCRIPTION_STATUSES


def evaluate_publish_eligibility(
    shop: Optional[ShopRecord],
    subscription: Optional[SubscriptionRecord],
    active_variant_count: int
) -> PublishChecks:
    if shop is None:
        return PublishChecks(
            shop=None,
            subscription=subscription,
            active_variant_count=active_variant_count,
            can_publish=False,
            blocking_reasons=[REASON_NO_SHOP]
        )

    reasons: List[str] = []

    if _blank(shop.vendor_name) or _blank(shop.slug) or _blank(shop.description):
        reasons.append(REASON_INCOMPLETE_SHOP)

    if _blank(shop.stripe_connect_account_id):
        reasons.append(REASON_NO_CONNECT)

    if not is_subscription_publishable(subscription):
        reasons.append(REASON_NO_SUBSCRIPTION)

    if active_variant_count < 1:
        reasons.append(REASON_NO_VARIANTS)

    return PublishChecks(
        shop=shop,
        subscription=subscription,
        active_variant_count=active_variant_count,
        can_publish=not reasons,
        blocking_reasons=reasons
    )


async def get_vendor_publish_checks(store: VendorStore, profile_id: str) -> PublishChecks:
    shop = await store.get_shop_for_profile(profile_id)
    if shop is None:
        return evaluate_publish_eligibility(None, None, 0)

    # Sequential on purpose: one AsyncSession cannot run concurrent queries
    subscription = await store.get_subscription(shop.id)
    active_variant_count = await store.count_active_variants(shop.id)
    return evaluate_publish_eligibility(shop, subscription, active_variant_count)
