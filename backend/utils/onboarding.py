"""
Vendor onboarding: a fixed 8-step checklist.

Each submitted step stores its raw payload under ``data_json["step_<n>"]`` and
applies side effects to the normalized tables (profile, shop, policies), so
nothing else ever needs to read onboarding payloads. The step pointer only
moves forward.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
from typing import Any, Dict, Optional
import logging
import math

from records import STEP_COUNT, OnboardingRecord, OnboardingStatus, ShopPoliciesRecord, SubscriptionRecord
from utils.errors import ConflictError, InvalidStep, ValidationError
from utils.publish_checks import PublishChecks, get_vendor_publish_checks
from utils.slug import slugify_shop_name
from utils.vendor_store import VendorStore

logger = logging.getLogger(__name__)

VENDOR_ONBOARDING_STEPS = [
    {"step": 1, "title": "Inicio vendedor", "description": "Aprende como vender en la app."},
    {"step": 2, "title": "Perfil del negocio", "description": "Completa informacion basica del negocio."},
    {"step": 3, "title": "Configurar tienda", "description": "Nombre, slug y descripcion de tu tienda."},
    {"step": 4, "title": "Envios y politicas", "description": "Define tarifa de envio y politicas basicas."},
    {"step": 5, "title": "Conectar cobros", "description": "Conecta Stripe Express para recibir pagos."},
    {"step": 6, "title": "Suscripcion", "description": "Activa plan mensual para poder publicar."},
    {"step": 7, "title": "Primer producto", "description": "Crea al menos un producto con variante."},
    {"step": 8, "title": "Publicar tienda", "description": "Revisa requisitos y publica tu tienda."},
]

DEFAULT_POLICIES = {
    "refund_policy": "No se aceptan devoluciones despues de 7 dias.",
    "shipping_policy": "Envios de 1 a 3 dias laborables.",
    "privacy_policy": "Tus datos se usan solo para procesar ordenes.",
    "terms": "Al comprar aceptas los terminos de la tienda.",
}

SLUG_IN_USE_MESSAGE = "Ese slug ya existe. Intenta con otro nombre."


@dataclass
class StepResult:
    onboarding: OnboardingRecord
    checks: PublishChecks


# =================
# Payload readers
# =================

def read_string(payload: Dict[str, Any], key: str, fallback: str = "") -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else fallback


def read_number(payload: Dict[str, Any], key: str, fallback: float) -> float:
    """Accepts numbers and numeric strings; anything else is the fallback"""
    value = payload.get(key)
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else fallback
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return fallback
        return parsed if math.isfinite(parsed) else fallback
    return fallback


def read_boolean(payload: Dict[str, Any], key: str, fallback: bool = False) -> bool:
    value = payload.get(key)
    return value if isinstance(value, bool) else fallback


def map_next_step(current_step: int, incoming_step: int) -> int:
    return max(current_step, min(incoming_step + 1, STEP_COUNT))


# =================
# Records
# =================

async def ensure_onboarding(store: VendorStore, profile_id: str) -> OnboardingRecord:
    current = await store.get_onboarding(profile_id)
    if current:
        return current
    return await store.upsert_onboarding(
        profile_id,
        status=OnboardingStatus.IN_PROGRESS.value,
        current_step=1,
        data_json={}
    )


async def ensure_policies(store: VendorStore, shop_id: str) -> ShopPoliciesRecord:
    existing = await store.get_policies(shop_id)
    if existing:
        return existing
    return await store.upsert_policies(shop_id, **DEFAULT_POLICIES)


async def ensure_subscription(store: VendorStore, shop_id: str) -> SubscriptionRecord:
    existing = await store.get_subscription(shop_id)
    if existing:
        return existing
    return await store.upsert_subscription(shop_id, provider="stripe", status="inactive")


async def start_onboarding(store: VendorStore, profile_id: str, shop_id: str) -> OnboardingRecord:
    """Create the onboarding row and seed defaults the checklist relies on"""
    onboarding = await ensure_onboarding(store, profile_id)
    await ensure_policies(store, shop_id)
    await ensure_subscription(store, shop_id)
    return onboarding


# =================
# Step side effects
# =================

async def _apply_business_profile(store: VendorStore, profile_id: str, shop_id: str, payload: Dict[str, Any]):
    business_name = read_string(payload, "businessName").strip()
    # phone is only kept in the stored payload
    if business_name:
        await store.update_profile(profile_id, full_name=business_name)
        await store.update_shop(shop_id, vendor_name=business_name)


async def _apply_shop_identity(store: VendorStore, shop_id: str, payload: Dict[str, Any]):
    shop_name = read_string(payload, "shopName").strip()
    requested_slug = read_string(payload, "slug").strip()
    description = read_string(payload, "description").strip()
    logo_url = read_string(payload, "logoUrl").strip()

    slug = slugify_shop_name(requested_slug or shop_name)
    if not slug:
        raise ValidationError("Debes indicar un nombre valido para generar el slug.")

    if await store.slug_taken(slug, exclude_shop_id=shop_id):
        raise ConflictError(SLUG_IN_USE_MESSAGE)

    updates: Dict[str, Any] = {
        "slug": slug,
        "description": description,
        "logo_url": logo_url or None,
    }
    if shop_name:
        updates["vendor_name"] = shop_name

    try:
        await store.update_shop(shop_id, **updates)
    except IntegrityError:
        await store.session.rollback()
        raise ConflictError(SLUG_IN_USE_MESSAGE)


async def _apply_shipping_and_policies(store: VendorStore, shop_id: str, payload: Dict[str, Any]):
    await store.update_shop(
        shop_id,
        shipping_flat_fee_usd=max(0.0, read_number(payload, "shippingFlatFeeUsd", 0)),
        offers_pickup=read_boolean(payload, "offersPickup", False)
    )

    # Omitted fields keep their stored text
    current = await store.get_policies(shop_id)
    await store.upsert_policies(
        shop_id,
        refund_policy=read_string(payload, "refundPolicy", current.refund_policy if current else ""),
        shipping_policy=read_string(payload, "shippingPolicy", current.shipping_policy if current else ""),
        privacy_policy=read_string(payload, "privacyPolicy", current.privacy_policy if current else ""),
        terms=read_string(payload, "terms", current.terms if current else "")
    )


async def _apply_connect_account(store: VendorStore, shop_id: str, payload: Dict[str, Any]):
    account_id = read_string(payload, "stripeConnectAccountId").strip()
    if account_id:
        await store.update_shop(shop_id, stripe_connect_account_id=account_id)


async def apply_step_side_effects(
    store: VendorStore,
    profile_id: str,
    shop_id: str,
    step: int,
    payload: Dict[str, Any]
):
    if step == 2:
        await _apply_business_profile(store, profile_id, shop_id, payload)
    elif step == 3:
        await _apply_shop_identity(store, shop_id, payload)
    elif step == 4:
        await _apply_shipping_and_policies(store, shop_id, payload)
    elif step == 5:
        await _apply_connect_account(store, shop_id, payload)


async def apply_step(
    store: VendorStore,
    profile_id: str,
    shop_id: str,
    step: Any,
    payload: Optional[Dict[str, Any]]
) -> StepResult:
    """
    Apply one onboarding step and return the updated onboarding row together
    with the re-derived publish checks.
    """
    if not isinstance(step, int) or isinstance(step, bool) or step < 1 or step > STEP_COUNT:
        raise InvalidStep("Paso invalido.")
    payload = payload if isinstance(payload, dict) else {}

    onboarding = await ensure_onboarding(store, profile_id)
    await apply_step_side_effects(store, profile_id, shop_id, step, payload)

    next_data = {**onboarding.data_json, f"step_{step}": payload}
    next_step = map_next_step(onboarding.current_step, step)
    completed = next_step >= STEP_COUNT
    completed_at: Optional[datetime] = None
    if completed:
        completed_at = onboarding.completed_at or datetime.now(timezone.utc)

    updated = await store.upsert_onboarding(
        profile_id,
        status=(OnboardingStatus.COMPLETED if completed else OnboardingStatus.IN_PROGRESS).value,
        current_step=next_step,
        data_json=next_data,
        completed_at=completed_at
    )
    logger.info(f"Onboarding step {step} applied for {profile_id}; next step {updated.current_step}")

    checks = await get_vendor_publish_checks(store, profile_id)
    return StepResult(onboarding=updated, checks=checks)


async def mark_onboarding_completed(store: VendorStore, profile_id: str) -> OnboardingRecord:
    current = await ensure_onboarding(store, profile_id)
    return await store.upsert_onboarding(
        profile_id,
        status=OnboardingStatus.COMPLETED.value,
        current_step=STEP_COUNT,
        completed_at=current.completed_at or datetime.now(timezone.utc)
    )
