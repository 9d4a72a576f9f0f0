"""
Capability checks injected at the boundary of vendor-facing routes.

Flags are read through dependencies rather than module constants so a
deployment or a test can swap them via app.dependency_overrides.
"""
from fastapi import Depends

import config
from utils.errors import NotFound, ValidationError


def get_vendor_mode_enabled() -> bool:
    return config.ENABLE_VENDOR_MODE


def get_billing_bypass_enabled() -> bool:
    return config.ENABLE_VENDOR_BILLING_BYPASS


def get_stripe_webhook_secret():
    return config.STRIPE_WEBHOOK_SECRET


async def require_vendor_mode(enabled: bool = Depends(get_vendor_mode_enabled)) -> bool:
    if not enabled:
        raise ValidationError("Vendor mode is disabled.")
    return True


async def require_vendor_mode_visible(enabled: bool = Depends(get_vendor_mode_enabled)) -> bool:
    """Status endpoints hide the feature entirely when it is off"""
    if not enabled:
        raise NotFound("Vendor mode is disabled.")
    return True
