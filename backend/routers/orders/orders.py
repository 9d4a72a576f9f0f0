from fastapi import APIRouter, Depends
import logging

from dependencies.feature_flags import require_vendor_mode
from dependencies.vendor_context import VendorContext, get_vendor_context, provision_vendor
from utils.errors import MarketplaceError, NotFound, ValidationError
from utils.order_status import VendorOrderStatus, buyer_status_for, validate_transition
from .schemas import (
    OrderStatusResponse,
    OrderStatusUpdate,
    VendorOrder,
    VendorOrderListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendor/orders", tags=["Vendor Orders"])


@router.get("", response_model=VendorOrderListResponse)
async def list_vendor_orders(
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """Orders with at least one item of the caller's products, showing only those items"""
    try:
        shop = await provision_vendor(context)
        rows = await context.store.list_vendor_orders(shop.id)
        return VendorOrderListResponse(
            orders=[VendorOrder.from_records(order, buyer, items) for order, buyer, items in rows]
        )

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error listing vendor orders: {str(e)}")
        raise


@router.patch("/{order_id}/status", response_model=OrderStatusResponse)
async def update_vendor_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """
    Move an order through the vendor fulfillment flow. Orders without items
    of the caller's shop read as missing.
    """
    try:
        requested = VendorOrderStatus(body.status)
    except ValueError:
        raise ValidationError("Estado de orden invalido.")

    try:
        shop = await provision_vendor(context)
        store = context.store

        order = await store.get_vendor_order(order_id, shop.id)
        if order is None:
            raise NotFound("Orden no encontrada.")

        current = order.vendor_status
        if validate_transition(current, requested):
            updates = {"vendor_status": requested.value}
            buyer_status = buyer_status_for(requested)
            if buyer_status:
                updates["status"] = buyer_status
            await store.update_order(order.id, shop.id, **updates)
            await context.session.commit()
            logger.info(f"Order {order.id} moved {current.value} -> {requested.value} by shop {shop.id}")

        return OrderStatusResponse(
            order_id=order.id,
            previous_status=current.value,
            status=requested.value
        )

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error updating order {order_id} status: {str(e)}")
        await context.session.rollback()
        raise
