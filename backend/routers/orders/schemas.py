from typing import List, Optional
from datetime import datetime

from records import OrderItemRecord, OrderRecord, ProfileRecord
from routers.vendor.schemas import CamelModel


class OrderBuyer(CamelModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None


class VendorOrderItem(CamelModel):
    product_id: str
    product_variant_id: Optional[str] = None
    product_name: str
    quantity: int
    unit_price_usd: float


class VendorOrder(CamelModel):
    id: str
    buyer: Optional[OrderBuyer] = None
    status: str
    vendor_status: str
    subtotal_usd: float
    total_usd: float
    created_at: Optional[datetime] = None
    items: List[VendorOrderItem] = []

    @classmethod
    def from_records(
        cls,
        order: OrderRecord,
        buyer: Optional[ProfileRecord],
        items: List[tuple]
    ) -> "VendorOrder":
        return cls(
            id=order.id,
            buyer=OrderBuyer(id=buyer.id, email=buyer.email, full_name=buyer.full_name) if buyer else None,
            status=order.status.value,
            vendor_status=order.vendor_status.value,
            subtotal_usd=order.subtotal_usd,
            total_usd=order.total_usd,
            created_at=order.created_at,
            items=[_item(item, product_name) for item, product_name in items]
        )


def _item(item: OrderItemRecord, product_name: Optional[str]) -> VendorOrderItem:
    return VendorOrderItem(
        product_id=item.product_id,
        product_variant_id=item.product_variant_id,
        product_name=product_name or "Producto",
        quantity=item.quantity,
        unit_price_usd=item.unit_price_usd
    )


class VendorOrderListResponse(CamelModel):
    orders: List[VendorOrder]


class OrderStatusUpdate(CamelModel):
    status: Optional[str] = None


class OrderStatusResponse(CamelModel):
    ok: bool = True
    order_id: str
    previous_status: str
    status: str
