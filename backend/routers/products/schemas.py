from pydantic import Field, StrictBool
from typing import Any, Dict, List, Optional
from datetime import datetime

from records import ImageRecord, ProductRecord, VariantRecord
from routers.vendor.schemas import CamelModel


# Requests

class VariantCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    sku: Optional[str] = Field(None, max_length=100)
    price_usd: Optional[float] = Field(None, allow_inf_nan=False)
    stock_qty: Optional[float] = Field(None, allow_inf_nan=False)
    is_active: Optional[StrictBool] = None
    attributes: Optional[Dict[str, Any]] = None


class VariantUpdate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    sku: Optional[str] = Field(None, max_length=100)
    price_usd: Optional[float] = Field(None, allow_inf_nan=False)
    stock_qty: Optional[float] = Field(None, allow_inf_nan=False)
    is_active: Optional[StrictBool] = None
    attributes: Optional[Dict[str, Any]] = None


class ProductCreate(CamelModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[StrictBool] = None
    variant: Optional[VariantCreate] = None


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[StrictBool] = None
    price_usd: Optional[float] = Field(None, allow_inf_nan=False)


class ImageCreate(CamelModel):
    image_url: Optional[str] = None
    alt: Optional[str] = Field(None, max_length=300)


# Responses

class VariantResponse(CamelModel):
    id: str
    product_id: str
    title: str
    sku: Optional[str] = None
    attributes: Dict[str, Any] = {}
    price_usd: float
    stock_qty: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, variant: VariantRecord) -> "VariantResponse":
        return cls(
            id=variant.id,
            product_id=variant.product_id,
            title=variant.title,
            sku=variant.sku,
            attributes=variant.attributes_json,
            price_usd=variant.price_usd,
            stock_qty=variant.stock_qty,
            is_active=variant.is_active,
            created_at=variant.created_at,
            updated_at=variant.updated_at
        )


class ImageResponse(CamelModel):
    id: str
    product_id: str
    image_url: str
    alt: Optional[str] = None
    sort_order: int

    @classmethod
    def from_record(cls, image: ImageRecord) -> "ImageResponse":
        return cls(
            id=image.id,
            product_id=image.product_id,
            image_url=image.image_url,
            alt=image.alt,
            sort_order=image.sort_order
        )


class ProductResponse(CamelModel):
    id: str
    shop_id: str
    name: str
    description: str
    image_url: Optional[str] = None
    price_usd: float
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    variants: List[VariantResponse] = []
    images: List[ImageResponse] = []

    @classmethod
    def from_records(
        cls,
        product: ProductRecord,
        variants: List[VariantRecord],
        images: List[ImageRecord]
    ) -> "ProductResponse":
        return cls(
            id=product.id,
            shop_id=product.shop_id,
            name=product.name,
            description=product.description,
            image_url=product.image_url,
            price_usd=product.price_usd,
            is_active=product.is_active,
            created_at=product.created_at,
            updated_at=product.updated_at,
            variants=[VariantResponse.from_record(v) for v in variants if v.product_id == product.id],
            images=[ImageResponse.from_record(i) for i in images if i.product_id == product.id]
        )


class ProductListResponse(CamelModel):
    products: List[ProductResponse]


class ProductSummary(CamelModel):
    id: str
    name: str


class ProductCreatedResponse(CamelModel):
    product: ProductSummary


class ImageCreatedResponse(CamelModel):
    image: ImageResponse


class OkResponse(CamelModel):
    ok: bool = True
