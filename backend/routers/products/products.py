from fastapi import APIRouter, Depends, status
import logging
import math

from dependencies.feature_flags import require_vendor_mode
from dependencies.vendor_context import VendorContext, ensure_vendor_shop, get_vendor_context, provision_vendor
from records import ProductRecord
from utils.errors import ConflictError, MarketplaceError, NotFound, ValidationError
from .schemas import (
    ImageCreate,
    ImageCreatedResponse,
    ImageResponse,
    OkResponse,
    ProductCreate,
    ProductCreatedResponse,
    ProductListResponse,
    ProductResponse,
    ProductSummary,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vendor", tags=["Vendor Products"])

DEFAULT_VARIANT_TITLE = "Default"
NEW_VARIANT_TITLE = "Nueva variante"
PRODUCT_HAS_ORDERS_MESSAGE = "No puedes eliminar este producto porque tiene ordenes asociadas. Puedes desactivarlo."


def _price(value) -> float:
    return max(0.0, value or 0.0)


def _stock(value) -> int:
    return max(0, math.trunc(value or 0))


async def _owned_product(context: VendorContext, product_id: str, shop_id: str) -> ProductRecord:
    product = await context.store.get_product(product_id, shop_id)
    if product is None:
        raise NotFound("Producto no encontrado.")
    return product


@router.get("/products", response_model=ProductListResponse)
async def list_vendor_products(
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """All products of the caller's shop, newest first, with variants and images"""
    shop = await ensure_vendor_shop(context)
    store = context.store

    products = await store.list_products(shop.id)
    if not products:
        return ProductListResponse(products=[])

    product_ids = [product.id for product in products]
    variants = await store.list_variants(product_ids)
    images = await store.list_images(product_ids)

    return ProductListResponse(
        products=[ProductResponse.from_records(product, variants, images) for product in products]
    )


@router.post("/products", response_model=ProductCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor_product(
    body: ProductCreate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """Create a product together with its first variant"""
    name = (body.name or "").strip()
    if not name:
        raise ValidationError("El nombre del producto es requerido.")

    variant = body.variant or VariantCreate()
    variant_price = _price(variant.price_usd)
    image_url = (body.image_url or "").strip()

    try:
        shop = await provision_vendor(context)
        store = context.store

        product = await store.insert_product(
            shop.id,
            name=name,
            description=(body.description or "").strip(),
            price_usd=variant_price,
            image_url=image_url or None,
            is_active=body.is_active if body.is_active is not None else True
        )
        await store.insert_variant(
            product.id,
            shop.id,
            title=(variant.title or "").strip() or DEFAULT_VARIANT_TITLE,
            sku=(variant.sku or "").strip() or None,
            attributes_json=variant.attributes or {},
            price_usd=variant_price,
            stock_qty=_stock(variant.stock_qty),
            is_active=variant.is_active if variant.is_active is not None else True
        )
        if image_url:
            await store.insert_image(product.id, shop.id, image_url, name)

        await context.session.commit()
        logger.info(f"Product {product.id} created in shop {shop.id}")

        return ProductCreatedResponse(product=ProductSummary(id=product.id, name=product.name))

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error creating product: {str(e)}")
        await context.session.rollback()
        raise


@router.patch("/products/{product_id}", response_model=OkResponse)
async def update_vendor_product(
    product_id: str,
    body: ProductUpdate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """
    Patch product fields. A new priceUsd is also written to the product's
    first variant, then the cheapest-active-variant price is mirrored back.
    """
    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        updates = {}
        if body.name is not None:
            updates["name"] = body.name.strip()
        if body.description is not None:
            updates["description"] = body.description.strip()
        if "image_url" in body.model_fields_set:
            updates["image_url"] = (body.image_url or "").strip() or None
        if body.is_active is not None:
            updates["is_active"] = body.is_active
        if body.price_usd is not None:
            updates["price_usd"] = _price(body.price_usd)

        if updates:
            await store.update_product(product.id, shop.id, **updates)

        if body.price_usd is not None:
            first_variant = await store.first_variant(product.id)
            if first_variant:
                await store.update_variant(first_variant.id, shop.id, price_usd=_price(body.price_usd))
            await store.sync_product_price(product.id)

        await context.session.commit()
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error updating product {product_id}: {str(e)}")
        await context.session.rollback()
        raise


@router.delete("/products/{product_id}", response_model=OkResponse)
async def delete_vendor_product(
    product_id: str,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        # order_items keep a RESTRICT reference; sold products can only be archived
        if await store.product_has_order_items(product.id):
            raise ConflictError(PRODUCT_HAS_ORDERS_MESSAGE)

        await store.delete_product(product.id, shop.id)
        await context.session.commit()
        logger.info(f"Product {product.id} deleted from shop {shop.id}")
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error deleting product {product_id}: {str(e)}")
        await context.session.rollback()
        raise


@router.post("/products/{product_id}/archive", response_model=OkResponse)
async def archive_vendor_product(
    product_id: str,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """Deactivate the product and all of its variants"""
    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        await store.update_product(product.id, shop.id, is_active=False)
        await store.deactivate_variants(product.id, shop.id)
        await context.session.commit()
        logger.info(f"Product {product.id} archived")
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error archiving product {product_id}: {str(e)}")
        await context.session.rollback()
        raise


# =================
# Variants
# =================

@router.post("/products/{product_id}/variants", response_model=OkResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor_variant(
    product_id: str,
    body: VariantCreate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        await store.insert_variant(
            product.id,
            shop.id,
            title=(body.title or "").strip() or NEW_VARIANT_TITLE,
            sku=(body.sku or "").strip() or None,
            attributes_json=body.attributes or {},
            price_usd=_price(body.price_usd),
            stock_qty=_stock(body.stock_qty),
            is_active=body.is_active if body.is_active is not None else True
        )
        await store.sync_product_price(product.id)
        await context.session.commit()
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error creating variant for product {product_id}: {str(e)}")
        await context.session.rollback()
        raise


@router.patch("/variants/{variant_id}", response_model=OkResponse)
async def update_vendor_variant(
    variant_id: str,
    body: VariantUpdate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    fields = body.model_fields_set
    updates = {}
    if body.title is not None:
        updates["title"] = body.title.strip()
    if "sku" in fields:
        updates["sku"] = (body.sku or "").strip() or None
    if "attributes" in fields:
        updates["attributes_json"] = body.attributes or {}
    if body.price_usd is not None:
        updates["price_usd"] = _price(body.price_usd)
    if body.stock_qty is not None:
        updates["stock_qty"] = _stock(body.stock_qty)
    if body.is_active is not None:
        updates["is_active"] = body.is_active

    try:
        shop = await provision_vendor(context)
        if not updates:
            return OkResponse()

        store = context.store
        variant = await store.update_variant(variant_id, shop.id, **updates)
        if "price_usd" in updates or "is_active" in updates:
            await store.sync_product_price(variant.product_id)

        await context.session.commit()
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error updating variant {variant_id}: {str(e)}")
        await context.session.rollback()
        raise


# =================
# Images
# =================

@router.post("/products/{product_id}/images", response_model=ImageCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_vendor_product_image(
    product_id: str,
    body: ImageCreate,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    """Register an already-uploaded image URL; the first one becomes the cover"""
    image_url = (body.image_url or "").strip()
    if not image_url:
        raise ValidationError("Debes enviar imageUrl.")

    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        image = await store.insert_image(product.id, shop.id, image_url, (body.alt or "").strip() or None)
        if not product.image_url:
            await store.update_product(product.id, shop.id, image_url=image_url)

        await context.session.commit()
        return ImageCreatedResponse(image=ImageResponse.from_record(image))

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error adding image to product {product_id}: {str(e)}")
        await context.session.rollback()
        raise


@router.delete("/products/{product_id}/images/{image_id}", response_model=OkResponse)
async def delete_vendor_product_image(
    product_id: str,
    image_id: str,
    _: bool = Depends(require_vendor_mode),
    context: VendorContext = Depends(get_vendor_context)
):
    try:
        shop = await provision_vendor(context)
        store = context.store
        product = await _owned_product(context, product_id, shop.id)

        image = await store.delete_image(image_id, product.id, shop.id)
        if product.image_url == image.image_url:
            remaining = await store.list_images([product.id])
            next_cover = remaining[0].image_url if remaining else None
            await store.update_product(product.id, shop.id, image_url=next_cover)

        await context.session.commit()
        return OkResponse()

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error deleting image {image_id}: {str(e)}")
        await context.session.rollback()
        raise
