from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

import config
from config import get_db
from dependencies.data_access import build_public_store
from routers.auth.auth import get_current_user, get_optional_user
from routers.products.schemas import ProductResponse
from utils.errors import Forbidden, MarketplaceError, NotFound, ValidationError
from .helpers import (
    MAX_COMMENT_LENGTH,
    PRODUCT_REVIEWS_LIMIT,
    build_review_summary,
    build_share_payload,
    get_public_shop,
    is_shop_public,
    is_valid_review_rating,
    normalize_share_code,
    normalize_review_comment,
    parse_reviews_limit,
    resolve_active_shop_and_product,
    reviewer_display_name,
)
from .schemas import (
    MyReview,
    ProductReviewsResponse,
    PublicShop,
    PublicShopResponse,
    ReviewDeleteResponse,
    ReviewItem,
    ReviewRequest,
    ReviewWriteResponse,
    ShopReviewItem,
    ShopReviewsResponse,
    ShopShareResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shops", tags=["Shops"])

share_router = APIRouter(tags=["Shops"])

SHOP_UNAVAILABLE_MESSAGE = "Tienda no disponible."


@router.get("/{slug}", response_model=PublicShopResponse)
async def get_shop(slug: str, db: AsyncSession = Depends(get_db)):
    """Public storefront: active shops only, with active products and variants"""
    store = build_public_store(db)
    shop = await get_public_shop(store, slug)

    products = await store.list_products(shop.id, active_only=True)
    product_ids = [product.id for product in products]
    variants = await store.list_variants(product_ids, active_only=True)
    images = await store.list_images(product_ids)
    policies = await store.get_policies(shop.id)

    return PublicShopResponse(
        shop=PublicShop.from_record(shop, build_review_summary(shop.rating, shop.review_count)),
        products=[ProductResponse.from_records(product, variants, images) for product in products],
        policies=policies
    )


@router.get("/{slug}/reviews", response_model=ShopReviewsResponse)
async def get_shop_reviews(
    slug: str,
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    store = build_public_store(db)
    shop = await get_public_shop(store, slug)
    summary = build_review_summary(shop.rating, shop.review_count)

    products = await store.list_products(shop.id, active_only=True)
    if not products:
        return ShopReviewsResponse(summary=summary, reviews=[])

    names = {product.id: product.name for product in products}
    reviews = await store.list_reviews(list(names), parse_reviews_limit(limit))

    return ShopReviewsResponse(
        summary=summary,
        reviews=[
            ShopReviewItem(
                **ReviewItem.from_record(review).model_dump(),
                product_id=review.product_id,
                product_name=names.get(review.product_id, "Producto")
            )
            for review in reviews
        ]
    )


@router.get("/{slug}/products/{product_id}/reviews", response_model=ProductReviewsResponse)
async def get_product_reviews(
    slug: str,
    product_id: str,
    current_user: Optional[dict] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """Newest reviews of a product, plus the caller's own review when signed in"""
    store = build_public_store(db)
    _, product = await resolve_active_shop_and_product(store, slug, product_id)

    reviews = await store.list_reviews([product.id], PRODUCT_REVIEWS_LIMIT)
    my_review = None
    if current_user:
        own = await store.get_review(product.id, current_user["user_id"])
        my_review = MyReview.from_record(own) if own else None

    return ProductReviewsResponse(
        summary=build_review_summary(product.rating, product.review_count),
        my_review=my_review,
        reviews=[ReviewItem.from_record(review) for review in reviews]
    )


@router.put("/{slug}/products/{product_id}/reviews/me", response_model=ReviewWriteResponse)
async def upsert_my_review(
    slug: str,
    product_id: str,
    body: ReviewRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not is_valid_review_rating(body.rating):
        raise ValidationError("La calificacion debe estar entre 1 y 5.")

    comment = normalize_review_comment(body.comment)
    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"El comentario no puede tener mas de {MAX_COMMENT_LENGTH} caracteres.")

    store = build_public_store(db)
    user_id = current_user["user_id"]
    try:
        shop, product = await resolve_active_shop_and_product(store, slug, product_id)
        if shop.vendor_profile_id == user_id:
            raise Forbidden("No puedes dejar reviews en tus propios productos.")

        profile = await store.get_profile(user_id)
        if profile is None:
            profile = await store.create_profile(user_id, current_user.get("email"))

        review = await store.upsert_review(
            product.id,
            user_id,
            reviewer_display_name=reviewer_display_name(profile, current_user.get("email")),
            rating=int(body.rating),
            comment=comment
        )
        product = await store.refresh_review_summaries(product.id, shop.id)
        await db.commit()
        logger.info(f"Review saved on product {product.id} by {user_id}")

        return ReviewWriteResponse(
            review=MyReview.from_record(review),
            summary=build_review_summary(product.rating, product.review_count)
        )

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error saving review on product {product_id}: {str(e)}")
        await db.rollback()
        raise


@router.delete("/{slug}/products/{product_id}/reviews/me", response_model=ReviewDeleteResponse)
async def delete_my_review(
    slug: str,
    product_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    store = build_public_store(db)
    try:
        shop, product = await resolve_active_shop_and_product(store, slug, product_id)
        await store.delete_review(product.id, current_user["user_id"])
        product = await store.refresh_review_summaries(product.id, shop.id)
        await db.commit()

        return ReviewDeleteResponse(summary=build_review_summary(product.rating, product.review_count))

    except MarketplaceError:
        raise
    except Exception as e:
        logger.error(f"Error deleting review on product {product_id}: {str(e)}")
        await db.rollback()
        raise


# =================
# Share links
# =================

@router.get("/{slug}/share", response_model=ShopShareResponse)
async def get_shop_share(slug: str, db: AsyncSession = Depends(get_db)):
    store = build_public_store(db)
    shop = await store.get_shop_by_slug(slug)
    if not is_shop_public(shop):
        raise NotFound(SHOP_UNAVAILABLE_MESSAGE)
    return build_share_payload(shop)


@share_router.get("/s/{share_code}", status_code=307)
async def follow_share_link(share_code: str, db: AsyncSession = Depends(get_db)):
    """Short link: redirect to the storefront page while the shop is live"""
    store = build_public_store(db)
    shop = await store.get_shop_by_share_code(normalize_share_code(share_code))
    if not is_shop_public(shop):
        raise NotFound(SHOP_UNAVAILABLE_MESSAGE)

    base = (config.APP_URL or "").rstrip("/")
    return RedirectResponse(f"{base}/{shop.slug}", status_code=307)
