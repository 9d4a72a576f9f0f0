from typing import Any, List, Optional
from datetime import datetime

from records import ReviewRecord, ShopPoliciesRecord, ShopRecord
from routers.products.schemas import ProductResponse
from routers.vendor.schemas import CamelModel


class ReviewSummary(CamelModel):
    average_rating: str
    review_count: int


class PublicShop(CamelModel):
    id: str
    slug: str
    vendor_name: str
    description: str
    logo_url: Optional[str] = None
    shipping_flat_fee_usd: float
    offers_pickup: bool
    summary: ReviewSummary

    @classmethod
    def from_record(cls, shop: ShopRecord, summary: ReviewSummary) -> "PublicShop":
        return cls(
            id=shop.id,
            slug=shop.slug,
            vendor_name=shop.vendor_name,
            description=shop.description,
            logo_url=shop.logo_url,
            shipping_flat_fee_usd=shop.shipping_flat_fee_usd,
            offers_pickup=shop.offers_pickup,
            summary=summary
        )


class PublicShopResponse(CamelModel):
    shop: PublicShop
    products: List[ProductResponse]
    policies: Optional[ShopPoliciesRecord] = None


# Reviews

class ReviewRequest(CamelModel):
    # Validated by hand so bad ratings get the storefront's own message
    rating: Optional[Any] = None
    comment: Optional[Any] = None


class ReviewItem(CamelModel):
    id: str
    rating: int
    comment: Optional[str] = None
    reviewer_display_name: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, review: ReviewRecord) -> "ReviewItem":
        return cls(
            id=review.id,
            rating=review.rating,
            comment=review.comment,
            reviewer_display_name=review.reviewer_display_name,
            created_at=review.created_at
        )


class MyReview(CamelModel):
    id: str
    rating: int
    comment: Optional[str] = None
    reviewer_display_name: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, review: ReviewRecord) -> "MyReview":
        return cls(
            id=review.id,
            rating=review.rating,
            comment=review.comment,
            reviewer_display_name=review.reviewer_display_name,
            updated_at=review.updated_at
        )


class ProductReviewsResponse(CamelModel):
    summary: ReviewSummary
    my_review: Optional[MyReview] = None
    reviews: List[ReviewItem]


class ReviewWriteResponse(CamelModel):
    ok: bool = True
    review: MyReview
    summary: ReviewSummary


class ReviewDeleteResponse(CamelModel):
    ok: bool = True
    summary: ReviewSummary


class ShopReviewItem(ReviewItem):
    product_id: str
    product_name: str


class ShopReviewsResponse(CamelModel):
    summary: ReviewSummary
    reviews: List[ShopReviewItem]


# Share links

class ShopShareResponse(CamelModel):
    shop_slug: str
    vendor_name: str
    share_code: str
    share_url: str


class OwnerShopShareResponse(ShopShareResponse):
    shop_status: str
    is_active: bool
