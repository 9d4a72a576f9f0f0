"""
Single data-access interface for vendor, billing and storefront operations.

A store built with ``scope_profile_id`` runs caller-scoped: every query on a
shop-owned table is additionally restricted to rows whose shop belongs to
that profile, mirroring the row-level policies the anon client would hit.
An unscoped store runs with elevated privileges (service role, webhooks).

Methods flush but never commit; callers own the transaction boundary.
"""
from sqlalchemy import select, func, delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models import (
    Profile,
    Shop,
    VendorOnboarding,
    VendorSubscription,
    ShopPolicies,
    Product,
    ProductVariant,
    ProductImage,
    Order,
    OrderItem,
    ProductReview,
    StripeWebhookEvent,
)
from records import (
    ProfileRecord,
    ShopRecord,
    OnboardingRecord,
    SubscriptionRecord,
    ShopPoliciesRecord,
    ProductRecord,
    VariantRecord,
    ImageRecord,
    OrderRecord,
    OrderItemRecord,
    ReviewRecord,
)
from utils.errors import NotFound


class VendorStore:
    def __init__(self, session: AsyncSession, scope_profile_id: Optional[str] = None):
        self.session = session
        self.scope_profile_id = scope_profile_id

    @property
    def is_elevated(self) -> bool:
        return self.scope_profile_id is None

    # =================
    # Scoping
    # =================

    def _owned_shop_ids(self):
        return select(Shop.id).where(Shop.vendor_profile_id == self.scope_profile_id)

    def _scope_shop(self, stmt):
        if self.scope_profile_id is None:
            return stmt
        return stmt.where(Shop.vendor_profile_id == self.scope_profile_id)

    def _scope_by_shop_id(self, stmt, shop_id_column):
        if self.scope_profile_id is None:
            return stmt
        return stmt.where(shop_id_column.in_(self._owned_shop_ids()))

    def _scope_by_product_id(self, stmt, product_id_column):
        if self.scope_profile_id is None:
            return stmt
        owned_products = select(Product.id).where(Product.shop_id.in_(self._owned_shop_ids()))
        return stmt.where(product_id_column.in_(owned_products))

    @staticmethod
    def _apply(row, fields: Dict[str, Any]):
        for key, value in fields.items():
            setattr(row, key, value)

    # =================
    # Profiles
    # =================

    async def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        result = await self.session.execute(select(Profile).where(Profile.id == profile_id))
        row = result.scalar_one_or_none()
        return ProfileRecord.model_validate(row) if row else None

    async def create_profile(self, profile_id: str, email: Optional[str], full_name: Optional[str] = None) -> ProfileRecord:
        row = Profile(id=profile_id, email=email, full_name=full_name, role="buyer")
        self.session.add(row)
        await self.session.flush()
        return ProfileRecord.model_validate(row)

    async def update_profile(self, profile_id: str, **fields) -> ProfileRecord:
        if self.scope_profile_id is not None and profile_id != self.scope_profile_id:
            raise NotFound("Perfil no encontrado.")
        result = await self.session.execute(select(Profile).where(Profile.id == profile_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Perfil no encontrado.")
        self._apply(row, fields)
        await self.session.flush()
        return ProfileRecord.model_validate(row)

    # =================
    # Shops
    # =================

    async def _load_shop(self, shop_id: str) -> Shop:
        stmt = self._scope_shop(select(Shop).where(Shop.id == shop_id))
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Tienda no encontrada.")
        return row

    async def get_shop(self, shop_id: str) -> Optional[ShopRecord]:
        stmt = self._scope_shop(select(Shop).where(Shop.id == shop_id))
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return ShopRecord.model_validate(row) if row else None

    async def get_shop_for_profile(self, profile_id: str) -> Optional[ShopRecord]:
        """First-created shop wins when a profile ended up with several"""
        stmt = self._scope_shop(
            select(Shop)
            .where(Shop.vendor_profile_id == profile_id)
            .order_by(Shop.created_at.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return ShopRecord.model_validate(row) if row else None

    async def get_shop_by_slug(self, slug: str) -> Optional[ShopRecord]:
        # Public lookup, never scoped
        result = await self.session.execute(select(Shop).where(Shop.slug == slug))
        row = result.scalar_one_or_none()
        return ShopRecord.model_validate(row) if row else None

    async def get_shop_by_share_code(self, share_code: str) -> Optional[ShopRecord]:
        result = await self.session.execute(select(Shop).where(Shop.share_code == share_code))
        row = result.scalar_one_or_none()
        return ShopRecord.model_validate(row) if row else None

    async def slug_taken(self, slug: str, exclude_shop_id: Optional[str] = None) -> bool:
        # Slugs are globally unique, so this check ignores the caller's scope
        stmt = select(func.count()).select_from(Shop).where(Shop.slug == slug)
        if exclude_shop_id:
            stmt = stmt.where(Shop.id != exclude_shop_id)
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def insert_shop(self, profile_id: str, slug: str, vendor_name: str) -> ShopRecord:
        """Raises IntegrityError on a slug collision; the caller rolls back"""
        row = Shop(
            vendor_profile_id=profile_id,
            slug=slug,
            vendor_name=vendor_name,
            description="",
            status="draft",
            is_active=False,
        )
        self.session.add(row)
        await self.session.flush()
        return ShopRecord.model_validate(row)

    async def update_shop(self, shop_id: str, **fields) -> ShopRecord:
        row = await self._load_shop(shop_id)
        self._apply(row, fields)
        await self.session.flush()
        return ShopRecord.model_validate(row)

    # =================
    # Onboarding
    # =================

    async def get_onboarding(self, profile_id: str) -> Optional[OnboardingRecord]:
        if self.scope_profile_id is not None and profile_id != self.scope_profile_id:
            return None
        result = await self.session.execute(
            select(VendorOnboarding).where(VendorOnboarding.profile_id == profile_id)
        )
        row = result.scalar_one_or_none()
        return OnboardingRecord.model_validate(row) if row else None

    async def upsert_onboarding(self, profile_id: str, **fields) -> OnboardingRecord:
        if self.scope_profile_id is not None and profile_id != self.scope_profile_id:
            raise NotFound("Onboarding no encontrado.")
        result = await self.session.execute(
            select(VendorOnboarding).where(VendorOnboarding.profile_id == profile_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = VendorOnboarding(profile_id=profile_id, status="not_started", current_step=1, data_json={})
            self.session.add(row)
        self._apply(row, fields)
        await self.session.flush()
        return OnboardingRecord.model_validate(row)

    # =================
    # Subscriptions
    # =================

    async def get_subscription(self, shop_id: str) -> Optional[SubscriptionRecord]:
        stmt = self._scope_by_shop_id(
            select(VendorSubscription).where(VendorSubscription.shop_id == shop_id),
            VendorSubscription.shop_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return SubscriptionRecord.model_validate(row) if row else None

    async def find_subscription(
        self,
        stripe_subscription_id: Optional[str],
        stripe_customer_id: Optional[str]
    ) -> Optional[SubscriptionRecord]:
        """Lookup by subscription id first, then by customer id"""
        if stripe_subscription_id:
            stmt = self._scope_by_shop_id(
                select(VendorSubscription)
                .where(VendorSubscription.stripe_subscription_id == stripe_subscription_id)
                .limit(1),
                VendorSubscription.shop_id
            )
            result = await self.session.execute(stmt)
            row = result.scalars().first()
            if row:
                return SubscriptionRecord.model_validate(row)

        if stripe_customer_id:
            stmt = self._scope_by_shop_id(
                select(VendorSubscription)
                .where(VendorSubscription.stripe_customer_id == stripe_customer_id)
                .limit(1),
                VendorSubscription.shop_id
            )
            result = await self.session.execute(stmt)
            row = result.scalars().first()
            if row:
                return SubscriptionRecord.model_validate(row)

        return None

    async def upsert_subscription(self, shop_id: str, **fields) -> SubscriptionRecord:
        stmt = self._scope_by_shop_id(
            select(VendorSubscription).where(VendorSubscription.shop_id == shop_id),
            VendorSubscription.shop_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            await self._load_shop(shop_id)
            row = VendorSubscription(shop_id=shop_id, provider="stripe", status="inactive")
            self.session.add(row)
        self._apply(row, fields)
        await self.session.flush()
        return SubscriptionRecord.model_validate(row)

    async def update_subscription(self, subscription_id: str, **fields) -> SubscriptionRecord:
        stmt = self._scope_by_shop_id(
            select(VendorSubscription).where(VendorSubscription.id == subscription_id),
            VendorSubscription.shop_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Suscripcion no encontrada.")
        self._apply(row, fields)
        await self.session.flush()
        return SubscriptionRecord.model_validate(row)

    # =================
    # Policies
    # =================

    async def get_policies(self, shop_id: str) -> Optional[ShopPoliciesRecord]:
        result = await self.session.execute(select(ShopPolicies).where(ShopPolicies.shop_id == shop_id))
        row = result.scalar_one_or_none()
        return ShopPoliciesRecord.model_validate(row) if row else None

    async def upsert_policies(self, shop_id: str, **fields) -> ShopPoliciesRecord:
        await self._load_shop(shop_id)
        result = await self.session.execute(select(ShopPolicies).where(ShopPolicies.shop_id == shop_id))
        row = result.scalar_one_or_none()
        if row is None:
            row = ShopPolicies(shop_id=shop_id)
            self.session.add(row)
        self._apply(row, fields)
        await self.session.flush()
        return ShopPoliciesRecord.model_validate(row)

    # =================
    # Products, variants, images
    # =================

    async def list_products(self, shop_id: str, active_only: bool = False) -> List[ProductRecord]:
        stmt = select(Product).where(Product.shop_id == shop_id)
        if active_only:
            stmt = stmt.where(Product.is_active.is_(True))
        stmt = self._scope_by_shop_id(stmt.order_by(Product.created_at.desc()), Product.shop_id)
        result = await self.session.execute(stmt)
        return [ProductRecord.model_validate(row) for row in result.scalars().all()]

    async def _load_product(self, product_id: str, shop_id: str) -> Product:
        stmt = self._scope_by_shop_id(
            select(Product).where(Product.id == product_id, Product.shop_id == shop_id),
            Product.shop_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Producto no encontrado.")
        return row

    async def get_product(self, product_id: str, shop_id: str) -> Optional[ProductRecord]:
        stmt = self._scope_by_shop_id(
            select(Product).where(Product.id == product_id, Product.shop_id == shop_id),
            Product.shop_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return ProductRecord.model_validate(row) if row else None

    async def insert_product(self, shop_id: str, **fields) -> ProductRecord:
        await self._load_shop(shop_id)
        row = Product(shop_id=shop_id, **fields)
        self.session.add(row)
        await self.session.flush()
        return ProductRecord.model_validate(row)

    async def update_product(self, product_id: str, shop_id: str, **fields) -> ProductRecord:
        row = await self._load_product(product_id, shop_id)
        self._apply(row, fields)
        await self.session.flush()
        return ProductRecord.model_validate(row)

    async def delete_product(self, product_id: str, shop_id: str) -> None:
        row = await self._load_product(product_id, shop_id)
        await self.session.execute(delete(ProductImage).where(ProductImage.product_id == row.id))
        await self.session.execute(delete(ProductVariant).where(ProductVariant.product_id == row.id))
        await self.session.delete(row)
        await self.session.flush()

    async def product_has_order_items(self, product_id: str) -> bool:
        result = await self.session.execute(
            select(OrderItem.id).where(OrderItem.product_id == product_id).limit(1)
        )
        return result.first() is not None

    async def count_active_products(self, shop_id: str) -> int:
        stmt = self._scope_by_shop_id(
            select(func.count()).select_from(Product).where(
                Product.shop_id == shop_id,
                Product.is_active.is_(True)
            ),
            Product.shop_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def count_active_variants(self, shop_id: str) -> int:
        """Active variants across the shop's active products"""
        stmt = self._scope_by_shop_id(
            select(func.count(ProductVariant.id))
            .select_from(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                Product.shop_id == shop_id,
                Product.is_active.is_(True),
                ProductVariant.is_active.is_(True)
            ),
            Product.shop_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_variants(self, product_ids: Sequence[str], active_only: bool = False) -> List[VariantRecord]:
        if not product_ids:
            return []
        stmt = select(ProductVariant).where(ProductVariant.product_id.in_(list(product_ids)))
        if active_only:
            stmt = stmt.where(ProductVariant.is_active.is_(True))
        stmt = self._scope_by_product_id(stmt.order_by(ProductVariant.created_at.asc()), ProductVariant.product_id)
        result = await self.session.execute(stmt)
        return [VariantRecord.model_validate(row) for row in result.scalars().all()]

    async def _load_variant(self, variant_id: str, shop_id: str) -> ProductVariant:
        stmt = self._scope_by_product_id(
            select(ProductVariant)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(ProductVariant.id == variant_id, Product.shop_id == shop_id),
            ProductVariant.product_id
        )
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Variante no encontrada.")
        return row

    async def insert_variant(self, product_id: str, shop_id: str, **fields) -> VariantRecord:
        await self._load_product(product_id, shop_id)
        row = ProductVariant(product_id=product_id, **fields)
        self.session.add(row)
        await self.session.flush()
        return VariantRecord.model_validate(row)

    async def update_variant(self, variant_id: str, shop_id: str, **fields) -> VariantRecord:
        row = await self._load_variant(variant_id, shop_id)
        self._apply(row, fields)
        await self.session.flush()
        return VariantRecord.model_validate(row)

    async def deactivate_variants(self, product_id: str, shop_id: str) -> None:
        await self._load_product(product_id, shop_id)
        await self.session.execute(
            update(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .values(is_active=False)
        )
        await self.session.flush()

    async def first_variant(self, product_id: str) -> Optional[VariantRecord]:
        stmt = self._scope_by_product_id(
            select(ProductVariant)
            .where(ProductVariant.product_id == product_id)
            .order_by(ProductVariant.created_at.asc())
            .limit(1),
            ProductVariant.product_id
        )
        result = await self.session.execute(stmt)
        row = result.scalars().first()
        return VariantRecord.model_validate(row) if row else None

    async def sync_product_price(self, product_id: str) -> Optional[float]:
        """
        Mirror the cheapest active variant's price onto the product.
        With no active variant the product price is left untouched.
        """
        result = await self.session.execute(
            select(func.min(ProductVariant.price_usd)).where(
                ProductVariant.product_id == product_id,
                ProductVariant.is_active.is_(True)
            )
        )
        cheapest = result.scalar_one_or_none()
        if cheapest is None:
            return None

        product_result = await self.session.execute(
            self._scope_by_shop_id(select(Product).where(Product.id == product_id), Product.shop_id)
        )
        product = product_result.scalar_one_or_none()
        if product is None:
            raise NotFound("Producto no encontrado.")
        product.price_usd = cheapest
        await self.session.flush()
        return cheapest

    async def list_images(self, product_ids: Sequence[str]) -> List[ImageRecord]:
        if not product_ids:
            return []
        stmt = self._scope_by_product_id(
            select(ProductImage)
            .where(ProductImage.product_id.in_(list(product_ids)))
            .order_by(ProductImage.sort_order.asc(), ProductImage.created_at.asc()),
            ProductImage.product_id
        )
        result = await self.session.execute(stmt)
        return [ImageRecord.model_validate(row) for row in result.scalars().all()]

    async def insert_image(self, product_id: str, shop_id: str, image_url: str, alt: Optional[str]) -> ImageRecord:
        await self._load_product(product_id, shop_id)
        count_result = await self.session.execute(
            select(func.count()).select_from(ProductImage).where(ProductImage.product_id == product_id)
        )
        row = ProductImage(
            product_id=product_id,
            image_url=image_url,
            alt=alt,
            sort_order=count_result.scalar_one()
        )
        self.session.add(row)
        await self.session.flush()
        return ImageRecord.model_validate(row)

    async def delete_image(self, image_id: str, product_id: str, shop_id: str) -> ImageRecord:
        await self._load_product(product_id, shop_id)
        result = await self.session.execute(
            select(ProductImage).where(ProductImage.id == image_id, ProductImage.product_id == product_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Imagen no encontrada.")
        record = ImageRecord.model_validate(row)
        await self.session.delete(row)
        await self.session.flush()
        return record

    # =================
    # Orders
    # =================

    def _shop_product_ids(self, shop_id: str):
        return select(Product.id).where(Product.shop_id == shop_id)

    def _vendor_order_ids(self, shop_id: str):
        return select(OrderItem.order_id).where(OrderItem.product_id.in_(self._shop_product_ids(shop_id)))

    async def count_vendor_orders(self, shop_id: str) -> int:
        stmt = self._scope_by_shop_id(
            select(func.count(func.distinct(OrderItem.order_id)))
            .select_from(OrderItem)
            .join(Product, Product.id == OrderItem.product_id)
            .where(Product.shop_id == shop_id),
            Product.shop_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_vendor_order(self, order_id: str, shop_id: str) -> Optional[OrderRecord]:
        """
        An order is visible to a vendor only through items of their products.
        Orders of other shops read as missing.
        """
        await self._load_shop(shop_id)
        result = await self.session.execute(
            select(Order).where(Order.id == order_id, Order.id.in_(self._vendor_order_ids(shop_id)))
        )
        row = result.scalar_one_or_none()
        return OrderRecord.model_validate(row) if row else None

    async def update_order(self, order_id: str, shop_id: str, **fields) -> OrderRecord:
        await self._load_shop(shop_id)
        result = await self.session.execute(
            select(Order).where(Order.id == order_id, Order.id.in_(self._vendor_order_ids(shop_id)))
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound("Orden no encontrada.")
        self._apply(row, fields)
        await self.session.flush()
        return OrderRecord.model_validate(row)

    async def list_vendor_orders(
        self,
        shop_id: str
    ) -> List[Tuple[OrderRecord, Optional[ProfileRecord], List[Tuple[OrderItemRecord, str]]]]:
        """Orders containing the shop's products, newest first, with only that shop's lines"""
        await self._load_shop(shop_id)
        orders_result = await self.session.execute(
            select(Order)
            .where(Order.id.in_(self._vendor_order_ids(shop_id)))
            .order_by(Order.created_at.desc())
        )
        orders = [OrderRecord.model_validate(row) for row in orders_result.scalars().all()]
        if not orders:
            return []

        order_ids = [order.id for order in orders]
        items_result = await self.session.execute(
            select(OrderItem, Product.name)
            .join(Product, Product.id == OrderItem.product_id)
            .where(OrderItem.order_id.in_(order_ids), Product.shop_id == shop_id)
            .order_by(OrderItem.created_at.asc())
        )
        items_by_order: Dict[str, List[Tuple[OrderItemRecord, str]]] = {}
        for item, product_name in items_result.all():
            items_by_order.setdefault(item.order_id, []).append(
                (OrderItemRecord.model_validate(item), product_name)
            )

        buyer_ids = list({order.profile_id for order in orders})
        buyers_result = await self.session.execute(select(Profile).where(Profile.id.in_(buyer_ids)))
        buyers = {row.id: ProfileRecord.model_validate(row) for row in buyers_result.scalars().all()}

        return [(order, buyers.get(order.profile_id), items_by_order.get(order.id, [])) for order in orders]

    # =================
    # Reviews
    # =================

    async def get_review(self, product_id: str, profile_id: str) -> Optional[ReviewRecord]:
        result = await self.session.execute(
            select(ProductReview).where(
                ProductReview.product_id == product_id,
                ProductReview.profile_id == profile_id
            )
        )
        row = result.scalar_one_or_none()
        return ReviewRecord.model_validate(row) if row else None

    async def upsert_review(self, product_id: str, profile_id: str, **fields) -> ReviewRecord:
        result = await self.session.execute(
            select(ProductReview).where(
                ProductReview.product_id == product_id,
                ProductReview.profile_id == profile_id
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = ProductReview(product_id=product_id, profile_id=profile_id)
            self.session.add(row)
        self._apply(row, fields)
        await self.session.flush()
        return ReviewRecord.model_validate(row)

    async def delete_review(self, product_id: str, profile_id: str) -> None:
        await self.session.execute(
            delete(ProductReview).where(
                ProductReview.product_id == product_id,
                ProductReview.profile_id == profile_id
            )
        )
        await self.session.flush()

    async def list_reviews(self, product_ids: Sequence[str], limit: int) -> List[ReviewRecord]:
        if not product_ids:
            return []
        result = await self.session.execute(
            select(ProductReview)
            .where(ProductReview.product_id.in_(list(product_ids)))
            .order_by(ProductReview.created_at.desc())
            .limit(limit)
        )
        return [ReviewRecord.model_validate(row) for row in result.scalars().all()]

    async def refresh_review_summaries(self, product_id: str, shop_id: str) -> ProductRecord:
        """Recompute rating/review_count for the product and its shop"""
        product_stats = await self.session.execute(
            select(func.avg(ProductReview.rating), func.count(ProductReview.id))
            .where(ProductReview.product_id == product_id)
        )
        product_avg, product_count = product_stats.one()

        shop_stats = await self.session.execute(
            select(func.avg(ProductReview.rating), func.count(ProductReview.id))
            .select_from(ProductReview)
            .join(Product, Product.id == ProductReview.product_id)
            .where(Product.shop_id == shop_id)
        )
        shop_avg, shop_count = shop_stats.one()

        product_result = await self.session.execute(select(Product).where(Product.id == product_id))
        product = product_result.scalar_one()
        product.rating = round(float(product_avg or 0), 2)
        product.review_count = product_count

        shop_result = await self.session.execute(select(Shop).where(Shop.id == shop_id))
        shop = shop_result.scalar_one()
        shop.rating = round(float(shop_avg or 0), 2)
        shop.review_count = shop_count

        await self.session.flush()
        return ProductRecord.model_validate(product)

    # =================
    # Webhook ledger
    # =================

    async def webhook_event_exists(self, event_id: str) -> bool:
        result = await self.session.execute(
            select(StripeWebhookEvent.id).where(StripeWebhookEvent.id == event_id)
        )
        return result.first() is not None

    async def record_webhook_event(self, event_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Raises IntegrityError when a concurrent delivery recorded the id first"""
        self.session.add(StripeWebhookEvent(id=event_id, type=event_type, payload=payload))
        await self.session.flush()
