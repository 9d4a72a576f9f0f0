"""Vendor marketplace schema: profiles, shops, onboarding, billing, catalog, orders, reviews

Revision ID: 0001_vendor_marketplace
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '0001_vendor_marketplace'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    op.create_table('profiles',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=200), nullable=True),
        sa.Column('role', sa.String(length=20), server_default='buyer', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("role IN ('buyer', 'vendor', 'admin')", name='profiles_role_check'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('shops',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('vendor_profile_id', sa.String(length=64), nullable=False),
        sa.Column('vendor_name', sa.String(length=200), server_default='', nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        sa.Column('share_code', sa.String(length=32), server_default=sa.text('substr(md5(random()::text), 1, 10)'), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='draft', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unpublished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('unpublished_reason', sa.String(length=100), nullable=True),
        sa.Column('shipping_flat_fee_usd', sa.Float(), server_default='0', nullable=False),
        sa.Column('offers_pickup', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('stripe_connect_account_id', sa.String(length=255), nullable=True),
        sa.Column('rating', sa.Float(), server_default='0', nullable=False),
        sa.Column('review_count', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.CheckConstraint("status IN ('draft', 'active', 'paused', 'unpaid')", name='shops_status_check'),
        sa.CheckConstraint("(status = 'active') = is_active", name='shops_active_matches_status'),
        sa.CheckConstraint('shipping_flat_fee_usd >= 0', name='shops_shipping_fee_check'),
        sa.ForeignKeyConstraint(['vendor_profile_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_shops_slug'),
        sa.UniqueConstraint('share_code', name='uq_shops_share_code')
    )
    op.create_index('ix_shops_vendor_profile_id', 'shops', ['vendor_profile_id'])

    op.create_table('vendor_onboarding',
        sa.Column('profile_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='not_started', nullable=False),
        sa.Column('current_step', sa.Integer(), server_default='1', nullable=False),
        sa.Column('data_json', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed')",
            name='vendor_onboarding_status_check'
        ),
        sa.CheckConstraint('current_step >= 1 AND current_step <= 8', name='vendor_onboarding_step_check'),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('profile_id')
    )

    op.create_table('vendor_subscriptions',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('provider', sa.String(length=20), server_default='stripe', nullable=False),
        sa.Column('status', sa.String(length=30), server_default='inactive', nullable=False),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_price_id', sa.String(length=255), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_invoice_status', sa.String(length=50), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', name='uq_vendor_subscriptions_shop_id')
    )
    op.create_index('ix_vendor_subscriptions_stripe_subscription_id', 'vendor_subscriptions', ['stripe_subscription_id'])
    op.create_index('ix_vendor_subscriptions_stripe_customer_id', 'vendor_subscriptions', ['stripe_customer_id'])

    op.create_table('shop_policies',
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('refund_policy', sa.Text(), server_default='', nullable=False),
        sa.Column('shipping_policy', sa.Text(), server_default='', nullable=False),
        sa.Column('privacy_policy', sa.Text(), server_default='', nullable=False),
        sa.Column('terms', sa.Text(), server_default='', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('shop_id')
    )

    op.create_table('products',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('shop_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('price_usd', sa.Float(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('rating', sa.Float(), server_default='0', nullable=False),
        sa.Column('review_count', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_products_shop_id', 'products', ['shop_id'])

    op.create_table('product_variants',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('attributes_json', postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('price_usd', sa.Float(), server_default='0', nullable=False),
        sa.Column('stock_qty', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('price_usd >= 0', name='product_variants_price_check'),
        sa.CheckConstraint('stock_qty >= 0', name='product_variants_stock_check'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    op.create_table('product_images',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=False),
        sa.Column('alt', sa.String(length=200), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_product_images_product_id', 'product_images', ['product_id'])

    op.create_table('orders',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('profile_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('vendor_status', sa.String(length=20), server_default='new', nullable=True),
        sa.Column('subtotal_usd', sa.Float(), server_default='0', nullable=False),
        sa.Column('total_usd', sa.Float(), server_default='0', nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'fulfilled', 'cancelled', 'refunded')",
            name='orders_status_check'
        ),
        sa.CheckConstraint(
            "vendor_status IS NULL OR vendor_status IN ('new', 'processing', 'shipped', 'delivered', 'canceled')",
            name='orders_vendor_status_check'
        ),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_profile_id', 'orders', ['profile_id'])

    op.create_table('order_items',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('product_variant_id', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_usd', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_items_quantity_check'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table('product_reviews',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('profile_id', sa.String(length=64), nullable=False),
        sa.Column('reviewer_display_name', sa.String(length=200), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('rating >= 1 AND rating <= 5', name='product_reviews_rating_check'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['profile_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'profile_id', name='uq_product_reviews_product_profile')
    )

    op.create_table('stripe_webhook_events',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('stripe_webhook_events')
    op.drop_table('product_reviews')
    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('ix_orders_profile_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_product_images_product_id', table_name='product_images')
    op.drop_table('product_images')
    op.drop_index('ix_product_variants_product_id', table_name='product_variants')
    op.drop_table('product_variants')
    op.drop_index('ix_products_shop_id', table_name='products')
    op.drop_table('products')
    op.drop_table('shop_policies')
    op.drop_index('ix_vendor_subscriptions_stripe_customer_id', table_name='vendor_subscriptions')
    op.drop_index('ix_vendor_subscriptions_stripe_subscription_id', table_name='vendor_subscriptions')
    op.drop_table('vendor_subscriptions')
    op.drop_table('vendor_onboarding')
    op.drop_index('ix_shops_vendor_profile_id', table_name='shops')
    op.drop_table('shops')
    op.drop_table('profiles')
