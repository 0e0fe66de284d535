"""Create storefront schema

Revision ID: 20261019_storefront_schema
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_storefront_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    ]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                              server_default=sa.func.now()))
    return cols


def upgrade() -> None:
    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, server_default='CUSTOMER',
                  comment='CUSTOMER, WHOLESALE_BUYER, DISTRIBUTOR, ADMIN, OWNER'),
        sa.Column('referral_code', sa.String(20), nullable=False,
                  comment='Code this user shares with new customers'),
        sa.Column('referred_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=True,
                  comment='Commission percentage earned on referred/fulfilled orders'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_referral_code', 'users', ['referral_code'], unique=True)
    op.create_index('ix_users_referred_by_id', 'users', ['referred_by_id'])

    # Catalog
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('sku', sa.String(50), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('flavor', sa.String(100), nullable=True),
        sa.Column('strength_mg', sa.Integer, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, comment='Retail unit price'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'product_id', name='uq_cart_user_product'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    # Discount codes
    op.create_table(
        'discount_codes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('code', sa.String(50), nullable=False, comment='Unique code, stored upper-case'),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('discount_type', sa.String(50), nullable=False, server_default='PERCENTAGE',
                  comment='PERCENTAGE, FIXED_AMOUNT'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False,
                  comment='Discount value (percentage or amount)'),
        sa.Column('max_discount_amount', sa.Numeric(10, 2), nullable=True,
                  comment='Cap on discount for PERCENTAGE type'),
        sa.Column('min_order_amount', sa.Numeric(10, 2), nullable=False, server_default='0',
                  comment='Minimum order total to apply code'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True,
                  comment='Expiry date (null = never expires)'),
        sa.Column('usage_limit', sa.Integer, nullable=True,
                  comment='Total times this code can be used'),
        sa.Column('times_used', sa.Integer, nullable=False, server_default='0',
                  comment='Number of times code has been used'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('discount_value > 0', name='ck_discount_value_positive'),
        sa.CheckConstraint('times_used >= 0', name='ck_discount_times_used_non_negative'),
        sa.CheckConstraint(
            'usage_limit IS NULL OR times_used <= usage_limit',
            name='ck_discount_times_used_within_limit',
        ),
    )
    op.create_index('ix_discount_codes_code', 'discount_codes', ['code'], unique=True)

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_number', sa.String(30), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING_PAYMENT',
                  comment='CREATED, PENDING_PAYMENT, PROCESSING, SHIPPED, DELIVERED, COMPLETED, CANCELLED, REFUNDED'),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, comment='Sum of item totals before tax'),
        sa.Column('shipping_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, comment='Final amount to be paid'),
        sa.Column('discount_code', sa.String(50), nullable=True),
        sa.Column('referral_code', sa.String(20), nullable=True),
        sa.Column('payment_method', sa.String(50), nullable=False,
                  comment='CREDIT_CARD, E_TRANSFER, BITCOIN'),
        sa.Column('payment_status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, COMPLETED, FAILED, REFUNDED'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipping_address', sa.JSON, nullable=False),
        sa.Column('billing_address', sa.JSON, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_user_created', 'orders', ['user_id', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('product_sku', sa.String(50), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=False),
        sa.Column('changed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    op.create_table(
        'distributor_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('distributor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('assigned_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='ASSIGNED',
                  comment='ASSIGNED, COMPLETED, CANCELLED'),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('carrier', sa.String(100), nullable=True),
        sa.Column('fulfillment_notes', sa.Text, nullable=True),
        *_timestamps(updated=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_distributor_assignments_order_id', 'distributor_assignments', ['order_id'])
    op.create_index('ix_distributor_assignments_distributor_id', 'distributor_assignments', ['distributor_id'])
    op.create_index('ix_distributor_assignments_status', 'distributor_assignments', ['status'])

    # Commissions
    op.create_table(
        'commissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('commission_type', sa.String(50), nullable=False,
                  comment='NEW_REFERRAL, ORDER_REFERRAL, DISTRIBUTOR_FULFILLMENT'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, APPROVED, PAID, CANCELLED'),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('rate', sa.Numeric(5, 2), nullable=True,
                  comment='Commission rate snapshot at time of calculation'),
        sa.Column('order_amount', sa.Numeric(12, 2), nullable=True,
                  comment='Order total the commission was calculated from'),
        sa.Column('related_entity_type', sa.String(50), nullable=False, server_default='ORDER',
                  comment='ORDER, USER'),
        sa.Column('related_id', sa.Uuid(), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('related_entity_type', 'related_id', 'commission_type',
                            name='uq_commission_related_type'),
        sa.CheckConstraint('amount >= 0', name='ck_commission_amount_non_negative'),
    )
    op.create_index('ix_commissions_user_id', 'commissions', ['user_id'])
    op.create_index('ix_commissions_commission_type', 'commissions', ['commission_type'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])
    op.create_index('ix_commissions_related_id', 'commissions', ['related_id'])
    op.create_index('ix_commission_user_status', 'commissions', ['user_id', 'status'])

    # Admin task queue
    op.create_table(
        'tasks',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(50), nullable=False,
                  comment='ORDER_REVIEW, PAYMENT, FULFILLMENT, PAYOUT, REFUND, RECONCILIATION, WHOLESALE_REVIEW, OTHER'),
        sa.Column('status', sa.String(50), nullable=False, server_default='PENDING',
                  comment='PENDING, IN_PROGRESS, COMPLETED, DEFERRED, CANCELLED'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='MEDIUM',
                  comment='LOW, MEDIUM, HIGH, URGENT'),
        sa.Column('assigned_to', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('related_entity_type', sa.String(50), nullable=True),
        sa.Column('related_id', sa.Uuid(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_tasks_category', 'tasks', ['category'])
    op.create_index('ix_tasks_status', 'tasks', ['status'])
    op.create_index('ix_tasks_assigned_to', 'tasks', ['assigned_to'])
    op.create_index('ix_task_related', 'tasks', ['related_entity_type', 'related_id'])

    # Inventory
    op.create_table(
        'inventory',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location', sa.String(100), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('product_id', 'location', name='uq_inventory_product_location'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_non_negative'),
    )
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])
    op.create_index('ix_inventory_location', 'inventory', ['location'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('location', sa.String(100), nullable=False),
        sa.Column('quantity_change', sa.Integer, nullable=False),
        sa.Column('movement_type', sa.String(50), nullable=False,
                  comment='RESTOCK, ADJUSTMENT, TRANSFER_OUT, TRANSFER_IN'),
        sa.Column('reference_type', sa.String(50), nullable=True),
        sa.Column('reference_id', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])


def downgrade() -> None:
    op.drop_table('stock_movements')
    op.drop_table('inventory')
    op.drop_table('tasks')
    op.drop_table('commissions')
    op.drop_table('distributor_assignments')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('discount_codes')
    op.drop_table('cart_items')
    op.drop_table('products')
    op.drop_table('users')
