"""create suppliers, products, offers and order item tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Supplier profile (payout columns are read by the payout readiness gate)
    op.create_table(
        'suppliers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('is_payout_enabled', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('bank_code', sa.Text(), nullable=True),
        sa.Column('account_number', sa.Text(), nullable=True),
        sa.Column('account_name', sa.Text(), nullable=True),
        sa.Column('bank_country', sa.String(2), nullable=True),
        sa.Column('bank_verification_status', sa.String(20), nullable=False, server_default='UNVERIFIED'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "bank_verification_status IN ('UNVERIFIED', 'PENDING', 'VERIFIED', 'REJECTED')",
            name='bank_verification_status_valid'
        ),
    )
    op.create_index('idx_suppliers_bank_verification', 'suppliers', ['bank_verification_status'])

    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('price_mode', sa.String(10), nullable=False, server_default='AUTO'),
        sa.Column('auto_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('available_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("price_mode IN ('AUTO', 'ADMIN')", name='price_mode_valid'),
        sa.CheckConstraint('available_qty >= 0', name='product_available_qty_non_negative'),
    )

    op.create_table(
        'product_variants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sku', sa.Text(), nullable=True),
        sa.Column('options', postgresql.JSONB(), nullable=True),
        sa.Column('available_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_product_variants_product', 'product_variants', ['product_id'])

    op.create_table(
        'supplier_product_offers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('available_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lead_days', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('supplier_id', 'product_id', name='uq_base_offer_supplier_product'),
        sa.CheckConstraint('price >= 0', name='base_offer_price_non_negative'),
        sa.CheckConstraint('available_qty >= 0', name='base_offer_qty_non_negative'),
    )
    op.create_index('idx_base_offers_product', 'supplier_product_offers', ['product_id'])
    op.create_index('idx_base_offers_active_in_stock', 'supplier_product_offers', ['is_active', 'in_stock'])

    # base_offer_id is a soft link: deleting the base offer leaves the variant offer in place
    op.create_table(
        'supplier_variant_offers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('supplier_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('base_offer_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('available_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('lead_days', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['base_offer_id'], ['supplier_product_offers.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('supplier_id', 'variant_id', name='uq_variant_offer_supplier_variant'),
        sa.CheckConstraint('price >= 0', name='variant_offer_price_non_negative'),
        sa.CheckConstraint('available_qty >= 0', name='variant_offer_qty_non_negative'),
    )
    op.create_index('idx_variant_offers_product', 'supplier_variant_offers', ['product_id'])
    op.create_index('idx_variant_offers_variant', 'supplier_variant_offers', ['variant_id'])
    op.create_index('idx_variant_offers_active_in_stock', 'supplier_variant_offers', ['is_active', 'in_stock'])

    # Owned by the order service; chosen offer ids are plain columns, not foreign keys
    op.create_table(
        'order_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('variant_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('chosen_base_offer_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('chosen_variant_offer_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_order_items_product', 'order_items', ['product_id'])
    op.create_index('idx_order_items_variant', 'order_items', ['variant_id'])
    op.create_index('idx_order_items_base_offer', 'order_items', ['chosen_base_offer_id'])
    op.create_index('idx_order_items_variant_offer', 'order_items', ['chosen_variant_offer_id'])


def downgrade() -> None:
    op.drop_table('order_items')
    op.drop_table('supplier_variant_offers')
    op.drop_table('supplier_product_offers')
    op.drop_index('idx_product_variants_product', table_name='product_variants')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_index('idx_suppliers_bank_verification', table_name='suppliers')
    op.drop_table('suppliers')
