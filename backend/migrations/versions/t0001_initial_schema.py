"""Initial schema: shops, catalog, sales, receipt styles

Revision ID: t0001_initial
Revises:
Create Date: 2026-10-17

This migration adds:
1. Shop (tax rate in basis points, currency label)
2. Product and ProductVariant (integer cents, additive variant modifier)
3. Transaction and TransactionItem (sale header + immutable line snapshots)
4. ReceiptStyle (one row per shop, created on first save)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 't0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. SHOPS
    # ==========================================================================
    op.create_table('shops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency_label', sa.String(length=8), nullable=False, server_default='Rs'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )

    # ==========================================================================
    # 2. CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('cost_price_cents', sa.Integer(), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('has_variants', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', 'sku', name='uq_products_shop_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_shop_id', 'products', ['shop_id'])
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_shop_name', 'products', ['shop_id', 'name'])

    op.create_table('product_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('value', sa.String(length=64), nullable=False),
        sa.Column('price_modifier_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'name', 'value', name='uq_product_variants_option'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_variants_product_id', 'product_variants', ['product_id'])

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('cashier_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='sale'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('is_direct_billing', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transactions_shop_id', 'transactions', ['shop_id'])
    op.create_index('ix_transactions_cashier_id', 'transactions', ['cashier_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_shop_created', 'transactions', ['shop_id', 'created_at'])

    op.create_table('transaction_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('variant_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_transaction_items_transaction_id', 'transaction_items', ['transaction_id'])
    op.create_index('ix_transaction_items_product_id', 'transaction_items', ['product_id'])

    # ==========================================================================
    # 4. RECEIPT STYLES
    # ==========================================================================
    op.create_table('receipt_styles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('paper_width', sa.Integer(), nullable=False, server_default='35'),
        sa.Column('template', sa.String(length=16), nullable=False, server_default='classic'),
        sa.Column('header_align', sa.String(length=8), nullable=False, server_default='center'),
        sa.Column('footer_align', sa.String(length=8), nullable=False, server_default='center'),
        sa.Column('shop_name', sa.String(length=120), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('thank_you_text', sa.String(length=120), nullable=False, server_default='Thank you for your business!'),
        sa.Column('visit_again_text', sa.String(length=120), nullable=False, server_default='Visit us again soon.'),
        sa.Column('bold_shop_name', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('bold_total', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('header_lines', sa.JSON(), nullable=True),
        sa.Column('footer_lines', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shop_id', name='uq_receipt_styles_shop'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_receipt_styles_shop_id', 'receipt_styles', ['shop_id'])


def downgrade():
    op.drop_index('ix_receipt_styles_shop_id', table_name='receipt_styles')
    op.drop_table('receipt_styles')

    op.drop_index('ix_transaction_items_product_id', table_name='transaction_items')
    op.drop_index('ix_transaction_items_transaction_id', table_name='transaction_items')
    op.drop_table('transaction_items')

    op.drop_index('ix_transactions_shop_created', table_name='transactions')
    op.drop_index('ix_transactions_status', table_name='transactions')
    op.drop_index('ix_transactions_cashier_id', table_name='transactions')
    op.drop_index('ix_transactions_shop_id', table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('ix_product_variants_product_id', table_name='product_variants')
    op.drop_table('product_variants')

    op.drop_index('ix_products_shop_name', table_name='products')
    op.drop_index('ix_products_barcode', table_name='products')
    op.drop_index('ix_products_shop_id', table_name='products')
    op.drop_table('products')

    op.drop_table('shops')
