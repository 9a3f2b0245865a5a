"""Initial ledger schema: businesses, products, inventory items and stock transactions

Revision ID: 0001_initial_ledger_schema
Revises:
Create Date: 2026-10-19

This migration creates:
1. businesses (ownership root, pricing settings, display currency)
2. products and product_ingredients (recipe plus cached pricing snapshot)
3. inventory_items (cached current_quantity, optimistic version_id)
4. inventory_transactions (append-only ledger, cascades with its item)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. BUSINESSES
    # ==========================================================================
    op.create_table('businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('hourly_rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('default_margin', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('currency_code', sa.String(length=3), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 2. PRODUCTS + RECIPE LINES
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('labor_minutes', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('target_margin', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('total_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('selling_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('profit_margin', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_business_id'), ['business_id'], unique=False)
        batch_op.create_index('ix_products_business_name', ['business_id', 'name'], unique=False)

    op.create_table('product_ingredients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit_cost', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('product_ingredients', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_product_ingredients_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_product_ingredients_product_position', ['product_id', 'position'], unique=False)

    # ==========================================================================
    # 3. INVENTORY ITEMS
    # ==========================================================================
    op.create_table('inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('current_quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('cost_per_unit', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('low_stock_alert', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('batch_lot_number', sa.String(length=64), nullable=True),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_items_business_id'), ['business_id'], unique=False)
        batch_op.create_index('ix_inventory_items_business_name', ['business_id', 'name'], unique=False)

    # ==========================================================================
    # 4. INVENTORY TRANSACTIONS (append-only ledger)
    # ==========================================================================
    op.create_table('inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('inventory_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity_change', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('resulting_quantity', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id'], ),
        sa.ForeignKeyConstraint(['inventory_id'], ['inventory_items.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_inventory_transactions_business_id'), ['business_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_inventory_id'), ['inventory_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_inventory_transactions_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_invtx_business_inventory_id', ['business_id', 'inventory_id', 'id'], unique=False)


def downgrade():
    with op.batch_alter_table('inventory_transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_invtx_business_inventory_id')
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_created_at'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_inventory_id'))
        batch_op.drop_index(batch_op.f('ix_inventory_transactions_business_id'))
    op.drop_table('inventory_transactions')

    with op.batch_alter_table('inventory_items', schema=None) as batch_op:
        batch_op.drop_index('ix_inventory_items_business_name')
        batch_op.drop_index(batch_op.f('ix_inventory_items_business_id'))
    op.drop_table('inventory_items')

    with op.batch_alter_table('product_ingredients', schema=None) as batch_op:
        batch_op.drop_index('ix_product_ingredients_product_position')
        batch_op.drop_index(batch_op.f('ix_product_ingredients_product_id'))
    op.drop_table('product_ingredients')

    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.drop_index('ix_products_business_name')
        batch_op.drop_index(batch_op.f('ix_products_business_id'))
    op.drop_table('products')

    op.drop_table('businesses')
