"""Initial schema: catalog, stock ledger, sales, purchasing, discounts

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18

This migration adds:
1. Master data (categories, suppliers, units, customers, products)
2. Stock ledger (append-only, one row per movement)
3. Sales (invoices, invoice_items)
4. Purchasing (purchases, purchase_items)
5. Discounts (items_discounts, category_discounts, bill_discounts)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]
    if updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False)
        )
    return cols


def upgrade():
    # ==========================================================================
    # 1. MASTER DATA
    # ==========================================================================
    op.create_table('categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_name', sa.String(length=100), nullable=False),
        sa.Column('contact_person', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=50), nullable=True),
        sa.Column('country', sa.String(length=50), nullable=True),
        sa.Column('tax_number', sa.String(length=50), nullable=True),
        sa.Column('payment_terms', sa.String(length=50), nullable=True),
        sa.Column('bank_details', sa.Text(), nullable=True),
        sa.Column('opening_balance', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('outstanding_balance', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('credit_limit', sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Active'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('balance', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('cost_price', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('sale_price', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('qty', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('expiry', sa.Date(), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('qty >= 0', name='ck_products_qty_non_negative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_products_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_name', ['name'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_category_id'), ['category_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_unit_id'), ['unit_id'], unique=False)

    # ==========================================================================
    # 2. STOCK LEDGER
    # ==========================================================================
    op.create_table('stock_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('qty_in', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('qty_out', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('balance', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('remarks', sa.String(length=255), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('qty_in >= 0', name='ck_stock_ledger_qty_in'),
        sa.CheckConstraint('qty_out >= 0', name='ck_stock_ledger_qty_out'),
        sa.CheckConstraint('balance >= 0', name='ck_stock_ledger_balance'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_ledger', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_ledger_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_stock_ledger_product_id_desc', ['product_id', 'id'], unique=False)
        batch_op.create_index('ix_stock_ledger_type_txn', ['transaction_type', 'transaction_id'], unique=False)

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('account_id', sa.String(length=50), nullable=True),
        sa.Column('cashier_name', sa.String(length=100), nullable=True),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='Cash Sale'),
        sa.Column('invoice_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('remarks', sa.String(length=255), nullable=True),
        sa.Column('discount', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('tax_percent', sa.Numeric(precision=18, scale=3), nullable=False, server_default='0'),
        sa.Column('final_total', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('is_return', sa.Boolean(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoices_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index('ix_invoices_invoice_date', ['invoice_date'], unique=False)

    op.create_table('invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('return_qty', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('tax_percent', sa.Numeric(precision=18, scale=3), nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        *_timestamps(updated=False),
        sa.CheckConstraint('return_qty <= quantity', name='ck_invoice_items_return_qty'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoice_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoice_items_invoice_id'), ['invoice_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_invoice_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 4. PURCHASING
    # ==========================================================================
    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('purchase_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('remarks', sa.String(length=255), nullable=True),
        sa.Column('total_amount', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='Pending'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchases', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchases_supplier_id'), ['supplier_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchases_payment_status'), ['payment_status'], unique=False)
        batch_op.create_index('ix_purchases_purchase_date', ['purchase_date'], unique=False)

    op.create_table('purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('cost_price', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('sale_price', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=18, scale=2), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_items_purchase_id'), ['purchase_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_purchase_items_product_id'), ['product_id'], unique=False)

    # ==========================================================================
    # 5. DISCOUNTS
    # ==========================================================================
    op.create_table('items_discounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Active'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('items_discounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_items_discounts_product_id'), ['product_id'], unique=False)
        batch_op.create_index('ix_items_discounts_product_status', ['product_id', 'status'], unique=False)

    op.create_table('category_discounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Active'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('category_discounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_category_discounts_category_id'), ['category_id'], unique=False)
        batch_op.create_index('ix_category_discounts_category_status', ['category_id', 'status'], unique=False)

    op.create_table('bill_discounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('condition_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('value', sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=False),
        sa.Column('to_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Active'),
        sa.Column('description', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )


def downgrade():
    op.drop_table('bill_discounts')
    with op.batch_alter_table('category_discounts', schema=None) as batch_op:
        batch_op.drop_index('ix_category_discounts_category_status')
        batch_op.drop_index(batch_op.f('ix_category_discounts_category_id'))
    op.drop_table('category_discounts')
    with op.batch_alter_table('items_discounts', schema=None) as batch_op:
        batch_op.drop_index('ix_items_discounts_product_status')
        batch_op.drop_index(batch_op.f('ix_items_discounts_product_id'))
    op.drop_table('items_discounts')

    op.drop_table('purchase_items')
    op.drop_table('purchases')
    op.drop_table('invoice_items')
    op.drop_table('invoices')

    with op.batch_alter_table('stock_ledger', schema=None) as batch_op:
        batch_op.drop_index('ix_stock_ledger_type_txn')
        batch_op.drop_index('ix_stock_ledger_product_id_desc')
        batch_op.drop_index(batch_op.f('ix_stock_ledger_product_id'))
    op.drop_table('stock_ledger')

    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('units')
    op.drop_table('suppliers')
    op.drop_table('categories')
