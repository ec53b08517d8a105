"""partner ledger schema

Revision ID: a3c91e7d5b20
Revises:
Create Date: 2026-10-19 10:12:41.503118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c91e7d5b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ONE_PARTNER_CHECK = "(customer_id IS NULL) <> (supplier_id IS NULL)"


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def _soft_delete():
    return [
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(), nullable=True),
    ]


def _amount(name: str):
    return sa.Column(name, sa.Numeric(18, 3), nullable=False, server_default='0')


def upgrade() -> None:
    """Source documents (partners, orders, payments, stock returns) and the ledger tables."""
    op.create_table(
        'business_partners',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        sa.Column('code', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('contact_name', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', 'BLOCKED', name='partnerstatus'), nullable=False),
        sa.Column('is_vendor', sa.Boolean(), nullable=False),
        sa.Column('is_customer', sa.Boolean(), nullable=False),
        *_timestamps(),
        *_soft_delete(),
    )
    op.create_index('ix_business_partners_id', 'business_partners', ['id'])
    op.create_index('ix_business_partners_tenant_id', 'business_partners', ['tenant_id'])
    op.create_index('ix_business_partners_code', 'business_partners', ['code'])

    op.create_table(
        'sales_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('so_number', sa.Integer(), nullable=True),
        sa.Column('bill_no', sa.String(), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(18, 3), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'APPROVED', 'PARTIALLY_PAID', 'PAID', 'CANCELLED', name='salesorderstatus'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
        sa.UniqueConstraint('tenant_id', 'so_number', name='_tenant_so_number_uc'),
    )
    for column in ('id', 'so_number', 'customer_id', 'order_date', 'tenant_id'):
        op.create_index(f'ix_sales_orders_{column}', 'sales_orders', [column])

    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_number', sa.Integer(), nullable=True),
        sa.Column('bill_no', sa.String(), nullable=True),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=False),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('total_amount', sa.Numeric(18, 3), nullable=False),
        sa.Column('status', sa.Enum('DRAFT', 'APPROVED', 'PARTIALLY_PAID', 'PAID', 'CANCELLED', name='purchaseorderstatus'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
        sa.UniqueConstraint('tenant_id', 'po_number', name='_tenant_po_number_uc'),
    )
    for column in ('id', 'po_number', 'vendor_id', 'order_date', 'tenant_id'):
        op.create_index(f'ix_purchase_orders_{column}', 'purchase_orders', [column])

    op.create_table(
        'sales_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=False),
        sa.Column('sales_order_id', sa.Integer(), sa.ForeignKey('sales_orders.id'), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(18, 3), nullable=False),
        sa.Column('payment_mode', sa.String(), nullable=True),
        sa.Column('reference_number', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
    )
    for column in ('id', 'customer_id', 'payment_date', 'tenant_id'):
        op.create_index(f'ix_sales_payments_{column}', 'sales_payments', [column])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=False),
        sa.Column('purchase_order_id', sa.Integer(), sa.ForeignKey('purchase_orders.id'), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(18, 3), nullable=False),
        sa.Column('payment_mode', sa.String(), nullable=True),
        sa.Column('reference_number', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
    )
    for column in ('id', 'vendor_id', 'payment_date', 'tenant_id'):
        op.create_index(f'ix_payments_{column}', 'payments', [column])

    op.create_table(
        'stock_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('transaction_type', sa.Enum('IMPORT', 'EXPORT', 'TRANSFER', 'STOCKTAKE', 'RETURN', name='stocktransactiontype'), nullable=False),
        sa.Column('reference_type', sa.Enum('SALES_ORDER', 'PURCHASE_ORDER', 'PRODUCTION_ORDER', name='stockreferencetype'), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('transaction_date', sa.Date(), nullable=False),
        sa.Column('total_value', sa.Numeric(18, 3), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        *_soft_delete(),
    )
    for column in ('id', 'transaction_date', 'tenant_id'):
        op.create_index(f'ix_stock_transactions_{column}', 'stock_transactions', [column])
    op.create_index('ix_stock_transactions_reference', 'stock_transactions', ['reference_type', 'reference_id'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        sa.Column('table_name', sa.String(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
    )
    op.create_index('ix_audit_log_id', 'audit_log', ['id'])
    op.create_index('ix_audit_log_tenant_id', 'audit_log', ['tenant_id'])

    op.create_table(
        'partner_ledgers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=True),
        _amount('current_balance'),
        sa.Column('assigned_user_id', sa.String(), nullable=True),
        sa.Column('balance_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'customer_id', name='_tenant_ledger_customer_uc'),
        sa.UniqueConstraint('tenant_id', 'supplier_id', name='_tenant_ledger_supplier_uc'),
        sa.CheckConstraint(ONE_PARTNER_CHECK, name='ck_partner_ledgers_one_partner'),
    )
    for column in ('id', 'assigned_user_id', 'tenant_id'):
        op.create_index(f'ix_partner_ledgers_{column}', 'partner_ledgers', [column])

    op.create_table(
        'ledger_periods',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('business_partners.id'), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        _amount('opening_balance'),
        _amount('increase_amount'),
        _amount('payment_amount'),
        _amount('return_amount'),
        _amount('adjustment_amount'),
        _amount('closing_balance'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tenant_id', sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'customer_id', 'year', name='_tenant_period_customer_year_uc'),
        sa.UniqueConstraint('tenant_id', 'supplier_id', 'year', name='_tenant_period_supplier_year_uc'),
        sa.CheckConstraint(ONE_PARTNER_CHECK, name='ck_ledger_periods_one_partner'),
    )
    for column in ('id', 'customer_id', 'supplier_id', 'year', 'tenant_id'):
        op.create_index(f'ix_ledger_periods_{column}', 'ledger_periods', [column])


def downgrade() -> None:
    """Downgrade schema."""
    for table in ('ledger_periods', 'partner_ledgers', 'audit_log', 'stock_transactions', 'payments',
                  'sales_payments', 'purchase_orders', 'sales_orders', 'business_partners'):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_name in ('stockreferencetype', 'stocktransactiontype', 'purchaseorderstatus',
                      'salesorderstatus', 'partnerstatus'):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)

