"""Initial warehouse schema: locations, pallets, activity log, billing

Revision ID: 20260301_initial
Revises:
Create Date: 2026-03-01

This migration adds:
1. Location grid (aisle x rack x level, plus ad-hoc slots)
2. Pallets (ledger of ACTIVE / REMOVED records, optimistic locking)
3. Activity log (append-only; billing replays it in (timestamp, id) order)
4. CustomerRate (one pricing row per customer)
5. Invoice (rate and total snapshot with DRAFT / SENT / PAID status)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260301_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. LOCATIONS TABLE
    # ==========================================================================
    op.create_table('locations',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('aisle', sa.String(length=8), nullable=True),
        sa.Column('rack', sa.Integer(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('is_occupied', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('locations', schema=None) as batch_op:
        batch_op.create_index('ix_locations_grid', ['aisle', 'rack', 'level'], unique=False)

    # ==========================================================================
    # 2. PALLETS TABLE
    # ==========================================================================
    op.create_table('pallets',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('product_id', sa.String(length=120), nullable=False),
        sa.Column('pallet_quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('product_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_units', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('location', sa.String(length=32), nullable=False),
        sa.Column('parts', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVE'),
        sa.Column('scanned_by', sa.String(length=120), nullable=True),
        sa.Column('date_added', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('date_removed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['location'], ['locations.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('pallets', schema=None) as batch_op:
        batch_op.create_index('ix_pallets_status_location', ['status', 'location'], unique=False)
        batch_op.create_index('ix_pallets_status_product', ['status', 'product_id'], unique=False)
        batch_op.create_index('ix_pallets_customer_status', ['customer_name', 'status'], unique=False)

    # ==========================================================================
    # 3. ACTIVITY LOG TABLE
    # ==========================================================================
    op.create_table('activity_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pallet_id', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('product_id', sa.String(length=120), nullable=False),
        sa.Column('location', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('quantity_changed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_before', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_after', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('scanned_by', sa.String(length=120), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('activity_log', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_activity_log_pallet_id'), ['pallet_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_activity_log_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_activity_log_timestamp'), ['timestamp'], unique=False)
        batch_op.create_index('ix_activity_customer_timestamp', ['customer_name', 'timestamp'], unique=False)

    # ==========================================================================
    # 4. CUSTOMER RATES TABLE
    # ==========================================================================
    op.create_table('customer_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('rate_per_pallet_week', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('handling_fee_flat', sa.Numeric(precision=12, scale=4), nullable=False, server_default='0'),
        sa.Column('handling_fee_per_pallet', sa.Numeric(precision=12, scale=4), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='USD'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_name', name='uq_customer_rates_customer'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 5. INVOICES TABLE
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('days_in_range', sa.Integer(), nullable=False),
        sa.Column('pallet_days', sa.Integer(), nullable=False),
        sa.Column('pallet_weeks', sa.Numeric(precision=14, scale=6), nullable=False),
        sa.Column('handled_pallets', sa.Integer(), nullable=False),
        sa.Column('rate_per_pallet_week', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('handling_fee_flat', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('handling_fee_per_pallet', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('base_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('handling_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_invoices_status'), ['status'], unique=False)
        batch_op.create_index('ix_invoices_customer_period', ['customer_name', 'start_date', 'end_date'], unique=False)


def downgrade():
    with op.batch_alter_table('invoices', schema=None) as batch_op:
        batch_op.drop_index('ix_invoices_customer_period')
        batch_op.drop_index(batch_op.f('ix_invoices_status'))
    op.drop_table('invoices')

    op.drop_table('customer_rates')

    with op.batch_alter_table('activity_log', schema=None) as batch_op:
        batch_op.drop_index('ix_activity_customer_timestamp')
        batch_op.drop_index(batch_op.f('ix_activity_log_timestamp'))
        batch_op.drop_index(batch_op.f('ix_activity_log_action'))
        batch_op.drop_index(batch_op.f('ix_activity_log_pallet_id'))
    op.drop_table('activity_log')

    with op.batch_alter_table('pallets', schema=None) as batch_op:
        batch_op.drop_index('ix_pallets_customer_status')
        batch_op.drop_index('ix_pallets_status_product')
        batch_op.drop_index('ix_pallets_status_location')
    op.drop_table('pallets')

    with op.batch_alter_table('locations', schema=None) as batch_op:
        batch_op.drop_index('ix_locations_grid')
    op.drop_table('locations')
