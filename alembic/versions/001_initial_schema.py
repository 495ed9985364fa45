"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

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
    # Users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Products table (catalog, cents)
    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('format', sa.String(), nullable=False),
        sa.Column('image_url', sa.String(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='false'),
    )
    op.create_index('ix_products_category', 'products', ['category'])

    # Funnels table
    op.create_table(
        'funnels',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('entry_product_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['entry_product_id'], ['products.id'], name='fk_funnels_entry_product_id'),
    )
    op.create_index('ix_funnels_entry_product_id', 'funnels', ['entry_product_id'])

    # Funnel steps table
    op.create_table(
        'funnel_steps',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('funnel_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('step_type', sa.Enum('upsell', 'downsell', 'one_time_offer', 'order_bump', name='steptype'), nullable=False),
        sa.Column('offer_product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_override', sa.Integer(), nullable=True),
        sa.Column('headline', sa.String(), nullable=True),
        sa.Column('subheadline', sa.String(), nullable=True),
        sa.Column('cta_text', sa.String(), nullable=True),
        sa.Column('decline_text', sa.String(), nullable=True),
        sa.Column('timer_seconds', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['funnel_id'], ['funnels.id'], name='fk_funnel_steps_funnel_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['offer_product_id'], ['products.id'], name='fk_funnel_steps_offer_product_id'),
    )
    op.create_index('ix_funnel_steps_funnel_id', 'funnel_steps', ['funnel_id'])

    # Order bumps table
    op.create_table(
        'order_bumps',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('bump_product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('bump_price', sa.Integer(), nullable=False),
        sa.Column('headline', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_order_bumps_product_id'),
        sa.ForeignKeyConstraint(['bump_product_id'], ['products.id'], name='fk_order_bumps_bump_product_id'),
    )
    op.create_index('ix_order_bumps_product_id', 'order_bumps', ['product_id'])

    # Purchases table; funnel_session_id FK is added after funnel_sessions exists
    op.create_table(
        'purchases',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('stripe_payment_id', sa.String(), nullable=True),
        sa.Column('parent_purchase_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('funnel_session_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('funnel_step_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('purchased_at', sa.Integer(), nullable=False, server_default=sa.text('extract(epoch from now())::integer')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_purchases_user_id'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_purchases_product_id'),
        sa.ForeignKeyConstraint(['parent_purchase_id'], ['purchases.id'], name='fk_purchases_parent_purchase_id'),
        sa.ForeignKeyConstraint(['funnel_step_id'], ['funnel_steps.id'], name='fk_purchases_funnel_step_id', ondelete='SET NULL'),
        sa.UniqueConstraint('stripe_payment_id', name='uq_purchases_stripe_payment_id'),
        sa.UniqueConstraint('funnel_session_id', 'funnel_step_id', name='uq_purchases_session_step'),
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_product_id', 'purchases', ['product_id'])
    op.create_index('ix_purchases_parent_purchase_id', 'purchases', ['parent_purchase_id'])
    op.create_index('ix_purchases_funnel_session_id', 'purchases', ['funnel_session_id'])

    # Funnel sessions table
    op.create_table(
        'funnel_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('funnel_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('entry_purchase_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('current_step_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('accepted_steps', postgresql.JSON(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('declined_steps', postgresql.JSON(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('total_revenue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.Integer(), nullable=False, server_default=sa.text('extract(epoch from now())::integer')),
        sa.Column('completed_at', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_funnel_sessions_user_id'),
        sa.ForeignKeyConstraint(['funnel_id'], ['funnels.id'], name='fk_funnel_sessions_funnel_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['entry_purchase_id'], ['purchases.id'], name='fk_funnel_sessions_entry_purchase_id'),
        sa.UniqueConstraint('entry_purchase_id', 'funnel_id', name='uq_funnel_sessions_entry_purchase_funnel'),
    )
    op.create_index('ix_funnel_sessions_user_id', 'funnel_sessions', ['user_id'])
    op.create_index('ix_funnel_sessions_funnel_id', 'funnel_sessions', ['funnel_id'])
    op.create_index('ix_funnel_sessions_status', 'funnel_sessions', ['status'])

    op.create_foreign_key(
        'fk_purchases_funnel_session_id', 'purchases', 'funnel_sessions',
        ['funnel_session_id'], ['id'], ondelete='SET NULL'
    )

    # Downloads table (one row per fetch of a purchased asset)
    op.create_table(
        'downloads',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('purchase_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('downloaded_at', sa.Integer(), nullable=False, server_default=sa.text('extract(epoch from now())::integer')),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], name='fk_downloads_purchase_id', ondelete='CASCADE'),
    )
    op.create_index('ix_downloads_purchase_id', 'downloads', ['purchase_id'])

    # Audit logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('event_type', sa.Enum('UNAUTHORIZED_ACCESS', 'RATE_LIMIT_EXCEEDED', 'PAYMENT_NOT_CONFIRMED', name='auditeventtype'), nullable=False),
        sa.Column('resource_type', sa.String(), nullable=True),
        sa.Column('resource_id', sa.String(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_audit_logs_user_id', ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_event_type', 'audit_logs', ['event_type'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_resource', 'audit_logs', ['resource_type', 'resource_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('downloads')
    op.drop_constraint('fk_purchases_funnel_session_id', 'purchases', type_='foreignkey')
    op.drop_table('funnel_sessions')
    op.drop_table('purchases')
    op.drop_table('order_bumps')
    op.drop_table('funnel_steps')
    op.drop_table('funnels')
    op.drop_table('products')
    op.drop_table('users')
    sa.Enum(name='auditeventtype').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='steptype').drop(op.get_bind(), checkfirst=True)
