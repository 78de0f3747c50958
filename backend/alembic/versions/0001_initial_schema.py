"""Initial schema: users, subscriptions, usage counters, product drafts

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _usage_counters():
    return [
        sa.Column('period_ym', sa.String(7), nullable=False),
        sa.Column('photos_processed', sa.Integer, nullable=False, server_default='0'),
        sa.Column('magic_fill_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('export_count', sa.Integer, nullable=False, server_default='0'),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('polar_customer_id', sa.String(255)),
        sa.Column('lemon_squeezy_customer_id', sa.String(255)),
        sa.Column('paddle_customer_id', sa.String(255)),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('provider', sa.String(32), nullable=False),
        sa.Column('provider_id', sa.String(255)),
        sa.Column('customer_id', sa.String(255)),
        sa.Column('plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        sa.Column('cancel_at_period_end', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('metadata', sa.JSON, nullable=False, server_default='{}'),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'provider', name='uq_subscriptions_user_provider'),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_provider_id', 'subscriptions', ['provider_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'usage_stats',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        *_usage_counters(),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'period_ym', name='uq_usage_stats_user_period'),
    )
    op.create_index('ix_usage_stats_user_id', 'usage_stats', ['user_id'])

    op.create_table(
        'ip_quotas',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('ip_address', sa.String(64), nullable=False),
        *_usage_counters(),
        *_timestamps(),
        sa.UniqueConstraint('ip_address', 'period_ym', name='uq_ip_quotas_ip_period'),
    )
    op.create_index('ix_ip_quotas_ip_address', 'ip_quotas', ['ip_address'])

    op.create_table(
        'product_drafts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('brand', sa.String(255)),
        sa.Column('type', sa.String(255)),
        sa.Column('model', sa.String(255)),
        sa.Column('key_spec', sa.String(500)),
        sa.Column('title_ru', sa.String(500)),
        sa.Column('title_kz', sa.String(500)),
        sa.Column('desc_ru', sa.Text),
        sa.Column('desc_kz', sa.Text),
        sa.Column('category', sa.String(100)),
        sa.Column('gtin', sa.String(14)),
        sa.Column('price', sa.Float),
        sa.Column('quantity', sa.Integer),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('attributes', sa.JSON),
        sa.Column('variants', sa.JSON),
        *_timestamps(),
    )
    op.create_index('ix_product_drafts_user_id', 'product_drafts', ['user_id'])
    op.create_index('ix_product_drafts_status', 'product_drafts', ['status'])


def downgrade() -> None:
    op.drop_table('product_drafts')
    op.drop_table('ip_quotas')
    op.drop_table('usage_stats')
    op.drop_table('subscriptions')
    op.drop_table('users')
