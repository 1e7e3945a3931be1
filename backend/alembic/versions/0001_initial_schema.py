"""Initial HaircutFun schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19

Creates the profile, subscription, usage, gallery and webhook dedupe
tables.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'user_profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(320)),
        sa.Column('full_name', sa.String(200)),
        sa.Column('avatar_url', sa.Text()),
        sa.Column('has_pro_access', sa.Boolean(), server_default='false', nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_user_profiles_user_id', 'user_profiles', ['user_id'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_subscription_id', sa.String(255)),
        sa.Column('status', sa.String(20), server_default='none', nullable=False),
        sa.Column('plan_type', sa.String(20), server_default='free', nullable=False),
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_stripe_customer_id', 'subscriptions', ['stripe_customer_id'])
    op.create_index('ix_subscriptions_stripe_subscription_id', 'subscriptions', ['stripe_subscription_id'])
    op.create_index('ix_subscriptions_user_updated', 'subscriptions', ['user_id', 'updated_at'])

    op.create_table(
        'usage_tracking',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('month_year', sa.String(7), nullable=False),
        sa.Column('generations_used', sa.Integer(), server_default='0', nullable=False),
        sa.Column('plan_limit', sa.Integer(), server_default='1', nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'month_year', name='uq_usage_tracking_user_month'),
    )
    op.create_index('ix_usage_tracking_user_id', 'usage_tracking', ['user_id'])

    op.create_table(
        'generated_images',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('original_image_url', sa.Text()),
        sa.Column('haircut_style', sa.String(200), nullable=False),
        sa.Column('gender', sa.String(50)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_generated_images_user_id', 'generated_images', ['user_id'])

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    # Cleanup queries delete events older than a cutoff
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )


def downgrade() -> None:
    op.drop_table('processed_webhook_events')
    op.drop_table('generated_images')
    op.drop_table('usage_tracking')
    op.drop_table('subscriptions')
    op.drop_table('user_profiles')
