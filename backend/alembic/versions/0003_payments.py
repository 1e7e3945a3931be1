"""One-time unlock payment ledger

Revision ID: 0003_payments
Revises: 0002_rls_policies
Create Date: 2026-10-19

Records every unlock payment intent, succeeded or failed. Users can read
their own payments; only the service role writes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0003_payments'
down_revision: Union[str, None] = '0002_rls_policies'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(255), nullable=False),
        sa.Column('amount', sa.Integer(), server_default='0', nullable=False),
        sa.Column('currency', sa.String(10), server_default='usd', nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('stripe_payment_intent_id', name='uq_payments_stripe_payment_intent_id'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])

    op.execute('ALTER TABLE payments ENABLE ROW LEVEL SECURITY')
    op.execute("""
        CREATE POLICY "Service role manages payments"
        ON payments FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)
    op.execute(
        'CREATE POLICY "Users can select own payments" ON payments '
        'FOR SELECT TO authenticated USING (user_id = auth.uid())'
    )


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Users can select own payments" ON payments')
    op.execute('DROP POLICY IF EXISTS "Service role manages payments" ON payments')
    op.drop_table('payments')
