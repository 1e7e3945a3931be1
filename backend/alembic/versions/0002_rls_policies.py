"""Row level security policies

Revision ID: 0002_rls_policies
Revises: 0001_initial_schema
Create Date: 2026-10-19

Authenticated users reach only their own rows. The service role, used by
the backend and the Stripe webhook, manages everything.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0002_rls_policies'
down_revision: Union[str, None] = '0001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# table -> operations granted to the owning user
USER_POLICIES = {
    'user_profiles': ('SELECT', 'INSERT', 'UPDATE'),
    'subscriptions': ('SELECT',),
    'usage_tracking': ('SELECT',),
    'generated_images': ('SELECT', 'INSERT', 'DELETE'),
}

SERVICE_ONLY_TABLES = ('processed_webhook_events',)


def _user_policy(table: str, operation: str) -> str:
    name = f"Users can {operation.lower()} own {table}"
    if operation == 'INSERT':
        clause = "WITH CHECK (user_id = auth.uid())"
    elif operation == 'UPDATE':
        clause = "USING (user_id = auth.uid()) WITH CHECK (user_id = auth.uid())"
    else:
        clause = "USING (user_id = auth.uid())"
    return f'CREATE POLICY "{name}" ON {table} FOR {operation} TO authenticated {clause}'


def upgrade() -> None:
    for table in (*USER_POLICIES, *SERVICE_ONLY_TABLES):
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(f"""
            CREATE POLICY "Service role manages {table}"
            ON {table} FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)

    for table, operations in USER_POLICIES.items():
        for operation in operations:
            op.execute(_user_policy(table, operation))


def downgrade() -> None:
    for table, operations in USER_POLICIES.items():
        for operation in operations:
            op.execute(f'DROP POLICY IF EXISTS "Users can {operation.lower()} own {table}" ON {table}')

    for table in (*USER_POLICIES, *SERVICE_ONLY_TABLES):
        op.execute(f'DROP POLICY IF EXISTS "Service role manages {table}" ON {table}')
        op.execute(f'ALTER TABLE {table} DISABLE ROW LEVEL SECURITY')
