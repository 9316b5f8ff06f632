"""
Create bundles table (versioned component/rule payloads)
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as psql
from typing import Sequence, Union

# revision identifiers, used by Alembic.
revision: str = '0001_create_bundles_table'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'bundles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('store_id', sa.String(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        sa.Column('kind', sa.String(32), nullable=True),
        sa.Column('name', sa.Text(), nullable=False, server_default=''),
        sa.Column('components', psql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('rules', psql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('presentation', psql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column('trigger_product_id', sa.String(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_bundles_store_id', 'bundles', ['store_id'])
    op.create_index('ix_bundles_status', 'bundles', ['status'])
    op.create_index('ix_bundles_deleted_at', 'bundles', ['deleted_at'])
    op.create_index('ix_bundles_store_status_deleted', 'bundles', ['store_id', 'status', 'deleted_at'])
    op.create_index('ix_bundles_store_trigger', 'bundles', ['store_id', 'trigger_product_id', 'status'])


def downgrade() -> None:
    op.drop_index('ix_bundles_store_trigger', table_name='bundles')
    op.drop_index('ix_bundles_store_status_deleted', table_name='bundles')
    op.drop_index('ix_bundles_deleted_at', table_name='bundles')
    op.drop_index('ix_bundles_status', table_name='bundles')
    op.drop_index('ix_bundles_store_id', table_name='bundles')
    op.drop_table('bundles')
