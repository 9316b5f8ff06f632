"""Create bundle_evaluation_logs table

Revision ID: 0003_create_evaluation_logs
Revises: 0002_create_cart_coupons
Create Date: 2026-10-06

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as psql


# revision identifiers, used by Alembic.
revision = '0003_create_evaluation_logs'
down_revision = '0002_create_cart_coupons'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'bundle_evaluation_logs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('store_id', sa.String(), nullable=False),
        sa.Column('bundle_id', sa.String(), nullable=False),
        sa.Column('matched_variant_ids', psql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('cart_snapshot_hash', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()')),
    )
    op.create_index('ix_bundle_evaluation_logs_store_id', 'bundle_evaluation_logs', ['store_id'])
    op.create_index('ix_bundle_evaluation_logs_bundle_id', 'bundle_evaluation_logs', ['bundle_id'])


def downgrade():
    op.drop_index('ix_bundle_evaluation_logs_bundle_id', table_name='bundle_evaluation_logs')
    op.drop_index('ix_bundle_evaluation_logs_store_id', table_name='bundle_evaluation_logs')
    op.drop_table('bundle_evaluation_logs')
