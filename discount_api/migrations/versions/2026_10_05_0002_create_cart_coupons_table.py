"""
Create cart_coupons table with one live coupon per store and cart fingerprint

Revision ID: 0002_create_cart_coupons
Revises: 0001_create_bundles_table
Create Date: 2026-10-05
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql as psql
from typing import Sequence, Union

# revision identifiers, used by Alembic.
revision: str = '0002_create_cart_coupons'
down_revision: Union[str, None] = '0001_create_bundles_table'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'cart_coupons',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('store_merchant_key', sa.String(), nullable=False),
        sa.Column('cart_fingerprint', sa.String(64), nullable=False),
        sa.Column('code', sa.String(32), nullable=False),
        sa.Column('platform_coupon_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='issued'),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_type', sa.String(16), nullable=False, server_default='fixed'),
        sa.Column('discount_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('include_product_ids', psql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()')),
        sa.Column('redeemed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_id', sa.String(), nullable=True),
    )
    op.create_unique_constraint('uq_cart_coupon_code', 'cart_coupons', ['code'])
    op.create_index('ix_cart_coupons_store_merchant_key', 'cart_coupons', ['store_merchant_key'])
    op.create_index('ix_cart_coupons_cart_fingerprint', 'cart_coupons', ['cart_fingerprint'])
    op.create_index('ix_cart_coupons_status', 'cart_coupons', ['status'])
    op.create_index('ix_cart_coupons_expires_at', 'cart_coupons', ['expires_at'])
    op.create_index('ix_cart_coupons_store_status', 'cart_coupons', ['store_merchant_key', 'status'])

    # Concurrent issuers for the same cart collide here; the loser reuses the winner
    op.create_index(
        'uq_cart_coupon_issued_fingerprint',
        'cart_coupons',
        ['store_merchant_key', 'cart_fingerprint'],
        unique=True,
        postgresql_where=sa.text("status = 'issued'"),
    )


def downgrade() -> None:
    op.drop_index('uq_cart_coupon_issued_fingerprint', table_name='cart_coupons')
    op.drop_index('ix_cart_coupons_store_status', table_name='cart_coupons')
    op.drop_index('ix_cart_coupons_expires_at', table_name='cart_coupons')
    op.drop_index('ix_cart_coupons_status', table_name='cart_coupons')
    op.drop_index('ix_cart_coupons_cart_fingerprint', table_name='cart_coupons')
    op.drop_index('ix_cart_coupons_store_merchant_key', table_name='cart_coupons')
    op.drop_constraint('uq_cart_coupon_code', 'cart_coupons', type_='unique')
    op.drop_table('cart_coupons')
