"""
Upgrade legacy bundle payloads to the versioned components/rules schema

Revision ID: 0004_upgrade_legacy_payloads
Revises: 0003_create_evaluation_logs
Create Date: 2026-10-12
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text
from typing import Sequence, Union

from bundle_discounts.schemas.migrate import CURRENT_BUNDLE_VERSION, upgrade_bundle_payload

# revision identifiers, used by Alembic.
revision: str = '0004_upgrade_legacy_payloads'
down_revision: Union[str, None] = '0003_create_evaluation_logs'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

bundles = sa.table(
    'bundles',
    sa.column('id', sa.String()),
    sa.column('version', sa.Integer()),
    sa.column('status', sa.String()),
    sa.column('name', sa.Text()),
    sa.column('components', sa.JSON()),
    sa.column('rules', sa.JSON()),
    sa.column('presentation', sa.JSON()),
    sa.column('deleted_at', sa.DateTime(timezone=True)),
)


def upgrade() -> None:
    """Rewrite every bundle below the current version in place."""
    conn = op.get_bind()
    rows = conn.execute(
        sa.select(bundles).where(bundles.c.version < CURRENT_BUNDLE_VERSION)
    ).mappings().all()

    upgraded = paused = 0
    for row in rows:
        doc = dict(row)
        payload, degraded = upgrade_bundle_payload(doc)
        conn.execute(
            bundles.update()
            .where(bundles.c.id == row['id'])
            .values(
                version=CURRENT_BUNDLE_VERSION,
                status=payload['status'],
                name=payload['name'],
                components=payload['components'],
                rules=payload['rules'],
                presentation=payload['presentation'],
                deleted_at=payload['deleted_at'] or row['deleted_at'],
            )
        )
        upgraded += 1
        paused += int(degraded)

    print(f"✅ Upgraded {upgraded} bundles ({paused} paused for missing discount rules)")


def downgrade() -> None:
    # Legacy shapes are not reconstructed; only the version marker is rolled back
    op.execute(text("UPDATE bundles SET version = 1 WHERE version = :v").bindparams(v=CURRENT_BUNDLE_VERSION))
