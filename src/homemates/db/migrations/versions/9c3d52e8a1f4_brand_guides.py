"""brand_guides

Revision ID: 9c3d52e8a1f4
Revises: 4b1f0e9a7c21
Create Date: 2026-10-19 15:40:07.552918

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "9c3d52e8a1f4"
down_revision: str | Sequence[str] | None = "4b1f0e9a7c21"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "brand_guides",
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("tone", sa.String(20), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("keywords", sa.Text),
        sa.Column("script_examples", sa.Text),
        # Stored assets
        sa.Column("logo_path", sa.String(1000)),
        sa.Column("logo_content_type", sa.String(100)),
        sa.Column("voice_note_path", sa.String(1000)),
        sa.Column("voice_note_content_type", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("brand_guides")
