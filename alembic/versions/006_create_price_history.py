"""006: create price_history table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE price_history (
            id              BIGSERIAL   PRIMARY KEY,
            competitor_name VARCHAR(64) NOT NULL,
            percent         SMALLINT    NOT NULL,
            recorded_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_price_history_percent CHECK (percent BETWEEN 1 AND 50)
        );
    """)
    op.execute(
        "CREATE INDEX idx_price_history_competitor ON price_history (competitor_name, id DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_history CASCADE;")
