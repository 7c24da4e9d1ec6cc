"""002: create competitors table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE competitors (
            name            VARCHAR(64) PRIMARY KEY,
            color           VARCHAR(16) NOT NULL,
            percent         SMALLINT    NOT NULL,
            score           INT         NOT NULL DEFAULT 0,
            holes_played    SMALLINT    NOT NULL DEFAULT 18,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_competitors_percent CHECK (percent BETWEEN 1 AND 50)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_competitors_updated_at
            BEFORE UPDATE ON competitors
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE competitors IS 'Priced roster; rows are never deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS competitors CASCADE;")
