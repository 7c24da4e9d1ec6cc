"""004: create positions table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                  BIGSERIAL   PRIMARY KEY,
            participant_id      VARCHAR(64) NOT NULL,
            competitor_name     VARCHAR(64) NOT NULL REFERENCES competitors (name),
            yes_shares          NUMERIC     NOT NULL DEFAULT 0,
            no_shares           NUMERIC     NOT NULL DEFAULT 0,
            avg_yes_price       NUMERIC     NOT NULL DEFAULT 0,
            avg_no_price        NUMERIC     NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_positions_participant_competitor
                UNIQUE (participant_id, competitor_name),
            CONSTRAINT ck_positions_yes_gte_0 CHECK (yes_shares >= 0),
            CONSTRAINT ck_positions_no_gte_0  CHECK (no_shares >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_positions_participant ON positions (participant_id);")
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
