"""003: create participants table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # NUMERIC without scale: trade amounts are arbitrary-precision decimals
    op.execute("""
        CREATE TABLE participants (
            participant_id  VARCHAR(64) PRIMARY KEY,
            cash            NUMERIC     NOT NULL,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_participants_cash_gte_0 CHECK (cash >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_participants_updated_at
            BEFORE UPDATE ON participants
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS participants CASCADE;")
