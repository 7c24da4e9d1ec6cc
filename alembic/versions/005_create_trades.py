"""005: create trades table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE trades (
            id              BIGSERIAL   PRIMARY KEY,
            trade_id        VARCHAR(32) NOT NULL,
            participant_id  VARCHAR(64) NOT NULL,
            competitor_name VARCHAR(64) NOT NULL,
            side            VARCHAR(3)  NOT NULL,
            shares          NUMERIC     NOT NULL,
            price           NUMERIC     NOT NULL,
            amount          NUMERIC     NOT NULL,
            executed_at     TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_trades_trade_id   UNIQUE (trade_id),
            CONSTRAINT ck_trades_side       CHECK (side IN ('YES', 'NO')),
            CONSTRAINT ck_trades_amount_gt0 CHECK (amount > 0),
            CONSTRAINT ck_trades_price      CHECK (price > 0 AND price < 1)
        );
    """)
    op.execute("CREATE INDEX idx_trades_executed_at ON trades (executed_at DESC);")
    op.execute(
        "CREATE INDEX idx_trades_participant ON trades (participant_id, executed_at DESC);"
    )
    op.execute("COMMENT ON TABLE trades IS 'Append-only fill log; rows are never updated';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trades CASCADE;")
