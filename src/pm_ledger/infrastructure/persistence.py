"""SqlPersistenceGateway — PostgreSQL implementation of PersistenceGatewayProtocol.

All queries use raw text() SQL (no ORM), one short-lived session per call.
Write calls run inside ``session_factory.begin()`` and commit on exit;
``record_trade`` writes cash, position and trade row in one transaction.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_account.domain.models import Participant, Position
from src.pm_clearing.domain.models import Trade
from src.pm_common.enums import Side
from src.pm_common.money import to_decimal
from src.pm_market.domain.models import Competitor

# ---------------------------------------------------------------------------
# SQL: competitors & price history
# ---------------------------------------------------------------------------

_LOAD_COMPETITORS_SQL = text("""
    SELECT name, color, percent, score, holes_played, updated_at
    FROM competitors
    ORDER BY percent DESC, name
""")

_SEED_COMPETITOR_SQL = text("""
    INSERT INTO competitors (name, color, percent, score, holes_played)
    VALUES (:name, :color, :percent, :score, :holes_played)
    ON CONFLICT (name) DO NOTHING
""")

_SAVE_PERCENT_SQL = text("""
    UPDATE competitors SET percent = :percent WHERE name = :name
""")

_LOAD_HISTORY_SQL = text("""
    SELECT percent
    FROM price_history
    WHERE competitor_name = :name
    ORDER BY id DESC
    LIMIT :limit
""")

_APPEND_HISTORY_SQL = text("""
    INSERT INTO price_history (competitor_name, percent) VALUES (:name, :percent)
""")

# ---------------------------------------------------------------------------
# SQL: participants & positions
# ---------------------------------------------------------------------------

_GET_OR_CREATE_PARTICIPANT_SQL = text("""
    INSERT INTO participants (participant_id, cash)
    VALUES (:participant_id, :cash)
    ON CONFLICT (participant_id) DO UPDATE
        SET updated_at = NOW()
    RETURNING participant_id, cash
""")

_SAVE_CASH_SQL = text("""
    UPDATE participants SET cash = :cash WHERE participant_id = :participant_id
""")

_POSITION_COLUMNS = """
    participant_id, competitor_name,
    yes_shares, no_shares, avg_yes_price, avg_no_price
"""

_GET_POSITION_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE participant_id = :participant_id AND competitor_name = :competitor_name
""")

_LIST_POSITIONS_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM positions
    WHERE participant_id = :participant_id
    ORDER BY competitor_name
""")

_UPSERT_POSITION_SQL = text("""
    INSERT INTO positions
        (participant_id, competitor_name,
         yes_shares, no_shares, avg_yes_price, avg_no_price)
    VALUES
        (:participant_id, :competitor_name,
         :yes_shares, :no_shares, :avg_yes_price, :avg_no_price)
    ON CONFLICT (participant_id, competitor_name) DO UPDATE
        SET yes_shares    = EXCLUDED.yes_shares,
            no_shares     = EXCLUDED.no_shares,
            avg_yes_price = EXCLUDED.avg_yes_price,
            avg_no_price  = EXCLUDED.avg_no_price
""")

# ---------------------------------------------------------------------------
# SQL: trades
# ---------------------------------------------------------------------------

_INSERT_TRADE_SQL = text("""
    INSERT INTO trades
        (trade_id, participant_id, competitor_name, side,
         shares, price, amount, executed_at)
    VALUES
        (:trade_id, :participant_id, :competitor_name, :side,
         :shares, :price, :amount, :executed_at)
    RETURNING trade_id
""")

_RECENT_TRADES_SQL = text("""
    SELECT trade_id, participant_id, competitor_name, side,
           shares, price, amount, executed_at
    FROM trades
    ORDER BY executed_at DESC, id DESC
    LIMIT :limit
""")

_TOTAL_VOLUME_SQL = text("""
    SELECT COALESCE(SUM(amount), 0) AS total_volume FROM trades
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_competitor(row: object) -> Competitor:
    return Competitor(
        name=row.name,  # type: ignore[attr-defined]
        color=row.color,  # type: ignore[attr-defined]
        percent=row.percent,  # type: ignore[attr-defined]
        score=row.score,  # type: ignore[attr-defined]
        holes_played=row.holes_played,  # type: ignore[attr-defined]
        last_updated=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_position(row: object) -> Position:
    return Position(
        participant_id=row.participant_id,  # type: ignore[attr-defined]
        competitor_name=row.competitor_name,  # type: ignore[attr-defined]
        yes_shares=to_decimal(row.yes_shares),  # type: ignore[attr-defined]
        no_shares=to_decimal(row.no_shares),  # type: ignore[attr-defined]
        avg_yes_price=to_decimal(row.avg_yes_price),  # type: ignore[attr-defined]
        avg_no_price=to_decimal(row.avg_no_price),  # type: ignore[attr-defined]
    )


def _row_to_trade(row: object) -> Trade:
    return Trade(
        trade_id=row.trade_id,  # type: ignore[attr-defined]
        participant_id=row.participant_id,  # type: ignore[attr-defined]
        competitor_name=row.competitor_name,  # type: ignore[attr-defined]
        side=Side(row.side),  # type: ignore[attr-defined]
        shares=to_decimal(row.shares),  # type: ignore[attr-defined]
        price=to_decimal(row.price),  # type: ignore[attr-defined]
        amount=to_decimal(row.amount),  # type: ignore[attr-defined]
        executed_at=row.executed_at,  # type: ignore[attr-defined]
    )


def _position_params(position: Position) -> dict[str, object]:
    return {
        "participant_id": position.participant_id,
        "competitor_name": position.competitor_name,
        "yes_shares": position.yes_shares,
        "no_shares": position.no_shares,
        "avg_yes_price": position.avg_yes_price,
        "avg_no_price": position.avg_no_price,
    }


def _trade_params(trade: Trade) -> dict[str, object]:
    return {
        "trade_id": trade.trade_id,
        "participant_id": trade.participant_id,
        "competitor_name": trade.competitor_name,
        "side": trade.side.value,
        "shares": trade.shares,
        "price": trade.price,
        "amount": trade.amount,
        "executed_at": trade.executed_at,
    }


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class SqlPersistenceGateway:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # --- competitors ---

    async def load_competitors(self) -> list[Competitor]:
        async with self._session_factory() as db:
            rows = (await db.execute(_LOAD_COMPETITORS_SQL)).fetchall()
        return [_row_to_competitor(r) for r in rows]

    async def seed_competitors(self, competitors: list[Competitor]) -> None:
        params = [
            {
                "name": c.name,
                "color": c.color,
                "percent": c.percent,
                "score": c.score,
                "holes_played": c.holes_played,
            }
            for c in competitors
        ]
        async with self._session_factory.begin() as db:
            await db.execute(_SEED_COMPETITOR_SQL, params)

    async def save_competitor_percent(self, name: str, percent: int) -> None:
        async with self._session_factory.begin() as db:
            await db.execute(_SAVE_PERCENT_SQL, {"name": name, "percent": percent})

    # --- price history ---

    async def load_price_history(self, name: str, limit: int) -> list[int]:
        async with self._session_factory() as db:
            rows = (
                await db.execute(_LOAD_HISTORY_SQL, {"name": name, "limit": limit})
            ).fetchall()
        # Query is newest first; callers want oldest first
        return [r.percent for r in reversed(rows)]

    async def append_price_history(self, name: str, percent: int) -> None:
        async with self._session_factory.begin() as db:
            await db.execute(_APPEND_HISTORY_SQL, {"name": name, "percent": percent})

    # --- participants ---

    async def load_or_create_participant(
        self, participant_id: str, initial_cash: Decimal
    ) -> Participant:
        async with self._session_factory.begin() as db:
            row = (
                await db.execute(
                    _GET_OR_CREATE_PARTICIPANT_SQL,
                    {"participant_id": participant_id, "cash": initial_cash},
                )
            ).fetchone()
        if row is None:
            raise RuntimeError("Participant upsert returned no rows")
        return Participant(participant_id=row.participant_id, cash=to_decimal(row.cash))

    async def save_participant_cash(self, participant_id: str, cash: Decimal) -> None:
        async with self._session_factory.begin() as db:
            await db.execute(_SAVE_CASH_SQL, {"participant_id": participant_id, "cash": cash})

    # --- positions ---

    async def load_position(
        self, participant_id: str, competitor_name: str
    ) -> Position | None:
        async with self._session_factory() as db:
            row = (
                await db.execute(
                    _GET_POSITION_SQL,
                    {"participant_id": participant_id, "competitor_name": competitor_name},
                )
            ).fetchone()
        return _row_to_position(row) if row else None

    async def load_positions(self, participant_id: str) -> list[Position]:
        async with self._session_factory() as db:
            rows = (
                await db.execute(_LIST_POSITIONS_SQL, {"participant_id": participant_id})
            ).fetchall()
        return [_row_to_position(r) for r in rows]

    async def save_position(self, position: Position) -> None:
        async with self._session_factory.begin() as db:
            await db.execute(_UPSERT_POSITION_SQL, _position_params(position))

    # --- trades ---

    async def append_trade(self, trade: Trade) -> str:
        async with self._session_factory.begin() as db:
            result = await db.execute(_INSERT_TRADE_SQL, _trade_params(trade))
            return result.scalar_one()

    async def record_trade(
        self, participant_id: str, cash: Decimal, position: Position, trade: Trade
    ) -> str:
        async with self._session_factory.begin() as db:
            await db.execute(_SAVE_CASH_SQL, {"participant_id": participant_id, "cash": cash})
            await db.execute(_UPSERT_POSITION_SQL, _position_params(position))
            result = await db.execute(_INSERT_TRADE_SQL, _trade_params(trade))
            return result.scalar_one()

    async def list_recent_trades(self, limit: int) -> list[Trade]:
        async with self._session_factory() as db:
            rows = (await db.execute(_RECENT_TRADES_SQL, {"limit": limit})).fetchall()
        return [_row_to_trade(r) for r in rows]

    async def total_traded_volume(self) -> Decimal:
        async with self._session_factory() as db:
            value = (await db.execute(_TOTAL_VOLUME_SQL)).scalar_one()
        return to_decimal(value)
