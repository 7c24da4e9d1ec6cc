"""PersistenceGateway Protocol — the ledger's only view of the durable store.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the SQL implementation.

The store is a persistence sink and a replay source: the ledger reads it at
cold start (and on reload), and writes behind or through every mutation.
It is never consulted for the current price of a competitor.
"""

from decimal import Decimal
from typing import Protocol

from src.pm_account.domain.models import Participant, Position
from src.pm_clearing.domain.models import Trade
from src.pm_market.domain.models import Competitor


class PersistenceGatewayProtocol(Protocol):
    # --- competitors ---
    async def load_competitors(self) -> list[Competitor]: ...

    async def seed_competitors(self, competitors: list[Competitor]) -> None: ...

    async def save_competitor_percent(self, name: str, percent: int) -> None: ...

    # --- price history ---
    async def load_price_history(self, name: str, limit: int) -> list[int]:
        """Most recent ``limit`` percents, oldest first."""
        ...

    async def append_price_history(self, name: str, percent: int) -> None: ...

    # --- participants ---
    async def load_or_create_participant(
        self, participant_id: str, initial_cash: Decimal
    ) -> Participant: ...

    async def save_participant_cash(self, participant_id: str, cash: Decimal) -> None: ...

    # --- positions ---
    async def load_position(
        self, participant_id: str, competitor_name: str
    ) -> Position | None: ...

    async def load_positions(self, participant_id: str) -> list[Position]: ...

    async def save_position(self, position: Position) -> None: ...

    # --- trades ---
    async def append_trade(self, trade: Trade) -> str: ...

    async def record_trade(
        self, participant_id: str, cash: Decimal, position: Position, trade: Trade
    ) -> str:
        """Cash, position and trade row in a single transaction."""
        ...

    async def list_recent_trades(self, limit: int) -> list[Trade]:
        """Newest first."""
        ...

    async def total_traded_volume(self) -> Decimal: ...
