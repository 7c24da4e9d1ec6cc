"""MarketLedger — authoritative in-memory state for the whole market.

Owns competitors, participants and positions. Every mutation goes through
``tick`` or ``execute_trade``; the durable store is written through (or
behind) but never read for current state once a row is cached.

Locking discipline:
  - one asyncio.Lock per participant serialises trade read-modify-write of
    cash and position (no double spend)
  - ``_market_lock`` guards competitor prices; the tick's price step and a
    trade's quote step both run under it without awaiting, so a trade sees
    either the pre-tick or the post-tick roster
  - ``_tick_lock`` keeps ticks from overlapping; a tick that finds it held
    is skipped
  - ``_gate`` lets trades and portfolio reads run concurrently but keeps
    them out while ``reload`` swaps the caches
Reads never await between reading cash and reading positions.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import TypeVar

from src.pm_account.domain.models import Holding, Participant, Portfolio, Position
from src.pm_clearing.domain.models import Trade, TradeOutcome
from src.pm_common.datetime_utils import utc_now
from src.pm_common.enums import Side
from src.pm_common.errors import (
    AppError,
    CompetitorNotFoundError,
    InsufficientFundsError,
    InvalidSideError,
    MalformedRequestError,
    PersistenceUnavailableError,
)
from src.pm_common.id_generator import generate_trade_id
from src.pm_common.money import to_decimal
from src.pm_ledger.domain.events import BroadcastSinkProtocol, MarketSnapshot, TradeExecuted
from src.pm_ledger.domain.gateway import PersistenceGatewayProtocol
from src.pm_market.domain.models import Competitor, clamp_percent, default_roster
from src.pm_market.domain.simulator import PriceSimulator

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_side(side: object) -> Side:
    if isinstance(side, Side):
        return side
    if isinstance(side, str):
        try:
            return Side(side.strip().upper())
        except ValueError:
            pass
    raise InvalidSideError(str(side))


def parse_amount(amount: object) -> Decimal:
    try:
        value = to_decimal(amount)
    except ValueError as exc:
        raise MalformedRequestError(f"amount {amount!r} is not a number") from exc
    if not value.is_finite() or value <= 0:
        raise MalformedRequestError("amount must be a positive number")
    return value


class MarketLedger:
    def __init__(
        self,
        gateway: PersistenceGatewayProtocol,
        simulator: PriceSimulator,
        sink: BroadcastSinkProtocol,
        *,
        initial_cash: Decimal = Decimal("1000.00"),
        persistence_timeout: float = 5.0,
        write_through: bool = True,
    ) -> None:
        self._gateway = gateway
        self._simulator = simulator
        self._sink = sink
        self._initial_cash = initial_cash
        self._persistence_timeout = persistence_timeout
        self._write_through = write_through

        self._competitors: list[Competitor] = []       # sorted by percent desc
        self._by_name: dict[str, Competitor] = {}
        self._participants: dict[str, Participant] = {}
        self._positions: dict[str, dict[str, Position]] = defaultdict(dict)
        self._positions_loaded: set[str] = set()       # participants with all rows cached

        self._participant_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._market_lock = asyncio.Lock()
        self._tick_lock = asyncio.Lock()
        self._gate = asyncio.Condition()
        self._in_flight_count = 0
        self._reloading = False

        self._pending_writes: dict[str, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[None]] = set()
        self.last_update: datetime | None = None

    # ------------------------------------------------------------------
    # Startup / recovery
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Hydrate from the store. Any store failure aborts startup."""
        competitors = await self._store(self._gateway.load_competitors(), "load competitors")
        if not competitors:
            competitors = default_roster()
            await self._store(self._gateway.seed_competitors(competitors), "seed competitors")
            logger.info("Seeded default roster (%d competitors)", len(competitors))
        self._install_roster(competitors)
        await self._hydrate_history(self._competitors)
        self.last_update = utc_now()
        logger.info("Market initialized with %d competitors", len(self._competitors))

    async def reload(self) -> None:
        """Re-sync with the durable store after a crash or a store outage.

        Competitor prices are re-read; participant and position caches are
        dropped and lazily reloaded on next access. Waits for in-flight trades
        and portfolio reads and for pending write-behind tasks first, so no
        stale cash object can be cached again after the swap.
        """
        async with self._gate:
            await self._gate.wait_for(lambda: not self._reloading)
            self._reloading = True
            await self._gate.wait_for(lambda: self._in_flight_count == 0)
        try:
            await self.drain()
            competitors = await self._store(
                self._gateway.load_competitors(), "load competitors"
            )
            async with self._market_lock:
                if competitors:
                    self._install_roster(competitors)
                self._participants.clear()
                self._positions.clear()
                self._positions_loaded.clear()
            missing = [c for c in self._competitors if not self._simulator.history(c.name)]
            await self._hydrate_history(missing)
        finally:
            async with self._gate:
                self._reloading = False
                self._gate.notify_all()
        logger.info("Ledger reloaded from store (%d competitors)", len(self._competitors))

    @asynccontextmanager
    async def _in_flight(self) -> AsyncIterator[None]:
        async with self._gate:
            await self._gate.wait_for(lambda: not self._reloading)
            self._in_flight_count += 1
        try:
            yield
        finally:
            async with self._gate:
                self._in_flight_count -= 1
                self._gate.notify_all()

    def _install_roster(self, competitors: Iterable[Competitor]) -> None:
        by_name: dict[str, Competitor] = {}
        for c in competitors:
            if c.name in by_name:
                raise ValueError(f"Duplicate competitor name: {c.name}")
            c.percent = clamp_percent(c.percent)
            by_name[c.name] = c
        self._by_name = by_name
        self._competitors = sorted(by_name.values(), key=lambda c: c.percent, reverse=True)

    async def _hydrate_history(self, competitors: list[Competitor]) -> None:
        length = self._simulator.history_length
        for c in competitors:
            percents = await self._store(
                self._gateway.load_price_history(c.name, length), f"load history for {c.name}"
            )
            if len(percents) < length:
                # Short history: the whole window is synthetic, never a blend
                window = self._simulator.backfill_history(c.percent, length)
            else:
                window = [p / 100 for p in percents[-length:]]
            self._simulator.reset_history(c.name, window)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def competitors(self) -> list[Competitor]:
        return [c.copy() for c in self._competitors]

    def snapshot(self) -> MarketSnapshot:
        return MarketSnapshot(
            competitors=tuple(c.copy() for c in self._competitors),
            timestamp=utc_now(),
        )

    def price_history(self, competitor_name: str) -> list[float]:
        if competitor_name not in self._by_name:
            raise CompetitorNotFoundError(competitor_name)
        return self._simulator.history(competitor_name)

    async def get_portfolio(self, participant_id: str) -> Portfolio:
        async with self._in_flight():
            participant = await self._ensure_participant(participant_id)
            await self._ensure_positions(participant_id)
            positions = dict(self._positions.get(participant_id, {}))
            cash = participant.cash

        # Cash and positions were read together with no await in between
        holdings: list[Holding] = []
        for competitor in self._competitors:
            position = positions.get(competitor.name)
            if position is None or position.is_empty:
                continue
            value = (
                position.yes_shares * competitor.yes_price
                + position.no_shares * competitor.no_price
            )
            holdings.append(Holding(position=position, current_value=value))
        return Portfolio(participant_id=participant_id, cash=cash, holdings=holdings)

    async def recent_trades(self, limit: int = 20) -> list[Trade]:
        return await self._store(self._gateway.list_recent_trades(limit), "list trades")

    async def total_volume(self) -> Decimal:
        return await self._store(self._gateway.total_traded_volume(), "total volume")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> MarketSnapshot | None:
        """Advance every competitor one step. Returns None when skipped."""
        if self._tick_lock.locked():
            logger.info("Tick skipped: previous tick still committing")
            return None
        async with self._tick_lock:
            async with self._market_lock:
                now = utc_now()
                for c in self._competitors:
                    c.percent = self._simulator.step_percent(c.percent)
                    c.last_updated = now
                    self._simulator.push(c.name, c.percent / 100)
                self._competitors.sort(key=lambda c: c.percent, reverse=True)
                self.last_update = now
                snapshot = MarketSnapshot(
                    competitors=tuple(c.copy() for c in self._competitors), timestamp=now
                )

            for c in snapshot.competitors:
                try:
                    await self._store(
                        self._gateway.save_competitor_percent(c.name, c.percent), "save percent"
                    )
                    await self._store(
                        self._gateway.append_price_history(c.name, c.percent), "append history"
                    )
                except PersistenceUnavailableError as exc:
                    logger.warning("Tick persistence failed for %s: %s", c.name, exc.message)
            return snapshot

    # ------------------------------------------------------------------
    # Trade
    # ------------------------------------------------------------------

    async def execute_trade(
        self,
        participant_id: str,
        competitor_name: str,
        side: object,
        amount: object,
    ) -> TradeOutcome:
        if not participant_id:
            raise MalformedRequestError("participant_id is required")
        value = parse_amount(amount)
        trade_side = parse_side(side)
        if competitor_name not in self._by_name:
            raise CompetitorNotFoundError(competitor_name)

        async with self._in_flight(), self._participant_locks[participant_id]:
            participant = await self._ensure_participant(participant_id)
            position = await self._ensure_position(participant_id, competitor_name)

            async with self._market_lock:
                competitor = self._by_name.get(competitor_name)
                if competitor is None:
                    raise CompetitorNotFoundError(competitor_name)
                price = competitor.quote(trade_side)

            if participant.cash < value:
                raise InsufficientFundsError(value, participant.cash)

            shares = value / price
            new_cash = participant.cash - value
            new_position = position.apply_purchase(trade_side, shares, price)
            trade = Trade(
                trade_id=generate_trade_id(),
                participant_id=participant_id,
                competitor_name=competitor_name,
                side=trade_side,
                shares=shares,
                price=price,
                amount=value,
                executed_at=utc_now(),
            )

            if self._write_through:
                await self._store(
                    self._gateway.record_trade(participant_id, new_cash, new_position, trade),
                    "record trade",
                )

            # Commit: no awaits between the two assignments
            participant.cash = new_cash
            self._positions[participant_id][competitor_name] = new_position

            if not self._write_through:
                self._write_behind(new_cash, new_position, trade)

        logger.info(
            "Trade %s: %s bought %s %s @ %s for %s",
            trade.trade_id, participant_id, trade_side.value, competitor_name, price, value,
        )
        self._sink.publish(
            TradeExecuted(
                trade_id=trade.trade_id,
                participant_id=participant_id,
                competitor_name=competitor_name,
                side=trade_side,
                amount=value,
                shares=shares,
                timestamp=trade.executed_at,
            )
        )
        self._sink.publish(self.snapshot())
        return TradeOutcome(
            trade=trade,
            new_cash=new_cash,
            total_yes_shares=new_position.yes_shares,
            total_no_shares=new_position.no_shares,
        )

    # ------------------------------------------------------------------
    # Lazy hydration of participant state
    # ------------------------------------------------------------------

    async def _ensure_participant(self, participant_id: str) -> Participant:
        participant = self._participants.get(participant_id)
        if participant is not None:
            return participant
        loaded = await self._store(
            self._gateway.load_or_create_participant(participant_id, self._initial_cash),
            "load participant",
        )
        # Another coroutine may have cached it while we were awaiting
        return self._participants.setdefault(participant_id, loaded)

    async def _ensure_position(self, participant_id: str, competitor_name: str) -> Position:
        cached = self._positions[participant_id].get(competitor_name)
        if cached is not None:
            return cached
        stored: Position | None = None
        if participant_id not in self._positions_loaded:
            stored = await self._store(
                self._gateway.load_position(participant_id, competitor_name), "load position"
            )
        position = stored or Position(participant_id=participant_id, competitor_name=competitor_name)
        return self._positions[participant_id].setdefault(competitor_name, position)

    async def _ensure_positions(self, participant_id: str) -> None:
        if participant_id in self._positions_loaded:
            return
        rows = await self._store(self._gateway.load_positions(participant_id), "load positions")
        cached = self._positions[participant_id]
        for row in rows:
            cached.setdefault(row.competitor_name, row)
        self._positions_loaded.add(participant_id)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    async def _store(self, call: Awaitable[T], what: str) -> T:
        """Await a gateway call with a deadline; map failures to 9003."""
        try:
            return await asyncio.wait_for(call, self._persistence_timeout)
        except AppError:
            raise
        except Exception as exc:
            raise PersistenceUnavailableError(f"{what} ({type(exc).__name__})") from exc

    def _write_behind(self, cash: Decimal, position: Position, trade: Trade) -> None:
        # Chain per participant so cash rows land in trade order
        previous = self._pending_writes.get(trade.participant_id)
        task = asyncio.create_task(self._persist_trade(previous, cash, position, trade))
        self._pending_writes[trade.participant_id] = task
        self._background.add(task)
        task.add_done_callback(lambda t: self._forget_write(trade.participant_id, t))

    def _forget_write(self, participant_id: str, task: asyncio.Task[None]) -> None:
        self._background.discard(task)
        if self._pending_writes.get(participant_id) is task:
            del self._pending_writes[participant_id]

    async def _persist_trade(
        self,
        previous: asyncio.Task[None] | None,
        cash: Decimal,
        position: Position,
        trade: Trade,
    ) -> None:
        if previous is not None:
            await asyncio.wait([previous])
        try:
            await self._store(
                self._gateway.save_participant_cash(trade.participant_id, cash), "save cash"
            )
            await self._store(self._gateway.save_position(position), "save position")
            await self._store(self._gateway.append_trade(trade), "append trade")
        except PersistenceUnavailableError as exc:
            logger.warning(
                "Write-behind failed for trade %s; store is behind memory: %s",
                trade.trade_id, exc.message,
            )

    async def drain(self) -> None:
        """Wait for outstanding write-behind tasks (shutdown)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
