"""Unit tests for MarketLedger using the in-memory gateway."""

import asyncio
import logging
from decimal import Decimal

import pytest

from src.pm_common.enums import Side
from src.pm_common.errors import (
    CompetitorNotFoundError,
    InsufficientFundsError,
    InvalidSideError,
    MalformedRequestError,
    PersistenceUnavailableError,
)
from src.pm_ledger.domain.events import MarketSnapshot, TradeExecuted
from src.pm_ledger.engine.ledger import MarketLedger, parse_amount, parse_side
from src.pm_market.domain.models import Competitor
from tests.fakes import InMemoryGateway, make_ledger, make_roster


def _set_percent(ledger: MarketLedger, name: str, percent: int) -> None:
    ledger._by_name[name].percent = percent


def _hold(gateway: InMemoryGateway, method: str) -> tuple[asyncio.Event, asyncio.Event]:
    """Make one gateway method block until released. Returns (entered, release)."""
    entered = asyncio.Event()
    release = asyncio.Event()
    original = getattr(gateway, method)

    async def held(*args, **kwargs):
        entered.set()
        await release.wait()
        return await original(*args, **kwargs)

    setattr(gateway, method, held)
    return entered, release


class TestParsing:
    @pytest.mark.parametrize("raw", ["YES", "yes", " No ", Side.NO])
    def test_valid_sides(self, raw) -> None:
        assert parse_side(raw) in (Side.YES, Side.NO)

    @pytest.mark.parametrize("raw", ["MAYBE", "", None, 1])
    def test_invalid_sides(self, raw) -> None:
        with pytest.raises(InvalidSideError) as exc_info:
            parse_side(raw)
        assert exc_info.value.code == 4001

    def test_amount_from_float_has_no_binary_noise(self) -> None:
        assert parse_amount(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("raw", [0, -5, "abc", "NaN", "Infinity", None])
    def test_invalid_amounts(self, raw) -> None:
        with pytest.raises(MalformedRequestError) as exc_info:
            parse_amount(raw)
        assert exc_info.value.code == 4002


class TestInitialize:
    async def test_seeds_default_roster_when_store_empty(self) -> None:
        gateway = InMemoryGateway()
        ledger = make_ledger(gateway)
        await ledger.initialize()

        names = [c.name for c in ledger.competitors()]
        assert len(names) == 8
        assert names[0] == "Thomas Reynolds"
        assert gateway.seed_calls == 1
        assert ledger.last_update is not None

    async def test_existing_roster_is_not_reseeded(self, gateway, ledger) -> None:
        assert gateway.seed_calls == 0
        assert [c.name for c in ledger.competitors()] == ["Alpha", "Bravo", "Charlie"]

    async def test_roster_sorted_by_percent_desc(self) -> None:
        ledger = make_ledger(InMemoryGateway(make_roster(5, 30, 12)))
        await ledger.initialize()
        assert [c.percent for c in ledger.competitors()] == [30, 12, 5]

    async def test_out_of_range_percents_are_clamped(self) -> None:
        ledger = make_ledger(InMemoryGateway(make_roster(70, 0)))
        await ledger.initialize()
        assert sorted(c.percent for c in ledger.competitors()) == [1, 50]

    async def test_short_history_is_fully_backfilled(self, gateway) -> None:
        gateway.history["Alpha"] = [40, 41, 39]
        ledger = make_ledger(gateway)
        await ledger.initialize()

        history = ledger.price_history("Alpha")
        assert len(history) == 50
        assert all(0.01 <= p <= 0.99 for p in history)
        assert history[-3:] != [0.40, 0.41, 0.39]

    async def test_full_history_is_used_as_is(self, gateway) -> None:
        stored = [30 + (i % 5) for i in range(60)]
        gateway.history["Alpha"] = stored
        ledger = make_ledger(gateway)
        await ledger.initialize()

        assert ledger.price_history("Alpha") == [p / 100 for p in stored[-50:]]

    async def test_store_failure_aborts(self, gateway) -> None:
        gateway.fail_reads = True
        ledger = make_ledger(gateway)
        with pytest.raises(PersistenceUnavailableError) as exc_info:
            await ledger.initialize()
        assert exc_info.value.code == 9003

    async def test_duplicate_names_rejected(self) -> None:
        gateway = InMemoryGateway()
        ledger = make_ledger(gateway)

        async def duplicated() -> list[Competitor]:
            return [Competitor("Alpha", "#111111", 10), Competitor("Alpha", "#222222", 20)]

        gateway.load_competitors = duplicated  # type: ignore[method-assign]
        with pytest.raises(ValueError, match="Duplicate"):
            await ledger.initialize()


class TestReads:
    async def test_competitors_are_copies(self, ledger) -> None:
        ledger.competitors()[0].percent = 2
        assert ledger.competitors()[0].percent == 40

    async def test_unknown_history_raises(self, ledger) -> None:
        with pytest.raises(CompetitorNotFoundError):
            ledger.price_history("Zeta")

    async def test_new_participant_gets_initial_cash(self, ledger) -> None:
        portfolio = await ledger.get_portfolio("fresh")
        assert portfolio.cash == Decimal("1000.00")
        assert portfolio.holdings == []
        assert portfolio.total_value == Decimal("1000.00")

    async def test_portfolio_marks_to_current_quote(self, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 100)
        _set_percent(ledger, "Alpha", 30)

        portfolio = await ledger.get_portfolio("p-1")
        assert len(portfolio.holdings) == 1
        holding = portfolio.holdings[0]
        assert holding.position.competitor_name == "Alpha"
        assert holding.current_value == Decimal("250") * Decimal("0.30")
        assert portfolio.total_value == Decimal("900") + Decimal("75")

    async def test_portfolio_holdings_follow_roster_order(self, ledger) -> None:
        await ledger.execute_trade("p-1", "Charlie", "NO", 10)
        await ledger.execute_trade("p-1", "Alpha", "YES", 10)
        portfolio = await ledger.get_portfolio("p-1")
        assert [h.position.competitor_name for h in portfolio.holdings] == ["Alpha", "Charlie"]

    async def test_portfolio_loads_stored_positions(self, gateway, ledger) -> None:
        await ledger.execute_trade("p-1", "Bravo", "NO", 30)
        restarted = make_ledger(gateway)
        await restarted.initialize()

        portfolio = await restarted.get_portfolio("p-1")
        assert portfolio.cash == Decimal("970")
        assert [h.position.competitor_name for h in portfolio.holdings] == ["Bravo"]

    async def test_recent_trades_and_volume(self, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 10)
        await ledger.execute_trade("p-2", "Bravo", "NO", 15)

        trades = await ledger.recent_trades(limit=1)
        assert [t.participant_id for t in trades] == ["p-2"]
        assert await ledger.total_volume() == Decimal("25")


class TestExecuteTrade:
    async def test_first_purchase(self, ledger) -> None:
        outcome = await ledger.execute_trade("p-1", "Alpha", "YES", 100)

        assert outcome.trade.price == Decimal("0.40")
        assert outcome.trade.shares == Decimal("250")
        assert outcome.new_cash == Decimal("900")
        assert outcome.total_yes_shares == Decimal("250")
        portfolio = await ledger.get_portfolio("p-1")
        assert portfolio.holdings[0].position.avg_yes_price == Decimal("0.40")

    async def test_second_purchase_updates_weighted_average(self, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 100)
        _set_percent(ledger, "Alpha", 30)
        outcome = await ledger.execute_trade("p-1", "Alpha", "YES", 50)

        assert abs(outcome.total_yes_shares - Decimal("416.67")) < Decimal("0.01")
        position = (await ledger.get_portfolio("p-1")).holdings[0].position
        assert abs(position.avg_yes_price - Decimal("0.36")) < Decimal("0.0001")
        assert outcome.new_cash == Decimal("850")

    async def test_no_side_uses_complement_price(self, ledger) -> None:
        outcome = await ledger.execute_trade("p-1", "Alpha", "no", 60)
        assert outcome.trade.side is Side.NO
        assert outcome.trade.price == Decimal("0.60")
        assert outcome.total_no_shares == Decimal("100")
        assert outcome.total_yes_shares == 0

    async def test_amount_equals_shares_times_price(self, ledger) -> None:
        outcome = await ledger.execute_trade("p-1", "Charlie", "YES", Decimal("33.33"))
        trade = outcome.trade
        assert abs(trade.shares * trade.price - trade.amount) < Decimal("1e-20")

    async def test_insufficient_funds_changes_nothing(self, gateway, sink) -> None:
        gateway.participants["poor"] = Decimal("50")
        ledger = make_ledger(gateway, sink)
        await ledger.initialize()

        with pytest.raises(InsufficientFundsError) as exc_info:
            await ledger.execute_trade("poor", "Alpha", "YES", 100)

        assert exc_info.value.code == 2001
        portfolio = await ledger.get_portfolio("poor")
        assert portfolio.cash == Decimal("50")
        assert portfolio.holdings == []
        assert gateway.trades == []
        assert sink.events == []

    async def test_spending_entire_balance_is_allowed(self, ledger) -> None:
        outcome = await ledger.execute_trade("p-1", "Alpha", "YES", 1000)
        assert outcome.new_cash == 0

    async def test_unknown_competitor(self, gateway, ledger) -> None:
        with pytest.raises(CompetitorNotFoundError) as exc_info:
            await ledger.execute_trade("p-1", "Zeta", "YES", 10)
        assert exc_info.value.code == 3001
        assert gateway.trades == []
        assert gateway.participants == {}

    async def test_invalid_side(self, gateway, ledger) -> None:
        with pytest.raises(InvalidSideError):
            await ledger.execute_trade("p-1", "Alpha", "MAYBE", 10)
        assert gateway.trades == []

    async def test_missing_participant_id(self, ledger) -> None:
        with pytest.raises(MalformedRequestError):
            await ledger.execute_trade("", "Alpha", "YES", 10)

    async def test_cash_is_conserved(self, ledger) -> None:
        amounts = [Decimal("12.5"), Decimal("40"), Decimal("7.25"), Decimal("100")]
        sides = ["YES", "NO", "YES", "NO"]
        for amount, side in zip(amounts, sides):
            await ledger.execute_trade("p-1", "Bravo", side, amount)
        portfolio = await ledger.get_portfolio("p-1")
        assert portfolio.cash == Decimal("1000.00") - sum(amounts)

    async def test_publishes_trade_then_snapshot(self, ledger, sink) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 10)

        assert len(sink.events) == 2
        trade_event, snapshot = sink.events
        assert isinstance(trade_event, TradeExecuted)
        assert trade_event.competitor_name == "Alpha"
        assert trade_event.amount == Decimal("10")
        assert isinstance(snapshot, MarketSnapshot)
        assert [c.name for c in snapshot.competitors] == ["Alpha", "Bravo", "Charlie"]

    async def test_trade_does_not_move_price(self, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 500)
        assert ledger.competitors()[0].percent == 40

    async def test_trade_ids_increase(self, ledger) -> None:
        first = await ledger.execute_trade("p-1", "Alpha", "YES", 1)
        second = await ledger.execute_trade("p-1", "Alpha", "YES", 1)
        assert int(second.trade.trade_id) > int(first.trade.trade_id)

    async def test_concurrent_trades_cannot_double_spend(self, ledger) -> None:
        results = await asyncio.gather(
            *(ledger.execute_trade("p-1", "Alpha", "YES", 400) for _ in range(3)),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientFundsError)
        portfolio = await ledger.get_portfolio("p-1")
        assert portfolio.cash == Decimal("200")
        assert portfolio.holdings[0].position.yes_shares == Decimal("2000")

    async def test_concurrent_participants_do_not_block_each_other(self, ledger) -> None:
        await asyncio.gather(
            *(ledger.execute_trade(f"p-{i}", "Bravo", "NO", 10) for i in range(10))
        )
        for i in range(10):
            assert (await ledger.get_portfolio(f"p-{i}")).cash == Decimal("990")


class TestWriteThrough:
    async def test_trade_is_stored_before_ack(self, gateway, ledger) -> None:
        outcome = await ledger.execute_trade("p-1", "Alpha", "YES", 100)

        assert [t.trade_id for t in gateway.trades] == [outcome.trade.trade_id]
        assert gateway.participants["p-1"] == Decimal("900")
        assert gateway.positions[("p-1", "Alpha")].yes_shares == Decimal("250")

    async def test_store_failure_leaves_memory_untouched(self, gateway, ledger, sink) -> None:
        await ledger.get_portfolio("p-1")
        gateway.fail_writes = True

        with pytest.raises(PersistenceUnavailableError) as exc_info:
            await ledger.execute_trade("p-1", "Alpha", "YES", 100)

        assert exc_info.value.http_status == 503
        gateway.fail_writes = False
        portfolio = await ledger.get_portfolio("p-1")
        assert portfolio.cash == Decimal("1000.00")
        assert portfolio.holdings == []
        assert sink.events == []

    async def test_slow_store_times_out(self, gateway) -> None:
        ledger = make_ledger(gateway, persistence_timeout=0.01)
        await ledger.initialize()

        async def hang(*args, **kwargs):
            await asyncio.sleep(1)

        gateway.record_trade = hang  # type: ignore[method-assign]
        with pytest.raises(PersistenceUnavailableError):
            await ledger.execute_trade("p-1", "Alpha", "YES", 10)


class TestWriteBehind:
    async def test_trade_reaches_store_after_drain(self, gateway) -> None:
        ledger = make_ledger(gateway, write_through=False)
        await ledger.initialize()

        outcomes = [await ledger.execute_trade("p-1", "Alpha", "YES", 10) for _ in range(3)]
        await ledger.drain()

        assert [t.trade_id for t in gateway.trades] == [o.trade.trade_id for o in outcomes]
        assert gateway.participants["p-1"] == Decimal("970")
        assert gateway.positions[("p-1", "Alpha")].yes_shares == Decimal("75")

    async def test_store_failure_is_logged_not_raised(self, gateway, caplog) -> None:
        ledger = make_ledger(gateway, write_through=False)
        await ledger.initialize()
        await ledger.get_portfolio("p-1")
        gateway.fail_writes = True

        with caplog.at_level(logging.WARNING):
            outcome = await ledger.execute_trade("p-1", "Alpha", "YES", 10)
            await ledger.drain()

        assert outcome.new_cash == Decimal("990")
        assert (await ledger.get_portfolio("p-1")).cash == Decimal("990")
        assert gateway.trades == []
        assert "Write-behind failed" in caplog.text


class TestTick:
    async def test_tick_moves_prices_within_bounds(self, ledger) -> None:
        for _ in range(50):
            snapshot = await ledger.tick()
            assert snapshot is not None
            assert all(1 <= c.percent <= 50 for c in snapshot.competitors)

    async def test_tick_keeps_roster_sorted(self, ledger) -> None:
        for _ in range(30):
            snapshot = await ledger.tick()
            percents = [c.percent for c in snapshot.competitors]
            assert percents == sorted(percents, reverse=True)

    async def test_floor_competitor_never_leaves_bounds(self) -> None:
        ledger = make_ledger(InMemoryGateway(make_roster(1)))
        await ledger.initialize()
        for _ in range(50):
            await ledger.tick()
            assert 1 <= ledger.competitors()[0].percent <= 50

    async def test_tick_appends_history_and_persists(self, gateway, ledger) -> None:
        before = ledger.price_history("Alpha")
        snapshot = await ledger.tick()

        after = ledger.price_history("Alpha")
        alpha = next(c for c in snapshot.competitors if c.name == "Alpha")
        assert len(after) == 50
        assert after[:-1] == before[1:]
        assert after[-1] == alpha.percent / 100
        assert gateway.competitors["Alpha"].percent == alpha.percent
        assert gateway.history["Alpha"] == [alpha.percent]

    async def test_tick_sets_timestamps(self, ledger) -> None:
        snapshot = await ledger.tick()
        assert ledger.last_update == snapshot.timestamp
        assert all(c.last_updated == snapshot.timestamp for c in snapshot.competitors)

    async def test_tick_does_not_publish(self, ledger, sink) -> None:
        await ledger.tick()
        assert sink.events == []

    async def test_overlapping_tick_is_skipped(self, gateway, ledger) -> None:
        entered, release = _hold(gateway, "save_competitor_percent")
        first = asyncio.create_task(ledger.tick())
        await entered.wait()

        assert await ledger.tick() is None

        release.set()
        assert await first is not None

    async def test_same_seed_ledgers_tick_identically(self) -> None:
        a = make_ledger(InMemoryGateway(make_roster(40, 25, 10)))
        b = make_ledger(InMemoryGateway(make_roster(40, 25, 10)))
        await a.initialize()
        await b.initialize()
        assert a.price_history("Alpha") == b.price_history("Alpha")

        for _ in range(30):
            snap_a = await a.tick()
            snap_b = await b.tick()
            assert [(c.name, c.percent) for c in snap_a.competitors] == [
                (c.name, c.percent) for c in snap_b.competitors
            ]
        for name in ("Alpha", "Bravo", "Charlie"):
            assert a.price_history(name) == b.price_history(name)

    async def test_persistence_failure_does_not_undo_tick(self, gateway, ledger, caplog) -> None:
        gateway.fail_writes = True
        with caplog.at_level(logging.WARNING):
            snapshot = await ledger.tick()

        assert snapshot is not None
        assert ledger.price_history("Alpha")[-1] == next(
            c.percent for c in snapshot.competitors if c.name == "Alpha"
        ) / 100
        assert "Tick persistence failed" in caplog.text

    async def test_snapshot_is_detached(self, ledger) -> None:
        snapshot = await ledger.tick()
        frozen = [c.percent for c in snapshot.competitors]
        for _ in range(20):
            await ledger.tick()
        assert [c.percent for c in snapshot.competitors] == frozen


class TestReload:
    async def test_reload_drops_caches(self, gateway, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 100)
        gateway.participants["p-1"] = Decimal("123")

        await ledger.reload()

        assert (await ledger.get_portfolio("p-1")).cash == Decimal("123")

    async def test_reload_reads_competitor_prices(self, gateway, ledger) -> None:
        gateway.competitors["Charlie"].percent = 45
        await ledger.reload()
        assert ledger.competitors()[0].name == "Charlie"

    async def test_reload_keeps_history_windows(self, ledger) -> None:
        before = ledger.price_history("Bravo")
        await ledger.reload()
        assert ledger.price_history("Bravo") == before


    async def test_reload_waits_for_trade_in_flight(self, gateway, ledger) -> None:
        await ledger.execute_trade("p-1", "Alpha", "YES", 100)
        entered, release = _hold(gateway, "record_trade")
        trade = asyncio.create_task(ledger.execute_trade("p-1", "Alpha", "YES", 800))
        await entered.wait()

        reload = asyncio.create_task(ledger.reload())
        portfolio = asyncio.create_task(ledger.get_portfolio("p-1"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert not reload.done()
        assert not portfolio.done()

        release.set()
        await trade
        await reload
        assert (await portfolio).cash == Decimal("100")

        with pytest.raises(InsufficientFundsError):
            await ledger.execute_trade("p-1", "Alpha", "YES", 800)
        assert gateway.participants["p-1"] == Decimal("100")
        assert sum(t.amount for t in gateway.trades) == Decimal("900")

    async def test_reload_drains_write_behind(self, gateway) -> None:
        ledger = make_ledger(gateway, write_through=False)
        await ledger.initialize()
        await ledger.get_portfolio("p-1")
        entered, release = _hold(gateway, "save_participant_cash")

        await ledger.execute_trade("p-1", "Alpha", "YES", 100)
        await entered.wait()
        reload = asyncio.create_task(ledger.reload())
        for _ in range(5):
            await asyncio.sleep(0)
        assert not reload.done()

        release.set()
        await reload
        assert gateway.participants["p-1"] == Decimal("900")
        assert (await ledger.get_portfolio("p-1")).cash == Decimal("900")

    async def test_trades_resume_after_reload(self, ledger) -> None:
        await ledger.reload()
        outcome = await ledger.execute_trade("p-1", "Bravo", "NO", 75)
        assert outcome.new_cash == Decimal("925")
