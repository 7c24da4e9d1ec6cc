"""Tests for pm_market.domain.simulator (seeded random walk)."""

import pytest

from src.pm_market.domain.simulator import PriceSimulator

SEED = 0xB1C2026


class TestGenerator:
    def test_reference_sequence(self) -> None:
        sim = PriceSimulator(seed=SEED)
        assert [sim.next() for _ in range(5)] == [
            0.8115872198250145,
            0.6279707946814597,
            0.4517014224547893,
            0.6811102211941034,
            0.6510555322747678,
        ]

    def test_same_seed_same_sequence(self) -> None:
        a = PriceSimulator(seed=SEED)
        b = PriceSimulator(seed=SEED)
        assert [a.next() for _ in range(20)] == [b.next() for _ in range(20)]

    def test_different_seed_different_sequence(self) -> None:
        a = PriceSimulator(seed=SEED)
        b = PriceSimulator(seed=SEED + 1)
        assert [a.next() for _ in range(5)] != [b.next() for _ in range(5)]

    def test_values_in_unit_interval(self) -> None:
        sim = PriceSimulator(seed=SEED)
        for _ in range(1000):
            value = sim.next()
            assert 0.0 <= value < 1.0

    def test_reseed_restarts_sequence(self) -> None:
        sim = PriceSimulator(seed=SEED)
        first = [sim.next() for _ in range(5)]
        sim.seed(SEED)
        assert [sim.next() for _ in range(5)] == first

    def test_seed_is_masked_to_32_bits(self) -> None:
        a = PriceSimulator(seed=SEED)
        b = PriceSimulator(seed=SEED + 2**32)
        assert a.next() == b.next()

    def test_zero_seed_is_valid(self) -> None:
        sim = PriceSimulator(seed=0)
        assert 0.0 <= sim.next() < 1.0

    def test_rejects_empty_history_window(self) -> None:
        with pytest.raises(ValueError):
            PriceSimulator(seed=SEED, history_length=0)


class TestStepPercent:
    def test_reference_walk_from_floor(self) -> None:
        sim = PriceSimulator(seed=SEED)
        walk = []
        percent = 1
        for _ in range(20):
            percent = sim.step_percent(percent)
            walk.append(percent)
        assert walk == [2, 2, 2, 3, 3, 3, 3, 4, 3, 3, 4, 5, 5, 5, 6, 5, 5, 6, 7, 7]

    def test_fifty_ticks_from_floor_stay_in_bounds(self) -> None:
        sim = PriceSimulator(seed=SEED)
        percent = 1
        for _ in range(50):
            percent = sim.step_percent(percent)
            assert 1 <= percent <= 50

    def test_ticks_from_ceiling_stay_in_bounds(self) -> None:
        sim = PriceSimulator(seed=SEED)
        percent = 50
        for _ in range(200):
            percent = sim.step_percent(percent)
            assert 1 <= percent <= 50

    def test_step_moves_at_most_one_point(self) -> None:
        sim = PriceSimulator(seed=SEED)
        percent = 25
        for _ in range(500):
            stepped = sim.step_percent(percent)
            assert abs(stepped - percent) <= 1
            percent = stepped

    def test_walk_actually_moves(self) -> None:
        sim = PriceSimulator(seed=SEED)
        seen = set()
        percent = 25
        for _ in range(100):
            percent = sim.step_percent(percent)
            seen.add(percent)
        assert len(seen) > 1

    def test_step_is_reproducible(self) -> None:
        a = PriceSimulator(seed=SEED)
        b = PriceSimulator(seed=SEED)
        walk_a = walk_b = 20
        for _ in range(30):
            walk_a = a.step_percent(walk_a)
            walk_b = b.step_percent(walk_b)
            assert walk_a == walk_b


class TestBackfill:
    def test_length_and_bounds(self) -> None:
        sim = PriceSimulator(seed=SEED)
        history = sim.backfill_history(38, 50)
        assert len(history) == 50
        assert all(0.01 <= p <= 0.99 for p in history)

    def test_small_steps(self) -> None:
        sim = PriceSimulator(seed=SEED)
        history = sim.backfill_history(20, 50)
        prev = 0.20
        for price in history:
            assert abs(price - prev) <= 0.01 + 1e-12
            prev = price

    def test_clamped_at_floor(self) -> None:
        sim = PriceSimulator(seed=SEED)
        history = sim.backfill_history(1, 200)
        assert min(history) >= 0.01

    def test_zero_length(self) -> None:
        sim = PriceSimulator(seed=SEED)
        assert sim.backfill_history(10, 0) == []


class TestHistoryWindow:
    def test_unknown_name_is_empty(self) -> None:
        sim = PriceSimulator(seed=SEED)
        assert sim.history("nobody") == []

    def test_push_evicts_oldest(self) -> None:
        sim = PriceSimulator(seed=SEED, history_length=3)
        for value in (0.1, 0.2, 0.3, 0.4):
            sim.push("Alpha", value)
        assert sim.history("Alpha") == [0.2, 0.3, 0.4]

    def test_reset_truncates_to_window(self) -> None:
        sim = PriceSimulator(seed=SEED, history_length=3)
        sim.reset_history("Alpha", [0.1, 0.2, 0.3, 0.4, 0.5])
        assert sim.history("Alpha") == [0.3, 0.4, 0.5]

    def test_history_returns_copy(self) -> None:
        sim = PriceSimulator(seed=SEED)
        sim.push("Alpha", 0.4)
        sim.history("Alpha").append(0.9)
        assert sim.history("Alpha") == [0.4]
