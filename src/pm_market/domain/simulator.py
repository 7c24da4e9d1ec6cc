"""PriceSimulator — seeded random walk over competitor percents.

One generator state is shared by every competitor, so a run is reproducible
end to end from ``Settings.PRICE_SEED``: the same seed and the same sequence
of ``next()`` / ``step_percent()`` / ``backfill_history()`` calls always yield
the same numbers. Hydration backfill relies on this.

Generator: Mulberry32 (32-bit state, odd increment, two multiply/xor-shift
rounds). All arithmetic is done modulo 2**32 on unsigned ints.
"""

import math
from collections import deque

from src.pm_market.domain.models import clamp_percent

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296

STEP_AMPLITUDE = 3.0        # step in [-1.5, +1.5) percentage points
BACKFILL_AMPLITUDE = 0.02   # step in [-0.01, +0.01) price units
BACKFILL_FLOOR = 0.01
BACKFILL_CEILING = 0.99


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, low 32 bits."""
    return (a * b) & _MASK32


class PriceSimulator:
    def __init__(self, seed: int, history_length: int = 50) -> None:
        if history_length < 1:
            raise ValueError("history_length must be >= 1")
        self._state = 0
        self._history_length = history_length
        self._windows: dict[str, deque[float]] = {}
        self.seed(seed)

    @property
    def history_length(self) -> int:
        return self._history_length

    # ------------------------------------------------------------------
    # Generator
    # ------------------------------------------------------------------

    def seed(self, value: int) -> None:
        self._state = value & _MASK32

    def next(self) -> float:
        """Advance the state and return a float in [0, 1)."""
        self._state = (self._state + _INCREMENT) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return (t ^ (t >> 14)) / _TWO_POW_32

    def step_percent(self, current_percent: int) -> int:
        change = (self.next() - 0.5) * STEP_AMPLITUDE
        # half-up rounding, negative halves included (-2.5 -> -2)
        return clamp_percent(math.floor(current_percent + change + 0.5))

    def backfill_history(self, current_percent: int, length: int) -> list[float]:
        """Synthesize ``length`` plausible prior prices, oldest first."""
        price = current_percent / 100
        history: list[float] = []
        for _ in range(length):
            price += (self.next() - 0.5) * BACKFILL_AMPLITUDE
            price = max(BACKFILL_FLOOR, min(BACKFILL_CEILING, price))
            history.append(price)
        return history

    # ------------------------------------------------------------------
    # Rolling history windows
    # ------------------------------------------------------------------

    def reset_history(self, name: str, values: list[float]) -> None:
        """Replace a window wholesale. Only used by ledger hydration."""
        self._windows[name] = deque(values, maxlen=self._history_length)

    def push(self, name: str, value: float) -> None:
        window = self._windows.get(name)
        if window is None:
            window = self._windows[name] = deque(maxlen=self._history_length)
        window.append(value)  # maxlen evicts the oldest sample

    def history(self, name: str) -> list[float]:
        return list(self._windows.get(name, ()))
