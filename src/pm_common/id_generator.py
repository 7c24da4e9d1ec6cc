"""Trade ID generator.

IDs are decimal strings of a 64-bit integer:
  - high bits: milliseconds since a custom epoch
  - low 12 bits: per-millisecond sequence

Within one process IDs strictly increase, so ordering trades by ID matches
execution order. Trades are created in memory before they reach the store,
which is why IDs are not delegated to a database sequence.
"""

import threading
import time

_EPOCH_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z
_SEQUENCE_BITS = 12


class TradeIdGenerator:
    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            candidate = (int(time.time() * 1000) - _EPOCH_MS) << _SEQUENCE_BITS
            # Clock went backwards or same millisecond: bump the sequence instead
            self._last = max(candidate, self._last + 1)
            return str(self._last)


_default_generator = TradeIdGenerator()


def generate_trade_id() -> str:
    return _default_generator.next_id()
