"""Broadcast events and the BroadcastSink Protocol.

The ledger publishes a tagged union of exactly two event shapes:
  - MarketSnapshot: full competitor list, after every tick or trade
  - TradeExecuted:  one executed trade

Delivery is best-effort fan-out. ``publish`` must never block the ledger.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol, Union

from src.pm_common.enums import Side
from src.pm_market.domain.models import Competitor


@dataclass(frozen=True)
class MarketSnapshot:
    competitors: tuple[Competitor, ...]   # detached copies, sorted by percent desc
    timestamp: datetime


@dataclass(frozen=True)
class TradeExecuted:
    trade_id: str
    participant_id: str
    competitor_name: str
    side: Side
    amount: Decimal
    shares: Decimal
    timestamp: datetime


MarketEvent = Union[MarketSnapshot, TradeExecuted]


class BroadcastSinkProtocol(Protocol):
    def publish(self, event: MarketEvent) -> None: ...
