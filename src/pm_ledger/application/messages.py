"""WebSocket wire messages for broadcast events.

    {"type": "market_update", "competitors": [...], "timestamp": 1760780000000}
    {"type": "trade_update", "trade": {...}, "timestamp": 1760780000000}

Timestamps are epoch milliseconds.
"""

from typing import Literal

from pydantic import BaseModel

from src.pm_common.datetime_utils import epoch_ms
from src.pm_common.enums import EventType
from src.pm_ledger.domain.events import MarketEvent, MarketSnapshot, TradeExecuted
from src.pm_market.application.schemas import CompetitorItem


class MarketUpdateMessage(BaseModel):
    type: Literal[EventType.MARKET_UPDATE] = EventType.MARKET_UPDATE
    competitors: list[CompetitorItem]
    timestamp: int


class TradePayload(BaseModel):
    trade_id: str
    participant_id: str
    competitor_name: str
    side: str
    amount: float
    shares: float
    executed_at: int


class TradeUpdateMessage(BaseModel):
    type: Literal[EventType.TRADE_UPDATE] = EventType.TRADE_UPDATE
    trade: TradePayload
    timestamp: int


def to_message(event: MarketEvent) -> MarketUpdateMessage | TradeUpdateMessage:
    if isinstance(event, MarketSnapshot):
        return MarketUpdateMessage(
            competitors=[CompetitorItem.from_domain(c) for c in event.competitors],
            timestamp=epoch_ms(event.timestamp),
        )
    if isinstance(event, TradeExecuted):
        return TradeUpdateMessage(
            trade=TradePayload(
                trade_id=event.trade_id,
                participant_id=event.participant_id,
                competitor_name=event.competitor_name,
                side=event.side.value,
                amount=float(event.amount),
                shares=float(event.shares),
                executed_at=epoch_ms(event.timestamp),
            ),
            timestamp=epoch_ms(event.timestamp),
        )
    raise TypeError(f"Unknown market event: {type(event).__name__}")
