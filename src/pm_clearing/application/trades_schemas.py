# src/pm_clearing/application/trades_schemas.py
"""Pydantic schemas for trades API."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.pm_clearing.domain.models import Trade, TradeOutcome
from src.pm_common.money import money_display


class TradeRequest(BaseModel):
    participant_id: str = Field(..., min_length=1, max_length=64)
    competitor_name: str = Field(..., min_length=1, max_length=64)
    side: str = Field(..., description="YES or NO (case-insensitive)")
    amount: Decimal = Field(..., gt=0, description="Cash to spend")


class TradeExecutionResponse(BaseModel):
    trade_id: str
    side: str
    shares: float
    price: float
    amount: float
    new_cash: float
    new_cash_display: str
    total_yes_shares: float
    total_no_shares: float

    @classmethod
    def from_outcome(cls, outcome: TradeOutcome) -> "TradeExecutionResponse":
        t = outcome.trade
        return cls(
            trade_id=t.trade_id,
            side=t.side.value,
            shares=float(t.shares),
            price=float(t.price),
            amount=float(t.amount),
            new_cash=float(outcome.new_cash),
            new_cash_display=money_display(outcome.new_cash),
            total_yes_shares=float(outcome.total_yes_shares),
            total_no_shares=float(outcome.total_no_shares),
        )


class TradeItem(BaseModel):
    trade_id: str
    participant_id: str
    competitor_name: str
    side: str
    shares: float
    price: float
    amount: float
    executed_at: datetime

    @classmethod
    def from_domain(cls, t: Trade) -> "TradeItem":
        return cls(
            trade_id=t.trade_id,
            participant_id=t.participant_id,
            competitor_name=t.competitor_name,
            side=t.side.value,
            shares=float(t.shares),
            price=float(t.price),
            amount=float(t.amount),
            executed_at=t.executed_at,
        )


class TradeListResponse(BaseModel):
    items: list[TradeItem]


class VolumeResponse(BaseModel):
    volume: float
    volume_display: str

    @classmethod
    def from_decimal(cls, volume: Decimal) -> "VolumeResponse":
        return cls(volume=float(volume), volume_display=money_display(volume))
