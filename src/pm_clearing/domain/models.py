"""Domain models for pm_clearing — executed trades."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.pm_common.enums import Side


@dataclass(frozen=True)
class Trade:
    """Immutable, append-only fill record. amount == shares * price."""

    trade_id: str
    participant_id: str
    competitor_name: str
    side: Side
    shares: Decimal
    price: Decimal          # quote at the instant preconditions were checked
    amount: Decimal         # cash debited
    executed_at: datetime


@dataclass(frozen=True)
class TradeOutcome:
    """Result of MarketLedger.execute_trade, returned to the caller."""

    trade: Trade
    new_cash: Decimal
    total_yes_shares: Decimal
    total_no_shares: Decimal
