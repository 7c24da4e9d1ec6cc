"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class Side(str, Enum):
    """Binary position side. YES pays if the competitor wins."""

    YES = "YES"
    NO = "NO"


class EventType(str, Enum):
    """Wire tag for broadcast messages."""

    MARKET_UPDATE = "market_update"
    TRADE_UPDATE = "trade_update"
