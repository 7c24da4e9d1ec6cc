"""Domain models for pm_market — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from src.pm_common.enums import Side
from src.pm_common.money import price_from_percent

MIN_PERCENT = 1
MAX_PERCENT = 50  # this market never prices a favourite above 50%


def clamp_percent(percent: int) -> int:
    return max(MIN_PERCENT, min(MAX_PERCENT, percent))


@dataclass
class Competitor:
    name: str               # unique key
    color: str              # display colour, e.g. '#1a5f4a'
    percent: int            # YES probability, always within [1, 50]
    score: int = 0
    holes_played: int = 18
    last_updated: datetime | None = None

    @property
    def yes_price(self) -> Decimal:
        return price_from_percent(self.percent)

    @property
    def no_price(self) -> Decimal:
        return price_from_percent(100 - self.percent)

    def quote(self, side: Side) -> Decimal:
        return self.yes_price if side is Side.YES else self.no_price

    def copy(self) -> "Competitor":
        return replace(self)


def default_roster() -> list[Competitor]:
    """Roster installed when the store holds no competitors."""
    return [
        Competitor("Thomas Reynolds", "#1a5f4a", 38, score=-8),
        Competitor("Justin Settlemoir", "#d4af37", 22, score=-6),
        Competitor("Cole Parton", "#ffb81c", 15, score=-4),
        Competitor("Ethan Brugger", "#006747", 12, score=-3),
        Competitor("Conrad Murray", "#5c8a6e", 8, score=-2),
        Competitor("Garrett Story", "#4a7c59", 3, score=-1),
        Competitor("Dylan Huber", "#2d5016", 1, score=0),
        Competitor("Burke Estes", "#6b8e23", 1, score=0),
    ]
