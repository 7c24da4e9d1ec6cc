"""Domain models for pm_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, replace
from decimal import Decimal

from src.pm_common.enums import Side

_ZERO = Decimal(0)


@dataclass
class Participant:
    participant_id: str     # opaque client token
    cash: Decimal           # never negative; only debited by trades


@dataclass(frozen=True)
class Position:
    """One row per (participant, competitor).

    avg_*_price is the cost-basis weighted mean over every purchase of that
    side: sum(shares_i * price_i) / sum(shares_i). Zero while the side holds
    no shares.
    """

    participant_id: str
    competitor_name: str
    yes_shares: Decimal = _ZERO
    no_shares: Decimal = _ZERO
    avg_yes_price: Decimal = _ZERO
    avg_no_price: Decimal = _ZERO

    @property
    def is_empty(self) -> bool:
        return self.yes_shares == 0 and self.no_shares == 0

    def shares(self, side: Side) -> Decimal:
        return self.yes_shares if side is Side.YES else self.no_shares

    def apply_purchase(self, side: Side, shares: Decimal, price: Decimal) -> "Position":
        """Return the position after buying ``shares`` of ``side`` at ``price``.

        Only the purchased side changes; the other side is carried over as is.
        """
        if side is Side.YES:
            total, avg = _weighted(self.yes_shares, self.avg_yes_price, shares, price)
            return replace(self, yes_shares=total, avg_yes_price=avg)
        total, avg = _weighted(self.no_shares, self.avg_no_price, shares, price)
        return replace(self, no_shares=total, avg_no_price=avg)


def _weighted(
    held: Decimal, avg: Decimal, bought: Decimal, price: Decimal
) -> tuple[Decimal, Decimal]:
    total = held + bought
    if held <= 0:
        return total, price
    return total, (held * avg + bought * price) / total


@dataclass(frozen=True)
class Holding:
    """A non-empty position marked to market at the current quotes."""

    position: Position
    current_value: Decimal


@dataclass(frozen=True)
class Portfolio:
    participant_id: str
    cash: Decimal
    holdings: list[Holding]

    @property
    def total_value(self) -> Decimal:
        return self.cash + sum((h.current_value for h in self.holdings), _ZERO)
