"""Pydantic schemas for the portfolio API."""

from pydantic import BaseModel

from src.pm_account.domain.models import Holding, Portfolio
from src.pm_common.money import money_display


class HoldingItem(BaseModel):
    competitor_name: str
    yes_shares: float
    no_shares: float
    avg_yes_price: float
    avg_no_price: float
    current_value: float
    current_value_display: str

    @classmethod
    def from_domain(cls, h: Holding) -> "HoldingItem":
        p = h.position
        return cls(
            competitor_name=p.competitor_name,
            yes_shares=float(p.yes_shares),
            no_shares=float(p.no_shares),
            avg_yes_price=float(p.avg_yes_price),
            avg_no_price=float(p.avg_no_price),
            current_value=float(h.current_value),
            current_value_display=money_display(h.current_value),
        )


class PortfolioResponse(BaseModel):
    participant_id: str
    cash: float
    cash_display: str
    holdings: list[HoldingItem]
    total_value: float
    total_value_display: str

    @classmethod
    def from_domain(cls, portfolio: Portfolio) -> "PortfolioResponse":
        total = portfolio.total_value
        return cls(
            participant_id=portfolio.participant_id,
            cash=float(portfolio.cash),
            cash_display=money_display(portfolio.cash),
            holdings=[HoldingItem.from_domain(h) for h in portfolio.holdings],
            total_value=float(total),
            total_value_display=money_display(total),
        )
