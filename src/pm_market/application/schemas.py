"""Pydantic schemas for pm_market API."""

from datetime import datetime

from pydantic import BaseModel

from src.pm_market.domain.models import Competitor


class CompetitorItem(BaseModel):
    name: str
    color: str
    percent: int
    yes_price: float
    no_price: float
    score: int
    holes_played: int
    last_updated: datetime | None

    @classmethod
    def from_domain(cls, c: Competitor) -> "CompetitorItem":
        return cls(
            name=c.name,
            color=c.color,
            percent=c.percent,
            yes_price=float(c.yes_price),
            no_price=float(c.no_price),
            score=c.score,
            holes_played=c.holes_played,
            last_updated=c.last_updated,
        )


class CompetitorListResponse(BaseModel):
    items: list[CompetitorItem]
    last_update: datetime | None


class PriceHistoryResponse(BaseModel):
    name: str
    history: list[float]   # normalized prices, oldest first
