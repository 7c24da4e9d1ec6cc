"""pm_market REST endpoints.

GET /competitors                  — current roster, sorted by percent desc
GET /competitors/{name}/history   — rolling price history (oldest first)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.pm_common.response import ApiResponse, success_response
from src.pm_ledger.api.dependencies import get_ledger
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_market.application.schemas import (
    CompetitorItem,
    CompetitorListResponse,
    PriceHistoryResponse,
)

router = APIRouter(prefix="/competitors", tags=["competitors"])


@router.get("")
async def list_competitors(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
) -> ApiResponse:
    data = CompetitorListResponse(
        items=[CompetitorItem.from_domain(c) for c in ledger.competitors()],
        last_update=ledger.last_update,
    )
    return success_response(data.model_dump(), request)


@router.get("/{name}/history")
async def get_price_history(
    name: str,
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
) -> ApiResponse:
    data = PriceHistoryResponse(name=name, history=ledger.price_history(name))
    return success_response(data.model_dump(), request)
