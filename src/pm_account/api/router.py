"""Portfolio REST API.

The participant id is an opaque client token; unknown ids are created
lazily with the initial cash endowment.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Request

from src.pm_account.application.schemas import PortfolioResponse
from src.pm_common.response import ApiResponse, success_response
from src.pm_ledger.api.dependencies import get_ledger
from src.pm_ledger.engine.ledger import MarketLedger

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("/{participant_id}")
async def get_portfolio(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
    participant_id: str = Path(..., min_length=1, max_length=64),
) -> ApiResponse:
    portfolio = await ledger.get_portfolio(participant_id)
    return success_response(PortfolioResponse.from_domain(portfolio).model_dump(), request)
