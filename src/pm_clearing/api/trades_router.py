# src/pm_clearing/api/trades_router.py
"""Trades REST API.

POST /trades          — execute a trade at the current quote
GET  /trades          — most recent trades, newest first
GET  /trades/volume   — total cash traded
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.pm_clearing.application.trades_schemas import (
    TradeExecutionResponse,
    TradeItem,
    TradeListResponse,
    TradeRequest,
    VolumeResponse,
)
from src.pm_common.response import ApiResponse, success_response
from src.pm_ledger.api.dependencies import get_ledger
from src.pm_ledger.engine.ledger import MarketLedger

router = APIRouter(prefix="/trades", tags=["trades"])


@router.post("")
async def execute_trade(
    body: TradeRequest,
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
) -> ApiResponse:
    outcome = await ledger.execute_trade(
        body.participant_id, body.competitor_name, body.side, body.amount
    )
    return success_response(TradeExecutionResponse.from_outcome(outcome).model_dump(), request)


@router.get("")
async def list_trades(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    trades = await ledger.recent_trades(limit)
    data = TradeListResponse(items=[TradeItem.from_domain(t) for t in trades])
    return success_response(data.model_dump(), request)


@router.get("/volume")
async def get_volume(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
) -> ApiResponse:
    volume = await ledger.total_volume()
    return success_response(VolumeResponse.from_decimal(volume).model_dump(), request)
