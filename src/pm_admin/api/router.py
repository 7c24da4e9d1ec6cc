# src/pm_admin/api/router.py
"""Admin REST API.

POST /admin/reload — re-sync the in-memory ledger with the durable store
GET  /admin/stats  — ledger and broadcast counters

Guarded by a shared secret in X-Admin-Token; disabled when ADMIN_TOKEN is unset.
"""
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from config.settings import settings
from src.pm_common.errors import AppError
from src.pm_common.response import ApiResponse, success_response
from src.pm_ledger.api.dependencies import get_broadcaster, get_ledger
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_ledger.infrastructure.broadcast import InProcessBroadcaster


def require_admin(x_admin_token: Annotated[str | None, Header()] = None) -> None:
    expected = settings.ADMIN_TOKEN
    if not expected or not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise AppError(403, "Admin access denied", http_status=403)


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/reload")
async def reload_ledger(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
) -> ApiResponse:
    await ledger.reload()
    return success_response({"competitors": len(ledger.competitors())}, request)


@router.get("/stats")
async def ledger_stats(
    request: Request,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
    broadcaster: Annotated[InProcessBroadcaster, Depends(get_broadcaster)],
) -> ApiResponse:
    volume = await ledger.total_volume()
    return success_response(
        {
            "competitors": len(ledger.competitors()),
            "subscribers": broadcaster.subscriber_count,
            "total_volume": float(volume),
            "last_update": ledger.last_update,
        },
        request,
    )
