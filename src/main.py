"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000

The lifespan owns the market: it builds the ledger, hydrates it from the
store (startup aborts if that fails), starts the tick scheduler and tears
everything down on shutdown.
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.pm_account.api.router import router as portfolio_router
from src.pm_admin.api.router import router as admin_router
from src.pm_clearing.api.trades_router import router as trades_router
from src.pm_common.database import async_session_factory, engine
from src.pm_common.errors import AppError, MalformedRequestError
from src.pm_common.redis_client import close_redis, get_redis
from src.pm_common.response import error_response
from src.pm_gateway.middleware.rate_limit import RateLimitMiddleware
from src.pm_gateway.middleware.request_log import RequestLogMiddleware
from src.pm_ledger.api.ws_router import router as stream_router
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_ledger.infrastructure.broadcast import InProcessBroadcaster
from src.pm_ledger.infrastructure.persistence import SqlPersistenceGateway
from src.pm_ledger.infrastructure.scheduler import TickScheduler
from src.pm_market.api.router import router as market_router
from src.pm_market.domain.simulator import PriceSimulator

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, hydrate ledger, start ticking. Shutdown: reverse."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()

    broadcaster = InProcessBroadcaster(queue_size=settings.BROADCAST_QUEUE_SIZE)
    ledger = MarketLedger(
        SqlPersistenceGateway(async_session_factory),
        PriceSimulator(seed=settings.PRICE_SEED, history_length=settings.HISTORY_LENGTH),
        broadcaster,
        initial_cash=settings.INITIAL_CASH,
        persistence_timeout=settings.PERSISTENCE_TIMEOUT_SECONDS,
        write_through=settings.TRADE_WRITE_THROUGH,
    )
    await ledger.initialize()  # PersistenceUnavailableError here stops the process
    scheduler = TickScheduler(ledger, broadcaster, settings.TICK_INTERVAL_SECONDS)
    if settings.TICK_ENABLED:
        scheduler.start()

    app.state.ledger = ledger
    app.state.broadcaster = broadcaster
    logger.info("%s ready", settings.APP_NAME)
    yield

    await scheduler.stop()
    broadcaster.close()
    await ledger.drain()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(p) for p in e["loc"][1:]) or "body" for e in exc.errors())
    return await app_error_handler(request, MalformedRequestError(f"invalid fields: {fields}"))


app.include_router(market_router, prefix="/api/v1")
app.include_router(portfolio_router, prefix="/api/v1")
app.include_router(trades_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(stream_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
