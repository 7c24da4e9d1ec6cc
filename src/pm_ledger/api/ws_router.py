"""WebSocket feed: market snapshot on connect, then every broadcast event.

Each connection runs two tasks: a sender draining the subscription queue and
a receiver that only watches for the client going away. Whichever finishes
first tears the other down and unsubscribes.
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from src.pm_ledger.api.dependencies import get_broadcaster, get_ledger
from src.pm_ledger.application.messages import to_message
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_ledger.infrastructure.broadcast import InProcessBroadcaster, Subscription

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])


async def _pump(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        event = await sub.get()
        if event is None:  # dropped or shutting down
            return
        await websocket.send_json(to_message(event).model_dump(mode="json"))


async def _watch_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()  # client messages are ignored
    except WebSocketDisconnect:
        return


@router.websocket("/ws")
async def market_stream(
    websocket: WebSocket,
    ledger: Annotated[MarketLedger, Depends(get_ledger)],
    broadcaster: Annotated[InProcessBroadcaster, Depends(get_broadcaster)],
) -> None:
    await websocket.accept()
    sub = broadcaster.subscribe()
    logger.info("WebSocket connected (%d subscribers)", broadcaster.subscriber_count)
    tasks: list[asyncio.Task[None]] = []
    try:
        await websocket.send_json(to_message(ledger.snapshot()).model_dump(mode="json"))
        tasks = [
            asyncio.create_task(_pump(websocket, sub)),
            asyncio.create_task(_watch_disconnect(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("WebSocket stream error: %r", exc)
        pump = tasks[0]
        if pump in done and pump.exception() is None:
            await websocket.close(code=1013)  # dropped as too slow: try again later
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        broadcaster.unsubscribe(sub)
        logger.info("WebSocket disconnected (%d subscribers)", broadcaster.subscriber_count)
