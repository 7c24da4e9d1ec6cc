"""FastAPI dependencies: hand the lifespan-owned ledger to route handlers.

The ledger and broadcaster are constructed in ``src.main.lifespan`` and
stored on ``app.state``; nothing is module-global. Tests override these
dependencies with their own instances.
"""

from starlette.requests import HTTPConnection

from src.pm_common.errors import InternalError
from src.pm_ledger.engine.ledger import MarketLedger
from src.pm_ledger.infrastructure.broadcast import InProcessBroadcaster


def get_ledger(conn: HTTPConnection) -> MarketLedger:
    ledger = getattr(conn.app.state, "ledger", None)
    if ledger is None:
        raise InternalError("Market ledger is not initialized")
    return ledger


def get_broadcaster(conn: HTTPConnection) -> InProcessBroadcaster:
    broadcaster = getattr(conn.app.state, "broadcaster", None)
    if broadcaster is None:
        raise InternalError("Broadcaster is not initialized")
    return broadcaster
