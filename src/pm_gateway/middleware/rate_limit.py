"""Fixed-window rate limiting on /api/ paths, backed by Redis.

Rule: RATE_LIMIT_MAX_REQUESTS per client IP per RATE_LIMIT_WINDOW_SECONDS
(default 100 per 15 minutes).

    count = INCR ratelimit:{ip}
    if count == 1: EXPIRE key window
    if count > limit: 429 + Retry-After

The client IP honours the first X-Forwarded-For hop (reverse proxy aware).
If Redis is unreachable the request is let through and a warning logged:
the market keeps trading when the limiter's store is down.
"""

import logging

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.pm_common.errors import RateLimitError
from src.pm_common.redis_client import get_redis
from src.pm_common.response import error_response

logger = logging.getLogger(__name__)

_LIMITED_PREFIX = "/api/"


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.RATE_LIMIT_ENABLED or not request.url.path.startswith(_LIMITED_PREFIX):
            return await call_next(request)

        key = f"ratelimit:{client_ip(request)}"
        window = settings.RATE_LIMIT_WINDOW_SECONDS
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, window)
            ttl = await redis.ttl(key) if count > settings.RATE_LIMIT_MAX_REQUESTS else 0
        except (RedisError, OSError) as exc:
            logger.warning("Rate limiter unavailable, allowing request: %r", exc)
            return await call_next(request)

        if count > settings.RATE_LIMIT_MAX_REQUESTS:
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(ttl if ttl > 0 else window)},
            )
        return await call_next(request)
