"""Rate limiting middleware — Redis fixed-window counter per IP.

Learn: Each client IP gets one counter per minute in Redis, keyed
"livecast:rl:{ip}:{bucket}:{minute}". Event triggers (POST /api/events/*)
have their own, stricter bucket: every trigger fans out to all viewers of
a campaign, so a runaway script is expensive.

Rate limiting is skipped entirely when Redis is not configured or not
reachable; it must never take the API down with it.
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

TRIGGER_PREFIX = "/api/events/"


def bucket_for(request: Request) -> str:
    if request.method == "POST" and request.url.path.startswith(TRIGGER_PREFIX):
        return "trigger"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP requests-per-minute limit, backed by Redis."""

    def __init__(self, app, default_rpm: int = 120, trigger_rpm: int = 30):
        super().__init__(app)
        self.limits = {"api": default_rpm, "trigger": trigger_rpm}

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            from livecast.redis_pool import get_redis

            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket = bucket_for(request)
        rpm = self.limits[bucket]
        key = f"livecast:rl:{client_ip}:{bucket}:{int(time.time() // 60)}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
