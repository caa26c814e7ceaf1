"""Rate limiting middleware — Redis fixed window per minute.

Learn: Each client gets one counter per bucket per minute:
"taskhub:rl:{client}:{bucket}:{minute}". INCR and EXPIRE go out in a
single pipeline, so a counter never lives without its TTL.

Buckets:
- "auth": /api/auth/login and /api/auth/register (slows down
  credential stuffing and signup spam)
- "api": everything else

Redis is optional. Without it (not configured, down, or erroring mid-request)
requests pass through unlimited.
"""

import time

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from taskhub.redis_pool import get_redis

logger = structlog.get_logger()

AUTH_PATHS = ("/api/auth/login", "/api/auth/register")
WINDOW_SECONDS = 60


def client_key(request: Request, trust_forwarded: bool) -> str:
    """Identify the caller: first X-Forwarded-For hop behind a proxy, else the peer."""
    if trust_forwarded:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        default_rpm: int = 100,
        auth_rpm: int = 10,
        trust_forwarded: bool = False,
    ):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm
        self.trust_forwarded = trust_forwarded

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        is_auth = request.url.path.startswith(AUTH_PATHS)
        bucket = "auth" if is_auth else "api"
        limit = self.auth_rpm if is_auth else self.default_rpm

        now = time.time()
        window = int(now // WINDOW_SECONDS)
        client = client_key(request, self.trust_forwarded)
        key = f"taskhub:rl:{client}:{bucket}:{window}"

        try:
            async with redis.pipeline(transaction=True) as pipe:
                count, _ = await pipe.incr(key).expire(key, WINDOW_SECONDS * 2).execute()
        except RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > limit:
            retry_after = WINDOW_SECONDS - int(now % WINDOW_SECONDS)
            logger.info("rate_limit.exceeded", client=client, bucket=bucket, count=count)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Too many requests. Try again later.",
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - count))
        return response
