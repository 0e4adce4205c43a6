import hashlib
import json
import logging

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from src.base.errors import ApiError
from src.base.infra.redis_rate_limiter import (
    RateLimitConfig,
    RateLimitStatus,
    RedisRateLimiter,
)
from src.base.middleware.request_context import client_ip

logger = logging.getLogger(__name__)

# Requests per minute for each unauthenticated auth endpoint
AUTH_RATE_LIMITS = {
    ("POST", "/auth/login"): RateLimitConfig("auth.login", 5),
    ("POST", "/auth/register"): RateLimitConfig("auth.register", 3),
    ("POST", "/auth/refresh"): RateLimitConfig("auth.refresh", 10),
    ("POST", "/auth/logout"): RateLimitConfig("auth.logout", 20),
}


async def rate_limit_identifier(request: Request) -> str:
    """Who a request counts against: the refresh token on /auth/refresh, else the IP."""
    if request.url.path == "/auth/refresh":
        try:
            body = json.loads(await request.body() or b"null")
        except ValueError:
            body = None
        token = body.get("refresh_token") if isinstance(body, dict) else None
        if isinstance(token, str) and token:
            return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()
    return "ip:" + client_ip(request)


def apply_rate_limit_headers(response: Response, limit: RateLimitStatus) -> None:
    response.headers["X-RateLimit-Limit"] = str(limit.limit)
    response.headers["X-RateLimit-Remaining"] = str(limit.remaining)
    response.headers["X-RateLimit-Reset"] = str(limit.reset_at)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-endpoint request limits for the auth routes, counted in Redis.
    Over-limit requests get 429 with Retry-After; allowed ones carry the
    X-RateLimit-* headers. Without Redis requests pass unchanged.

    Expects ``app.state.rate_limiter``.
    """

    async def dispatch(self, request: Request, call_next):
        config = AUTH_RATE_LIMITS.get((request.method, request.url.path))
        limiter: RedisRateLimiter | None = getattr(
            request.app.state, "rate_limiter", None
        )
        if config is None or limiter is None or not limiter.enabled:
            return await call_next(request)

        identifier = await rate_limit_identifier(request)
        limit = await limiter.check_and_consume(config, identifier)
        if limit is None:
            return await call_next(request)

        if not limit.is_allowed:
            error = ApiError(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "rate_limit_exceeded",
                "Too many attempts, please try again later",
            )
            response = JSONResponse(
                status_code=error.status_code,
                content={**error.to_content(), "retry_after": limit.retry_after},
            )
            apply_rate_limit_headers(response, limit)
            response.headers["Retry-After"] = str(limit.retry_after)
            return response

        response = await call_next(request)
        apply_rate_limit_headers(response, limit)
        return response
