import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.base.auth.auth_core import AccessTokenValidator, TokenFailure
from src.base.errors import ApiError, error_response

logger = logging.getLogger(__name__)

# Paths that don't require an access token
WHITELIST = {
    "/",
    "/health",
    "/docs",
    "/docs/oauth2-redirect",
    "/openapi.json",
    "/favicon.ico",
    "/auth/login",
    "/auth/register",
    "/auth/refresh",
    "/auth/logout",
    "/auth/status",
}


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class JWTMiddleware(BaseHTTPMiddleware):
    """
    Validates the bearer access token on every non-public request and stores
    the resolved user in ``request.state.user``.

    Expects ``app.state.access_token_validator`` and
    ``app.state.db_session_factory`` to be set.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        method = request.method
        request.state.user = None

        if path in WHITELIST or method == "OPTIONS":
            logger.debug("Skipping auth for public path: %s %s", method, path)
            return await call_next(request)

        validator: AccessTokenValidator = request.app.state.access_token_validator
        token = extract_bearer_token(request)

        async with request.app.state.db_session_factory() as session:
            result = await validator.validate(session, token)

        if isinstance(result, TokenFailure):
            logger.warning(
                "Rejected access token for %s %s: %s", method, path, result.value
            )
            response = error_response(ApiError.from_failure(result))
            response.headers["WWW-Authenticate"] = "Bearer"
            return response

        request.state.user = result
        logger.debug("Authenticated user_id=%s for %s %s", result.id, method, path)
        return await call_next(request)
