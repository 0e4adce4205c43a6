from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.base.config.settings import is_production

# Responses under these prefixes may carry tokens or profile data
SENSITIVE_PATH_PREFIXES = ("/auth", "/me", "/admin")

# Swagger UI loads its assets from a CDN
DOCS_PATHS = {"/docs", "/docs/oauth2-redirect", "/redoc"}


def is_sensitive_path(path: str) -> bool:
    return any(
        path == prefix or path.startswith(prefix + "/")
        for prefix in SENSITIVE_PATH_PREFIXES
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers to every response and disables caching
    of token-bearing and profile responses."""

    def __init__(self, app, hsts: bool | None = None):
        super().__init__(app)
        self._hsts = is_production() if hsts is None else hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        path = request.url.path

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if path not in DOCS_PATHS:
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; frame-ancestors 'none'"
            )
        if self._hsts:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        if is_sensitive_path(path):
            response.headers["Cache-Control"] = (
                "private, no-cache, no-store, must-revalidate"
            )
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response
