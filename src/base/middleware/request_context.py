import logging
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Request-scoped properties attached to every log record.
# Keys: correlation_id, client_ip, user_agent.
request_context: ContextVar[dict[str, str] | None] = ContextVar(
    "request_context", default=None
)

logger = logging.getLogger(__name__)


def set_request_context(key: str, value: str) -> None:
    """Set a key in the request context. Creates a new dict if needed."""
    ctx = request_context.get(None)
    if ctx is None:
        ctx = {}
        request_context.set(ctx)
    ctx[key] = value


def get_request_context(key: str, default: str = "") -> str:
    """Get a value from the request context."""
    ctx = request_context.get(None)
    if ctx is None:
        return default
    return ctx.get(key, default)


def reset_request_context() -> None:
    """Reset the request context. Call at the start of each request."""
    request_context.set(None)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a correlation ID and records caller IP and user agent for logging."""

    async def dispatch(self, request: Request, call_next):
        reset_request_context()
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        set_request_context("correlation_id", correlation_id)
        set_request_context("client_ip", client_ip(request))
        set_request_context("user_agent", request.headers.get("user-agent", "unknown"))

        logger.debug("Request %s %s started", request.method, request.url.path)

        response: Response = await call_next(request)
        response.headers["x-correlation-id"] = correlation_id
        return response


class RequestContextFilter(logging.Filter):
    """Logging filter that adds all request context properties to log records."""

    def filter(self, record):
        ctx = request_context.get(None) or {}
        record.correlation_id = ctx.get("correlation_id", "-")
        for key, value in ctx.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
