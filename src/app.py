import logging

from dotenv import load_dotenv
from fastapi import FastAPI

from src.base.config.logging_config import LoggingConfig
from src.base.config.openapi_config import setup_openapi
from src.base.core.lifespan import lifespan
from src.base.errors import register_exception_handlers
from src.base.middleware.global_exception_handler_middleware import (
    GlobalExceptionHandlerMiddleware,
)
from src.base.middleware.jwt_middleware import JWTMiddleware
from src.base.middleware.rate_limit_middleware import RateLimitMiddleware
from src.base.middleware.request_context import RequestContextMiddleware
from src.base.middleware.security_headers_middleware import (
    SecurityHeadersMiddleware,
)
from src.base.routes.health import router as health_router
from src.domain.routes.auth_routes import router as auth_router
from src.domain.routes.chat_routes import router as chat_router
from src.domain.routes.user_routes import router as user_router

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the application. Without the lifespan, callers populate app.state."""
    app = FastAPI(
        title="Chat Auth API",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )

    setup_openapi(app)
    register_exception_handlers(app)

    # --- Middleware --- (last added runs first)
    app.add_middleware(JWTMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(GlobalExceptionHandlerMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)

    # --- Routes ---
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(chat_router)
    return app


# --- Logging configuration ---
LoggingConfig.setup_logging()
logger.info("Starting FastAPI application")

app = create_app()
