import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter(tags=["Health"], prefix="")
logger = logging.getLogger(__name__)


@router.get("/health")
async def health(request: Request):
    """
    Health check endpoint.
    Returns 200 OK with database and Redis connectivity; "Degraded" if either
    configured dependency is unreachable.
    """
    result = {"status": "Healthy", "message": "Service is up and running."}

    session_factory = getattr(request.app.state, "db_session_factory", None)
    if session_factory is None:
        result["database"] = "not configured"
    else:
        try:
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
            result["database"] = "connected"
        except Exception:
            logger.exception("Database health check failed")
            result["database"] = "unavailable"
            result["status"] = "Degraded"

    redis_client = getattr(request.app.state, "redis_client", None)
    if redis_client is None:
        result["redis"] = "not configured"
    else:
        try:
            await redis_client.ping()
            result["redis"] = "connected"
        except Exception:
            logger.exception("Redis health check failed")
            result["redis"] = "unavailable"
            result["status"] = "Degraded"

    return JSONResponse(status_code=200, content=result)


@router.get("/")
async def root():
    return JSONResponse(
        status_code=200,
        content={"status": "Healthy", "message": "Service is up and running."},
    )
