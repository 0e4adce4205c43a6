import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class MessagePublisher(Protocol):
    """Sink for real-time updates; the broker behind it is external."""

    async def publish(self, topic: str, payload: dict[str, Any]) -> None: ...


class LoggingPublisher:
    """Default publisher used when no broker is wired in."""

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        logger.info("Publish to %s: message id=%s", topic, payload.get("id"))
