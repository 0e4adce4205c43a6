import logging

from src.base.middleware.request_context import RequestContextFilter


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names and a short logger name."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record):
        levelname = record.levelname
        color = self.COLORS.get(levelname)
        record.colored_levelname = (
            f"{color}{levelname}{self.COLORS['RESET']}" if color else levelname
        )

        # Last dotted component of the logger name, e.g. "refresh_service"
        name = (record.name or "unknown").split(".")[-1]
        record.filename_only = "app" if name == "__main__" else name

        if not hasattr(record, "correlation_id"):
            record.correlation_id = "-"
        event_type = getattr(record, "event_type", None)
        record.event_suffix = f" [{event_type}]" if event_type else ""

        return super().format(record)


class LoggingConfig:
    """Configuration class for application logging setup."""

    FORMAT = (
        "%(asctime)s | %(colored_levelname)s | %(correlation_id)s | "
        "%(filename_only)s | %(message)s%(event_suffix)s"
    )

    @staticmethod
    def setup_logging(log_level: int = logging.INFO) -> None:
        """
        Configure root logging with request context (correlation ID, client IP,
        user agent) on every record.

        Args:
            log_level: The logging level (default: logging.INFO)
        """
        logger = logging.getLogger()
        logger.setLevel(log_level)

        # Only add handlers if none exist to avoid duplicates
        if not logger.hasHandlers():
            handler = logging.StreamHandler()
            handler.setFormatter(
                ColoredFormatter(LoggingConfig.FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )
            handler.addFilter(RequestContextFilter())
            logger.addHandler(handler)
