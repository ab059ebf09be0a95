import os
import logging
from typing import Optional

VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def get_log_level(level: Optional[str] = None) -> str:
    """Resolve the log level, falling back to the LOG_LEVEL environment variable."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_level not in VALID_LEVELS:
        return "INFO"
    return log_level


def get_uvicorn_log_level(level: Optional[str] = None) -> str:
    """Get log level for Uvicorn (lowercase)."""
    return get_log_level(level).lower()


def setup_logging(level: Optional[str] = None) -> None:
    """Setup simple logging configuration."""
    log_level = get_log_level(level)

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    logging.getLogger("uvicorn").setLevel(getattr(logging, log_level))
    logging.getLogger("uvicorn.access").setLevel(getattr(logging, log_level))
    logging.getLogger("uvicorn.error").setLevel(getattr(logging, log_level))

    # Keep some loggers quiet unless debugging
    if log_level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level: {log_level}")
