import sys
from typing import Optional

from loguru import logger

from depwright.core.constants import LOG_FILE


def setup_logging(level: str = "INFO", log_file: Optional[str] = LOG_FILE):
    """
    Configure loguru sinks for command-line use.

    Args:
        level: Minimum level for the stderr sink
        log_file: Path of the rotating debug log, or None to skip it
    """
    logger.remove()  # Remove default handler

    # Add stderr handler only if available (not in windowed exe)
    if sys.stderr:
        logger.add(
            sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=level.upper(),
        )

    if log_file:
        logger.add(
            log_file,
            rotation="1 MB",
            retention="10 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
        )

    return logger
