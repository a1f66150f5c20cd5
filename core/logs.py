import sys
from typing import Optional

from loguru import logger


def configure_logging(level: str = "DEBUG", log_file: Optional[str] = None) -> None:
    """Replace loguru's default sink with a console sink and a daily log file."""
    logger.remove()
    logger.add(sys.stderr, level=level, colorize=True)
    if log_file:
        logger.add(
            log_file,
            level=level,
            rotation="00:00",
            retention="14 days",
            enqueue=True,
        )
