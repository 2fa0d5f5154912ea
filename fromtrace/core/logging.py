"""Loguru sink setup for command line use"""

import sys
from typing import Optional

from loguru import logger

from fromtrace.core.config import settings


def setup_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink with a single stderr sink at ``level``"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
        "<cyan>{name}</cyan> - <level>{message}</level>",
    )
