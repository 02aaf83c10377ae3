"""
Logging configuration for the stage proxy.

Provides a centralized logger whose level comes from settings.LOG_LEVEL.
"""
import logging
import sys

from stage_proxy.settings import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
logger = logging.getLogger("stage_proxy")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

# Keep proxy logs out of the root logger (uvicorn installs its own handlers)
logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (will be appended to 'stage_proxy')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"stage_proxy.{name}")
    return logger
