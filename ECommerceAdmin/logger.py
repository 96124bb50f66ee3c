"""
Logging configuration for the admin client.

Provides a namespaced logger whose level comes from ``Config.LOG_LEVEL``.
"""
import logging
import sys

from ECommerceAdmin.config import Config

LOG_LEVEL = Config.LOG_LEVEL.upper()
logger = logging.getLogger("ecommerce_admin")
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

logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (will be appended to 'ecommerce_admin')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"ecommerce_admin.{name}")
    return logger
