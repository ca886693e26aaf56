"""
Logging helper for modules that want their own handler.

SECURITY RULES:
- NEVER log raw Gemini API keys; use the key index or the masked key
- NEVER log upstream error bodies at INFO level (may echo request data)
- NEVER log shopper contact details from product requests

Acceptable logging:
- High-level events (e.g., "Intent parsed", "Rotating from key 0 to key 1")
- Non-sensitive metadata (e.g., "category='audio', 8 candidates")
- Error codes and sanitized error messages
"""

import logging
from typing import Optional

from storefront.config import settings


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Module logger at LOG_LEVEL (or `level`), with one stream handler.

    >>> logger = get_logger(__name__)
    >>> logger.info("Key pool reset by admin")
    """
    logger = logging.getLogger(name)
    if level is None:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(handler)
        # The root handler from basicConfig would print every record twice
        logger.propagate = False

    return logger
