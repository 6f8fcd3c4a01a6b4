"""
Logging configuration for Civic Issue Hub.

Call configure_logging() once at startup (the API does it in main.py,
scripts do it in main()). Modules keep using logging.getLogger(__name__).
"""

import logging
import sys
from typing import Optional

from civic_hub.core.settings import settings

_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the root handler exactly once."""
    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = logging.getLevelName((level or settings.LOG_LEVEL or "INFO").upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    root.setLevel(resolved)

    # uvicorn may already have installed handlers
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    _CONFIGURED = True
