"""Logging setup for the CLI and the bot."""
import logging
from typing import Optional

from shopgrade.config import config

LOG_FORMAT = "[%(asctime)s] %(name)s %(levelname)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Install one stream handler on the root logger. Safe to call twice."""
    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())
    if not any(getattr(h, "_shopgrade", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._shopgrade = True
        root.addHandler(handler)
    return root
