"""Logging setup for the service"""
import logging

from infrastructure.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure the ``hotel`` logger hierarchy once per process"""
    level = (level or get_settings().log_level).upper()
    root = logging.getLogger("hotel")
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.propagate = False
