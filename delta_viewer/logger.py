# delta_viewer/logger.py
import logging
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def get_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Return a module logger, configuring the root handler on first use."""
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level or logging.INFO, format=_DEFAULT_FORMAT)
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level)
    return logger
