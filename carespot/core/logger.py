import logging
import sys
from carespot.core.config import settings

def setup_logging(level: str = settings.LOG_LEVEL):
    """
    Configure the ``carespot`` logger hierarchy.

    Area loggers come from ``get_logger`` and propagate to the stdout handler
    installed here.
    """
    logger = logging.getLogger("carespot")
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        logger.addHandler(handler)

    return logger

logger = setup_logging()

def get_logger(area: str) -> logging.Logger:
    return logger.getChild(area)
