"""
Logging module - shared logger configuration
"""
import logging

from lib.settings import settings

LOGGER_NAME = "affilia"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> logging.Logger:
    """Configure the root application logger once"""
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(settings.log_level.upper())

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.propagate = False

    return root


def get_logger(name: str) -> logging.Logger:
    """Child logger under the application namespace, e.g. affilia.api.routes.admin"""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


logger = setup_logging()
