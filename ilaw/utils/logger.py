# ilaw/utils/logger.py
import logging
import sys
from typing import Optional

from ilaw.utils.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(name: str = "ilaw", level: str = settings.log_level, log_file: Optional[str] = settings.log_file) -> logging.Logger:
    """
    Sets up the application logger: stdout always, plus a file when one is
    configured. Calling it again replaces the handlers instead of stacking them.
    """
    app_logger = logging.getLogger(name)
    # Unknown level names fall back to INFO
    app_logger.setLevel(getattr(logging, level, logging.INFO))

    # Hot-reloads import this module again
    if app_logger.hasHandlers():
        app_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)

    # Keep uvicorn's root handlers from printing every line twice
    app_logger.propagate = False
    return app_logger


logger = configure_logging()
