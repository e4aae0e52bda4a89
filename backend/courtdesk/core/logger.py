# courtdesk/core/logger.py
"""
Shared application logger
"""
import logging
import sys

from courtdesk.core.config import settings
from courtdesk.middleware.correlation import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


def _configure() -> logging.Logger:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)
    return logging.getLogger("courtdesk")


logger = _configure()
