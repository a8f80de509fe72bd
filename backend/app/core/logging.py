"""Structured JSON logging configuration."""
import logging
import sys
from pythonjsonlogger import jsonlogger
from app.core.config import settings
from app.middleware.request_id import RequestIdFilter

# Loggers that are too chatty at INFO while a large import is running.
_NOISY_LOGGERS = ("sqlalchemy.engine", "multipart.multipart")


def setup_logging() -> None:
    """Configure JSON structured logging for production, human-readable for dev."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        logging.root.handlers = [handler]
        logging.root.setLevel(level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
