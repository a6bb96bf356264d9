"""Logging for the queue services and the assignment worker.

Console and rotating file output, plus BetterStack when a source token is
configured. Records carry the thread name because the worker can run in a
background thread next to the process that owns it.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from urllib.parse import urlsplit, urlunsplit
from logtail import LogtailHandler

from grievance_queue import settings

LOG_FORMAT = "%(asctime)s - %(name)s - [%(threadName)s] - %(levelname)s - %(message)s"


def redact_url(url: str) -> str:
    """Hide the password in a connection URL before it is logged."""
    parts = urlsplit(url)
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def _betterstack_handler(formatter: logging.Formatter):
    handler_kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
    if settings.BETTERSTACK_INGEST_HOST:
        handler_kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
    handler = LogtailHandler(**handler_kwargs)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> logging.Logger:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_FILE:
        file_handler = RotatingFileHandler(
            settings.LOGS_DIR / settings.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if settings.BETTERSTACK_SOURCE_TOKEN:
        try:
            root_logger.addHandler(_betterstack_handler(formatter))
            host_info = settings.BETTERSTACK_INGEST_HOST or "default (in.logs.betterstack.com)"
            root_logger.info(f"BetterStack logging enabled (host: {host_info})")
        except Exception as e:
            root_logger.warning(f"Failed to initialize BetterStack logging: {e}")

    # Connection chatter from the HTTP and Redis clients
    for name in ("urllib3", "redis"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("grievance_queue")


logger = setup_logging()
