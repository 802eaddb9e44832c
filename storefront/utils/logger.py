"""
Logging configuration

``log`` is the application logger. ``audit_log`` is the same logger bound
with ``audit=True``; sign-in, sign-out and password reset events go through
it so they can be routed to their own file.
"""
from loguru import logger
import os
import sys
from storefront.config import get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def is_audit_record(record) -> bool:
    return bool(record["extra"].get("audit"))


def setup_logger(settings=None):
    """Configure sinks for the current settings and return the logger."""
    settings = settings or get_settings()
    logger.remove()

    # Structured lines in production, colour for local work
    if settings.is_production:
        logger.add(sys.stdout, serialize=True, level=settings.log_level)
    else:
        logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if not settings.log_dir:
        return logger

    logger.add(
        os.path.join(settings.log_dir, "storefront_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO",
        filter=lambda record: not is_audit_record(record),
    )

    logger.add(
        os.path.join(settings.log_dir, "auth_audit_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="180 days",
        level="INFO",
        filter=is_audit_record,
    )

    logger.add(
        os.path.join(settings.log_dir, "errors_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="90 days",
        level="ERROR",
    )

    return logger


log = setup_logger()
audit_log = log.bind(audit=True)
