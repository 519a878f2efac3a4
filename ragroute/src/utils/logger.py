"""
ragroute - Logging
===================
Logger factory for consistent, readable log output across all ragroute
modules.

Verbosity is driven by ``settings.LOG_LEVEL`` when set, otherwise by
``settings.ENV``:
  • ``"dev"``  → DEBUG level
  • ``"prod"`` → WARNING level

Only the ``ragroute`` logger hierarchy is configured; the root logger and
third-party loggers are left alone.

Usage:
    from ragroute.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys

from ragroute.config.settings import settings

_ENV_LEVEL_MAP = {
    "dev": logging.DEBUG,
    "prod": logging.WARNING,
}


def _resolve_default_level() -> int:
    if settings.LOG_LEVEL:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if isinstance(level, int):
            return level
    return _ENV_LEVEL_MAP.get(settings.ENV, logging.INFO)


_DEFAULT_LEVEL = _resolve_default_level()


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Create and return a named logger with a standardised formatter.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit logging level override.  If *None*, the level is
               derived from ``settings.LOG_LEVEL`` / ``settings.ENV``.

    Returns:
        A configured ``logging.Logger`` instance.
    """
    resolved_level = level if level is not None else _DEFAULT_LEVEL
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(resolved_level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(resolved_level)
        console_handler.setFormatter(logging.Formatter(fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(console_handler)

        # Handlers live on each module logger; propagating would print twice.
        logger.propagate = False

    return logger
