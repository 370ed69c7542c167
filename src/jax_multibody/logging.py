"""Package logger.

All modules log through the ``jax_multibody`` logger so that applications can
tune verbosity with a single call to :func:`set_logging_level`.
"""

import logging
from typing import Union

LOGGER_NAME = "jax_multibody"

_logger = logging.getLogger(LOGGER_NAME)
_logger.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Return the package logger."""
    return _logger


def set_logging_level(level: Union[int, str] = logging.WARNING) -> None:
    """Set the level of the package logger.

    Args:
        level: A :mod:`logging` level constant or its name (e.g. ``"DEBUG"``).
    """
    if isinstance(level, str):
        level = level.upper()
    _logger.setLevel(level)


def get_logging_level() -> int:
    return _logger.level


def debug(msg: str = "", *args, **kwargs) -> None:
    _logger.debug(msg, *args, **kwargs)


def info(msg: str = "", *args, **kwargs) -> None:
    _logger.info(msg, *args, **kwargs)


def warning(msg: str = "", *args, **kwargs) -> None:
    _logger.warning(msg, *args, **kwargs)


def error(msg: str = "", *args, **kwargs) -> None:
    _logger.error(msg, *args, **kwargs)
