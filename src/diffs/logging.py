from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

from diffs.config import LogOptions

__all__ = ["configure_logger", "get_logger", "set_module_level"]

_DEFAULT_LOGGER_NAME = "diffs"
# Third-party loggers that write through the same handler.
_SHARED_LOGGER_NAMES = ("uvicorn", "uvicorn.error", "uvicorn.access")

_PREFIX_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_BARE_FORMAT = "%(message)s"


def _normalize_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        upper = level.upper()
        if upper.isdigit():
            return int(upper)
        resolved = logging.getLevelName(upper)
        if isinstance(resolved, str):
            raise ValueError(f"Unknown logging level: {level}")
        return resolved
    raise TypeError("Logging level must be an int or str.")


def _build_handler(stream: TextIO, options: LogOptions) -> logging.Handler:
    use_color = options.color
    if use_color is None:
        is_tty = getattr(stream, "isatty", lambda: False)()
        use_color = is_tty and os.name != "nt"

    if use_color:
        return RichHandler(
            console=Console(file=stream),
            show_time=options.prefix,
            show_level=options.prefix,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        logging.Formatter(
            fmt=_PREFIX_FORMAT if options.prefix else _BARE_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def configure_logger(
    *,
    stream: TextIO | None = None,
    options: LogOptions | None = None,
    module_levels: Mapping[str | None, int | str] | None = None,
) -> None:
    """Configure the root diffs logger.

    Parameters
    ----------
    stream:
        Stream to write logs to. Defaults to stderr.
    options:
        Prefixing, level and color settings. Colors default to auto
        (enabled for TTYs).
    module_levels:
        Optional per-module overrides, keyed by the name passed to `get_logger`.
    """

    options = options or LogOptions()
    handler = _build_handler(stream or sys.stderr, options)
    level = _normalize_level(options.level)

    for name in (_DEFAULT_LOGGER_NAME, *_SHARED_LOGGER_NAMES):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    if module_levels:
        for module_name, module_level in module_levels.items():
            set_module_level(module_name, module_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a namespaced logger under the diffs root."""
    full_name = _DEFAULT_LOGGER_NAME if not name else f"{_DEFAULT_LOGGER_NAME}.{name}"
    return logging.getLogger(full_name)


def set_module_level(name: str | None, level: int | str) -> None:
    """Set logging level for a specific diffs module."""
    logger = get_logger(name)
    logger.setLevel(_normalize_level(level))
