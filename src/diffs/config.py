from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    """Holds process-wide CLI options, parsed once per run."""

    db: str
    trace: Path | None = None
    cpu: Path | None = None
    version: bool = False


@dataclass(frozen=True, slots=True)
class LogOptions:
    """Logging setup handed to `configure_logger`.

    `prefix` stamps every line with time, level and logger name, which is what
    a long-running server wants; one-shot commands print bare messages.
    """

    prefix: bool = False
    level: int | str = logging.INFO
    color: bool | None = None
