from .config import GlobalOptions, LogOptions
from .db import LOCAL_DATASET, Database, DatabaseSpec, Dataset, SpecResolver
from .diagnostics import CaptureSession
from .errors import DatabaseError, DiffsError, SpecError
from .logging import configure_logger, get_logger, set_module_level
from .prompt import confirm
from .signals import SignalWatcher
from .version import __version__

__all__ = [
    "GlobalOptions",
    "LogOptions",
    "LOCAL_DATASET",
    "Database",
    "DatabaseSpec",
    "Dataset",
    "SpecResolver",
    "CaptureSession",
    "DiffsError",
    "DatabaseError",
    "SpecError",
    "configure_logger",
    "get_logger",
    "set_module_level",
    "confirm",
    "SignalWatcher",
    "__version__",
]
