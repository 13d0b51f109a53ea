from .database import (
    LOCAL_DATASET,
    ChunkDatabase,
    Commit,
    Database,
    Dataset,
    RemoteDatabase,
)
from .spec import DatabaseSpec, SpecResolver

__all__ = [
    "LOCAL_DATASET",
    "ChunkDatabase",
    "Commit",
    "Database",
    "Dataset",
    "RemoteDatabase",
    "DatabaseSpec",
    "SpecResolver",
]
