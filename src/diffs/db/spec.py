from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

from diffs.db.database import ChunkDatabase, Database, RemoteDatabase
from diffs.errors import SpecError
from diffs.logging import get_logger

logger = get_logger("db.spec")

LOCAL_PROTOCOL = "nbs"
MEMORY_PROTOCOL = "mem"
REMOTE_PROTOCOLS = ("http", "https")


class DatabaseSpec:
    """A parsed database location.

    `protocol` is one of `nbs` (local directory), `mem` (in-process) or
    `http`/`https` (remote). The handle behind it is opened on first access to
    `database` and shared afterwards.
    """

    def __init__(self, location: str, protocol: str, path: str) -> None:
        self.location = location
        self.protocol = protocol
        self.path = path
        self._database: Database | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"DatabaseSpec(protocol={self.protocol!r}, path={self.path!r})"

    @classmethod
    def for_database(cls, location: str) -> DatabaseSpec:
        location = location.strip()
        if not location:
            raise SpecError("Empty database spec")

        if location == MEMORY_PROTOCOL:
            return cls(location, MEMORY_PROTOCOL, "")

        scheme, sep, rest = location.partition(":")
        # A one-letter scheme is a Windows drive, not a protocol.
        if not sep or len(scheme) == 1:
            return cls(location, LOCAL_PROTOCOL, location)

        scheme = scheme.lower()
        if scheme == LOCAL_PROTOCOL:
            if not rest:
                raise SpecError(f"Missing path in database spec {location!r}")
            return cls(location, LOCAL_PROTOCOL, rest)
        if scheme in REMOTE_PROTOCOLS:
            if not rest.startswith("//") or len(rest) <= 2:
                raise SpecError(f"Invalid database URL {location!r}")
            return cls(location, scheme, location)

        raise SpecError(f"Unsupported database protocol {scheme!r} in {location!r}")

    @property
    def is_remote(self) -> bool:
        return self.protocol in REMOTE_PROTOCOLS

    @property
    def database(self) -> Database:
        with self._lock:
            if self._database is None:
                self._database = self._open()
            return self._database

    def _open(self) -> Database:
        if self.protocol == MEMORY_PROTOCOL:
            return ChunkDatabase.in_memory()
        if self.is_remote:
            return RemoteDatabase(self.path)
        return ChunkDatabase.open(Path(self.path).expanduser())


class SpecResolver:
    """Resolves a location string into a `DatabaseSpec` at most once.

    The first successful resolution is cached for the life of the resolver.
    Failures are not cached: the error goes back to the caller and the next
    `get` tries again.
    """

    def __init__(
        self,
        location: str,
        resolve: Callable[[str], DatabaseSpec] = DatabaseSpec.for_database,
    ) -> None:
        self.location = location
        self._resolve = resolve
        self._spec: DatabaseSpec | None = None
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self._spec is not None

    def get(self) -> DatabaseSpec:
        with self._lock:
            if self._spec is None:
                spec = self._resolve(self.location)
                logger.debug("Resolved database spec %r -> %r", self.location, spec)
                self._spec = spec
            return self._spec
