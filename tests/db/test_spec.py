from __future__ import annotations

from pathlib import Path

import pytest

from diffs.db import ChunkDatabase, RemoteDatabase
from diffs.db.spec import DatabaseSpec, SpecResolver
from diffs.errors import SpecError


@pytest.mark.parametrize(
    ("location", "protocol", "path"),
    [
        ("/tmp/x", "nbs", "/tmp/x"),
        ("relative/db", "nbs", "relative/db"),
        ("nbs:/tmp/x", "nbs", "/tmp/x"),
        ("C:\\data\\db", "nbs", "C:\\data\\db"),
        ("mem", "mem", ""),
        ("http://localhost:8000/db", "http", "http://localhost:8000/db"),
        ("https://serve.example.com/mydb", "https", "https://serve.example.com/mydb"),
    ],
)
def test_for_database(location: str, protocol: str, path: str) -> None:
    spec = DatabaseSpec.for_database(location)
    assert spec.protocol == protocol
    assert spec.path == path
    assert spec.location == location


@pytest.mark.parametrize("location", ["", "   ", "nbs:", "https:", "http:/x", "aws://bucket/db"])
def test_for_database_rejects(location: str) -> None:
    with pytest.raises(SpecError):
        DatabaseSpec.for_database(location)


def test_spec_error_is_value_error() -> None:
    assert issubclass(SpecError, ValueError)


def test_database_is_opened_once(tmp_path: Path) -> None:
    spec = DatabaseSpec.for_database(str(tmp_path / "db"))

    database = spec.database

    assert isinstance(database, ChunkDatabase)
    assert spec.database is database
    assert (tmp_path / "db").is_dir()


def test_mem_and_remote_databases() -> None:
    assert isinstance(DatabaseSpec.for_database("mem").database, ChunkDatabase)

    remote = DatabaseSpec.for_database("https://serve.example.com/mydb").database
    assert isinstance(remote, RemoteDatabase)
    assert remote.base_url == "https://serve.example.com/mydb"
    assert DatabaseSpec.for_database("https://x.test").is_remote


def test_resolver_resolves_once() -> None:
    calls: list[str] = []

    def resolve(location: str) -> DatabaseSpec:
        calls.append(location)
        return DatabaseSpec.for_database(location)

    resolver = SpecResolver("mem", resolve)
    assert not resolver.resolved

    specs = [resolver.get() for _ in range(5)]

    assert calls == ["mem"]
    assert resolver.resolved
    assert all(spec is specs[0] for spec in specs)
    assert all(spec.database is specs[0].database for spec in specs)


def test_resolver_retries_after_failure() -> None:
    attempts: list[str] = []

    def flaky(location: str) -> DatabaseSpec:
        attempts.append(location)
        if len(attempts) == 1:
            raise SpecError("not yet")
        return DatabaseSpec.for_database(location)

    resolver = SpecResolver("mem", flaky)

    with pytest.raises(SpecError, match="not yet"):
        resolver.get()
    assert not resolver.resolved

    first = resolver.get()
    assert resolver.get() is first
    assert len(attempts) == 2


def test_resolver_surfaces_parse_errors() -> None:
    resolver = SpecResolver("gs://bucket/db")

    with pytest.raises(SpecError, match="Unsupported database protocol"):
        resolver.get()
    with pytest.raises(SpecError):
        resolver.get()
