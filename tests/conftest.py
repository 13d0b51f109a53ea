from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from diffs.db import LOCAL_DATASET, ChunkDatabase, Dataset


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "db"


def _seed(root: Path, *values: object, name: str = LOCAL_DATASET) -> Dataset:
    database = ChunkDatabase.open(root)
    dataset = database.get_dataset(name)
    for value in values:
        dataset = database.commit(dataset, value)

    return dataset


@pytest.fixture()
def seed() -> Callable[..., Dataset]:
    """Commit `values` in order to a dataset of the local database at `root`."""
    return _seed


@pytest.fixture(autouse=True)
def restore_signal_handlers() -> Iterator[None]:
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.fixture(autouse=True)
def reset_loggers() -> Iterator[None]:
    yield
    for name in ("diffs", "uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers.clear()
