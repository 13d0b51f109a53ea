import threading
from collections.abc import Hashable
from pathlib import Path
from typing import Generic, TypeVar

import pandas as pd

from diffs.store.base import Store

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class DiskStore(Generic[K, V], Store[K, V]):
    """Maintains a disk-backed jsonl table of key-value pairs.

    Writes stay in memory until `flush`, which rewrites the whole table into a
    sibling temp file and swaps it into place.
    """

    def __init__(self, store_path: Path) -> None:
        self.store_path = store_path

        if self.store_path.exists() and self.store_path.stat().st_size > 0:
            # dtype=False keeps hex digests from being coerced into numbers
            df = pd.read_json(
                self.store_path,
                orient="records",
                lines=True,
                dtype=False,
                convert_dates=False,
            )
            if df.empty or "key" not in df.columns:
                self._table = pd.DataFrame(columns=["key", "value"])
            else:
                self._table = df
        else:
            self._table = pd.DataFrame(columns=["key", "value"])

        self._table.set_index("key", inplace=True)
        self._lock = threading.RLock()

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._table["value"].get(key)

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._table.drop(index=key, errors="ignore", inplace=True)
            # Set the entire row to avoid pandas trying to align dict keys to columns.
            self._table.loc[key] = {"value": value}

    def remove(self, key: K) -> None:
        with self._lock:
            self._table.drop(index=key, errors="ignore", inplace=True)

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._table.index)

    def flush(self) -> None:
        with self._lock:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            snapshot = self._table.copy().reset_index(names="key")
            tmp_path = self.store_path.with_name(self.store_path.name + ".tmp")
            snapshot.to_json(tmp_path, orient="records", lines=True, double_precision=15)
            tmp_path.replace(self.store_path)
