from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import backoff
import httpx
from blake3 import blake3

from diffs.env import REMOTE_MAX_TRIES, REMOTE_TIMEOUT
from diffs.errors import DatabaseError
from diffs.logging import get_logger
from diffs.store import DiskStore, MemoryStore, Store

logger = get_logger("db")

LOCAL_DATASET = "local"

HEADS_FILE = "heads.jsonl"
CHUNKS_FILE = "chunks.jsonl"


@dataclass(frozen=True)
class Dataset:
    """A named pointer into a database's commit history.

    `head` is None when the dataset has never been committed to (or was deleted).
    """

    name: str
    head: str | None = None


@dataclass(frozen=True)
class Commit:
    hash: str
    value: Any
    parents: list[str] = field(default_factory=list)


class Database(ABC):
    @abstractmethod
    def datasets(self) -> list[str]: ...

    @abstractmethod
    def get_dataset(self, name: str) -> Dataset: ...

    @abstractmethod
    def commit(self, dataset: Dataset, value: Any) -> Dataset: ...

    @abstractmethod
    def delete(self, dataset: Dataset) -> Dataset: ...

    @abstractmethod
    def history(self, dataset: Dataset) -> list[Commit]: ...

    def head_value(self, dataset: Dataset) -> Any | None:
        commits = self.history(dataset)
        return commits[0].value if commits else None


def chunk_hash(chunk: dict[str, Any]) -> str:
    encoded = json.dumps(chunk, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return blake3(encoded.encode("utf-8")).hexdigest()


class ChunkDatabase(Database):
    """Content-addressed database.

    Every commit is stored as a JSON chunk keyed by the BLAKE3 hash of its
    encoding. Dataset heads are kept in a separate store so that moving or
    dropping a head never rewrites history.
    """

    def __init__(self, heads: Store[str, str], chunks: Store[str, dict[str, Any]]) -> None:
        self._heads = heads
        self._chunks = chunks
        self._lock = threading.RLock()

    @classmethod
    def open(cls, root: Path) -> ChunkDatabase:
        if root.exists() and not root.is_dir():
            raise DatabaseError(f"Database path {root} is not a directory")

        root.mkdir(parents=True, exist_ok=True)
        logger.debug("Opening local database at %s", root)
        try:
            heads = DiskStore(root / HEADS_FILE)
            chunks = DiskStore(root / CHUNKS_FILE)
        except ValueError as err:
            raise DatabaseError(f"Database at {root} is corrupt: {err}") from err

        return cls(heads, chunks)

    @classmethod
    def in_memory(cls) -> ChunkDatabase:
        return cls(MemoryStore(), MemoryStore())

    def datasets(self) -> list[str]:
        with self._lock:
            return sorted(self._heads.keys())

    def get_dataset(self, name: str) -> Dataset:
        if not name:
            raise DatabaseError("Dataset name must not be empty")

        with self._lock:
            return Dataset(name=name, head=self._heads.get(name))

    def commit(self, dataset: Dataset, value: Any) -> Dataset:
        with self._lock:
            current = self._heads.get(dataset.name)
            if current != dataset.head:
                raise DatabaseError(
                    f"Dataset {dataset.name} moved from {dataset.head} to {current}"
                )

            chunk = {"value": value, "parents": [current] if current else []}
            try:
                digest = chunk_hash(chunk)
            except TypeError as err:
                raise DatabaseError(f"Value is not JSON serializable: {err}") from err

            self._chunks.put(digest, chunk)
            self._chunks.flush()
            self._heads.put(dataset.name, digest)
            self._heads.flush()

        return Dataset(name=dataset.name, head=digest)

    def delete(self, dataset: Dataset) -> Dataset:
        with self._lock:
            head = self._heads.get(dataset.name)
            if head is None:
                return Dataset(name=dataset.name)

            self._heads.remove(dataset.name)
            self._heads.flush()

            retained: set[str] = set()
            for other in self._heads.keys():
                retained |= self._reachable(self._heads.get(other))

            dropped = self._reachable(head) - retained
            for digest in dropped:
                self._chunks.remove(digest)
            self._chunks.flush()

        logger.info("Deleted dataset %s (%d commits)", dataset.name, len(dropped))
        return Dataset(name=dataset.name)

    def history(self, dataset: Dataset) -> list[Commit]:
        commits: list[Commit] = []
        with self._lock:
            digest = self._heads.get(dataset.name)
            while digest is not None:
                chunk = self._chunks.get(digest)
                if chunk is None:
                    raise DatabaseError(f"Missing chunk {digest} in dataset {dataset.name}")
                if not isinstance(chunk, dict):
                    raise DatabaseError(f"Corrupt chunk {digest} in dataset {dataset.name}")

                parents = list(chunk.get("parents") or [])
                commits.append(Commit(hash=digest, value=chunk.get("value"), parents=parents))
                digest = parents[0] if parents else None

        return commits

    def _reachable(self, head: str | None) -> set[str]:
        seen: set[str] = set()
        pending = [head] if head else []
        while pending:
            digest = pending.pop()
            if digest in seen:
                continue

            seen.add(digest)
            chunk = self._chunks.get(digest)
            if isinstance(chunk, dict):
                pending.extend(chunk.get("parents") or [])

        return seen


def _on_backoff(details: Any) -> None:
    logger.warning(
        "Remote database backoff triggered by exception: %s (tries=%s, next_wait=%s).",
        details.get("exception"),
        details.get("tries"),
        details.get("wait"),
    )


class RemoteDatabase(Database):
    """Database served over HTTP(S).

    Endpoints are relative to `base_url`:
    `GET|POST|DELETE /datasets/{name}` and `GET /datasets/{name}/history`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = REMOTE_TIMEOUT,
        max_tries: int = REMOTE_MAX_TRIES,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._send = backoff.on_exception(
            wait_gen=backoff.expo,
            exception=httpx.TransportError,
            max_tries=max_tries,
            on_backoff=_on_backoff,
        )(self._send_once)

    def close(self) -> None:
        self._client.close()

    def datasets(self) -> list[str]:
        response = self._request("GET", "/datasets")
        return sorted(response.json())

    def get_dataset(self, name: str) -> Dataset:
        response = self._request("GET", self._dataset_path(name), allow_missing=True)
        if response.status_code == httpx.codes.NOT_FOUND:
            return Dataset(name=name)

        return Dataset(name=name, head=response.json().get("head"))

    def commit(self, dataset: Dataset, value: Any) -> Dataset:
        response = self._request(
            "POST",
            self._dataset_path(dataset.name),
            json={"value": value, "head": dataset.head},
        )
        return Dataset(name=dataset.name, head=response.json().get("head"))

    def delete(self, dataset: Dataset) -> Dataset:
        self._request("DELETE", self._dataset_path(dataset.name), allow_missing=True)
        return Dataset(name=dataset.name)

    def history(self, dataset: Dataset) -> list[Commit]:
        response = self._request(
            "GET", self._dataset_path(dataset.name) + "/history", allow_missing=True
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return []

        return [
            Commit(hash=row["hash"], value=row.get("value"), parents=list(row.get("parents") or []))
            for row in response.json()
        ]

    def _dataset_path(self, name: str) -> str:
        if not name:
            raise DatabaseError("Dataset name must not be empty")
        return f"/datasets/{quote(name, safe='')}"

    def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return self._client.request(method, url, **kwargs)

    def _request(
        self, method: str, path: str, *, allow_missing: bool = False, **kwargs: Any
    ) -> httpx.Response:
        url = self.base_url + path
        try:
            response = self._send(method, url, **kwargs)
        except httpx.TransportError as err:
            raise DatabaseError(f"{method} {url} failed: {err}") from err

        if allow_missing and response.status_code == httpx.codes.NOT_FOUND:
            return response
        if response.is_error:
            raise DatabaseError(f"{method} {url} returned {response.status_code}: {response.text}")

        return response
