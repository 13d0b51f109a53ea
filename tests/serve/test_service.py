from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from diffs.db import ChunkDatabase, Dataset, SpecResolver
from diffs.serve.accounts import SANDBOX, Account
from diffs.serve.service import new_service
from diffs.version import __version__

SANDBOX_AUTH = {"Authorization": str(SANDBOX.id)}


@pytest_asyncio.fixture()
async def client(db_path: Path) -> AsyncIterator[AsyncClient]:
    service = new_service(str(db_path), [SANDBOX, Account(id=7, name="Acme")])
    async with AsyncClient(
        transport=ASGITransport(app=service), base_url="http://test"
    ) as ac:
        yield ac


async def test_root(client: AsyncClient) -> None:
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["version"] == __version__


@pytest.mark.parametrize("auth", [None, "", "nope", "42"])
async def test_pull_rejects_unknown_account(client: AsyncClient, auth: str | None) -> None:
    headers = {"Authorization": auth} if auth is not None else {}

    response = await client.post("/pull", json={"clientID": "c1"}, headers=headers)

    assert response.status_code == 403


async def test_pull_empty_database(client: AsyncClient) -> None:
    response = await client.post("/pull", json={"clientID": "c1"}, headers=SANDBOX_AUTH)

    assert response.status_code == 200
    assert response.json() == {"stateID": "", "patch": []}


async def test_pull_returns_head_value(
    client: AsyncClient, db_path: Path, seed: Callable[..., Dataset]
) -> None:
    head = seed(db_path, {"todo": 1}, {"todo": 2}).head

    response = await client.post(
        "/pull", json={"clientID": "c1", "baseStateID": ""}, headers={"Authorization": "7"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["stateID"] == head
    assert body["patch"] == [{"op": "replace", "path": "", "value": {"todo": 2}}]


async def test_pull_up_to_date_client(
    client: AsyncClient, db_path: Path, seed: Callable[..., Dataset]
) -> None:
    head = seed(db_path, "v1").head

    response = await client.post(
        "/pull", json={"clientID": "c1", "baseStateID": head}, headers=SANDBOX_AUTH
    )

    assert response.json() == {"stateID": head, "patch": []}


async def test_pull_after_drop_removes(
    client: AsyncClient, db_path: Path, seed: Callable[..., Dataset]
) -> None:
    head = seed(db_path, "v1").head
    database = ChunkDatabase.open(db_path)
    database.delete(database.get_dataset("local"))

    response = await client.post(
        "/pull", json={"clientID": "c1", "baseStateID": head}, headers=SANDBOX_AUTH
    )

    assert response.json() == {"stateID": "", "patch": [{"op": "remove", "path": "", "value": None}]}


async def test_pull_requires_client_id(client: AsyncClient) -> None:
    response = await client.post("/pull", json={}, headers=SANDBOX_AUTH)

    assert response.status_code == 422


async def test_database_errors_become_500(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "db"
    not_a_dir.write_text("x")
    service = new_service(str(not_a_dir), [SANDBOX])

    async with AsyncClient(transport=ASGITransport(app=service), base_url="http://test") as ac:
        response = await ac.post("/pull", json={"clientID": "c1"}, headers=SANDBOX_AUTH)

    assert response.status_code == 500
    assert "not a directory" in response.json()["detail"]


async def test_pull_uses_shared_resolver(db_path: Path, seed: Callable[..., Dataset]) -> None:
    seed(db_path, {"a": 1})
    resolver = SpecResolver(str(db_path))
    service = new_service(str(db_path), [SANDBOX], resolver=resolver)

    async with AsyncClient(transport=ASGITransport(app=service), base_url="http://test") as ac:
        response = await ac.post("/pull", json={"clientID": "c1"}, headers=SANDBOX_AUTH)

    assert response.status_code == 200
    assert resolver.resolved
