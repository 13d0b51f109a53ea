from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from diffs.env import ACCOUNTS_FILE
from diffs.errors import DiffsError

SANDBOX_ACCOUNT_ID = 0


@dataclass(frozen=True)
class Account:
    id: int
    name: str
    client_view_url: str = ""


SANDBOX = Account(id=SANDBOX_ACCOUNT_ID, name="Sandbox")


def accounts(path: str | Path | None = ACCOUNTS_FILE) -> list[Account]:
    """Return the accounts allowed to talk to the service.

    Reads a JSON list of `{"id", "name", "clientViewURL"}` objects from `path`
    when one is configured, otherwise only the sandbox account exists.
    """
    if not path:
        return [SANDBOX]

    try:
        rows = json.loads(Path(path).read_text(encoding="utf-8"))
        return [
            Account(
                id=int(row["id"]),
                name=str(row["name"]),
                client_view_url=str(row.get("clientViewURL", "")),
            )
            for row in rows
        ]
    except (OSError, ValueError, KeyError, TypeError) as err:
        raise DiffsError(f"Could not load accounts from {path}: {err}") from err


def lookup(known: Sequence[Account], authorization: str | None) -> Account | None:
    token = (authorization or "").strip()
    if not token.isdigit():
        return None

    account_id = int(token)
    for account in known:
        if account.id == account_id:
            return account

    return None
