# Annotations stay eager here: FastAPI resolves the route signatures, and some
# of them reference closures local to `new_service`.
from collections.abc import Sequence
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from diffs.db import LOCAL_DATASET, SpecResolver
from diffs.errors import DiffsError
from diffs.logging import get_logger
from diffs.serve.accounts import Account, lookup
from diffs.version import __version__

logger = get_logger("serve")


class PullRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: str = Field(alias="clientID")
    base_state_id: str = Field(default="", alias="baseStateID")


class PatchOperation(BaseModel):
    op: str
    path: str = ""
    value: Any = None


class PullResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    state_id: str = Field(alias="stateID")
    patch: list[PatchOperation] = Field(default_factory=list)


def new_service(
    location: str,
    accounts: Sequence[Account],
    *,
    resolver: SpecResolver | None = None,
) -> FastAPI:
    """Build the diff-serving ASGI app for the database at `location`.

    The database is resolved on the first request that needs it. Pass the
    caller's `resolver` to share its resolution instead of owning a new one.
    """
    if resolver is None:
        resolver = SpecResolver(location)
    known = list(accounts)

    service = FastAPI(title="diffs", version=__version__)

    def current_account(
        authorization: Annotated[str | None, Header()] = None,
    ) -> Account:
        account = lookup(known, authorization)
        if account is None:
            raise HTTPException(status_code=403, detail="Unknown account")
        return account

    @service.exception_handler(DiffsError)
    async def diffs_error_handler(request: Request, exc: DiffsError) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @service.get("/")
    async def root() -> dict[str, str]:
        return {"message": "Hello from diffs", "version": __version__}

    @service.post("/pull", response_model=PullResponse, response_model_by_alias=True)
    def pull(
        body: PullRequest,
        account: Annotated[Account, Depends(current_account)],
    ) -> PullResponse:
        database = resolver.get().database
        dataset = database.get_dataset(LOCAL_DATASET)
        state_id = dataset.head or ""
        logger.debug(
            "pull account=%s client=%s base=%s head=%s",
            account.id,
            body.client_id,
            body.base_state_id,
            state_id,
        )

        if body.base_state_id == state_id:
            return PullResponse(state_id=state_id)
        if dataset.head is None:
            return PullResponse(state_id=state_id, patch=[PatchOperation(op="remove")])

        value = database.head_value(dataset)
        return PullResponse(
            state_id=state_id,
            patch=[PatchOperation(op="replace", value=value)],
        )

    return service
