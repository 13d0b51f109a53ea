from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click
import typer
import uvicorn

from diffs.config import GlobalOptions, LogOptions
from diffs.db import LOCAL_DATASET, SpecResolver
from diffs.diagnostics import CaptureSession
from diffs.env import DB_ENVVAR, DEFAULT_HOST, DEFAULT_PORT, LOG_LEVEL, PORT_ENVVAR
from diffs.errors import DiffsError
from diffs.logging import configure_logger, get_logger
from diffs.prompt import confirm
from diffs.serve.accounts import accounts
from diffs.serve.service import new_service
from diffs.signals import SignalWatcher
from diffs.version import __version__

DROP_WARNING = (
    "This command deletes an entire database and its history. This operation is"
    " not recoverable. Proceed? y/n\n"
)

logger = get_logger("app")

app = typer.Typer(
    add_completion=False,
    help="diffs: run and manage a diff-server database.",
)


class AppContext:
    options: GlobalOptions
    spec: SpecResolver
    capture: CaptureSession

    def __init__(
        self,
        options: GlobalOptions,
        spec: SpecResolver,
        capture: CaptureSession,
    ):
        self.options = options
        self.spec = spec
        self.capture = capture


def _fail(err: BaseException) -> NoReturn:
    typer.echo(str(err), err=True)
    raise typer.Exit(code=1)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def _missing_db(ctx: typer.Context) -> click.MissingParameter:
    param = next(p for p in ctx.command.params if p.name == "db")
    return click.MissingParameter(ctx=ctx, param=param)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_print_version,
        is_eager=True,
        help="Prints the version of diffs.",
    ),
    db: str | None = typer.Option(
        None,
        "--db",
        envvar=DB_ENVVAR,
        metavar="/path/to/db",
        help=(
            "The database to manage. For local databases, specify a directory path"
            " to store the database in. For remote databases, specify the http(s)"
            " URL of the database."
        ),
    ),
    trace: Path | None = typer.Option(
        None,
        "--trace",
        dir_okay=False,
        help="Name of a file to write an execution trace to.",
    ),
    cpu: Path | None = typer.Option(
        None,
        "--cpu",
        dir_okay=False,
        help="Name of a file to write a CPU profile to.",
    ),
) -> None:
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        return

    if db is None:
        raise _missing_db(ctx)

    options = GlobalOptions(db=db, trace=trace, cpu=cpu, version=version)
    configure_logger(
        stream=sys.stderr,
        options=LogOptions(prefix=ctx.invoked_subcommand == "serve", level=LOG_LEVEL),
    )

    # Registered before starting so a half-started session is still flushed.
    capture = CaptureSession(options)
    ctx.call_on_close(capture.stop)
    try:
        capture.start()
    except OSError as err:
        _fail(err)

    watcher = SignalWatcher(capture)
    watcher.arm()
    ctx.call_on_close(watcher.disarm)

    ctx.obj = AppContext(options=options, spec=SpecResolver(db), capture=capture)


@app.command()
def serve(
    ctx: typer.Context,
    port: int = typer.Option(
        DEFAULT_PORT,
        "--port",
        envvar=PORT_ENVVAR,
        help="The port to run on.",
    ),
) -> None:
    """Starts a local diff-server."""
    ctx_obj: AppContext = ctx.obj

    try:
        service = new_service(ctx_obj.options.db, accounts(), resolver=ctx_obj.spec)
    except DiffsError as err:
        _fail(err)

    logger.info("Listening on %s:%d...", DEFAULT_HOST, port)
    uvicorn.run(service, host=DEFAULT_HOST, port=port, log_config=None)


@app.command()
def drop(ctx: typer.Context) -> None:
    """Deletes a diff-server database and its history."""
    ctx_obj: AppContext = ctx.obj

    try:
        if not confirm(DROP_WARNING, sys.stdin, sys.stdout):
            return

        database = ctx_obj.spec.get().database
        database.delete(database.get_dataset(LOCAL_DATASET))
    except (DiffsError, OSError, EOFError) as err:
        _fail(err)
