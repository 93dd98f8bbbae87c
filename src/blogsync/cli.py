"""CLI interface for blogsync."""

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional, cast

import typer
from rich.console import Console
from rich.markup import escape

from blogsync.commands import Command, PostCommand, PullCommand, PushCommand, execute
from blogsync.config import load_config
from blogsync.errors import BlogsyncError, SyncReport
from blogsync.models import Entry, StoreResult

app = typer.Typer(
    name="blogsync",
    help="Synchronize blog entries between local files and an AtomPub blog.",
    no_args_is_help=True,
)

console = Console()
_stderr_console = Console(stderr=True)

_RESULT_STYLES = {
    StoreResult.CREATED: "green",
    StoreResult.UPDATED: "cyan",
    StoreResult.CONFLICT: "yellow",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from blogsync import __version__

        console.print(f"blogsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to config.yaml. Defaults to $BLOGSYNC_CONFIG or ~/.config/blogsync/config.yaml.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug output to stderr."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """blogsync - pull, push and post blog entries."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = {"config_path": config}


def _run(ctx: typer.Context, command: Command) -> SyncReport | Entry:
    """Load configuration and execute *command*, turning failures into exit code 1."""
    config_path = (ctx.obj or {}).get("config_path")
    try:
        return execute(command, load_config(config_path))
    except BlogsyncError as exc:
        _stderr_console.print(f"[red]Error:[/red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(1)


@app.command()
def pull(
    ctx: typer.Context,
    blog: Annotated[str, typer.Argument(help="Blog to pull, as named in the config.")],
    workers: Annotated[
        int,
        typer.Option("--workers", "-w", min=1, help="Number of entries stored in parallel."),
    ] = 1,
) -> None:
    """Pull entries from remote."""
    report = cast(SyncReport, _run(ctx, PullCommand(blog=blog, workers=workers)))

    for outcome in report.outcomes:
        style = _RESULT_STYLES[outcome.result]
        console.print(f"[{style}]{outcome.result.value:>8}[/{style}] {escape(outcome.path)}", soft_wrap=True)
    console.print(escape(report.summary_text()), soft_wrap=True)
    if report.conflicts:
        console.print(
            "[yellow]Conflicting files were left untouched. "
            "Push them, or delete them and pull again.[/yellow]"
        )


@app.command()
def push(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(
            help="Local entry file to push.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Push a local entry to remote."""
    entry = cast(Entry, _run(ctx, PushCommand(path=path)))
    console.print(f"[green]Pushed[/green] {escape(str(path))}", soft_wrap=True)
    if entry.alternate_url:
        console.print(entry.alternate_url, soft_wrap=True)


@app.command()
def post(
    ctx: typer.Context,
    blog: Annotated[str, typer.Argument(help="Blog to post to, as named in the config.")],
    draft: Annotated[bool, typer.Option("--draft", help="Create the entry as a draft.")] = False,
    title: Annotated[Optional[str], typer.Option("--title", help="Entry title.")] = None,
    custom_path: Annotated[
        Optional[str],
        typer.Option("--custom-path", help="Custom URL path for the entry."),
    ] = None,
) -> None:
    """Post a new entry to remote, reading the body from stdin."""
    body = sys.stdin.read()
    entry = cast(
        Entry,
        _run(ctx, PostCommand(blog=blog, body=body, draft=draft, title=title, custom_path=custom_path)),
    )
    console.print(f"[green]Posted[/green] {entry.edit_url}", soft_wrap=True)
    if entry.alternate_url:
        console.print(entry.alternate_url, soft_wrap=True)
