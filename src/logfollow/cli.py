"""CLI interface for logfollow."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from . import __version__
from . import output
from .config import FollowConfig
from .follower import Follower, State


app = typer.Typer(
    name="logfollow",
    help="Follow a file like tail -F, surviving truncation and rotation",
    add_completion=False,
)
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    if value:
        output.console.print(f"logfollow v{__version__}")
        raise typer.Exit()


def parse_delimiter(value: str) -> bytes:
    """Turn a delimiter option such as ``\\0`` or ``,`` into bytes."""
    return value.encode().decode("unicode_escape").encode("latin-1")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=output.err_console, show_path=False)],
    )
    # watchdog's own debug output is one line per inotify event
    logging.getLogger("watchdog").setLevel(logging.WARNING)


def _reopen(follower: Follower) -> None:
    logger.info("SIGHUP received, reopening %s", follower.path)
    follower.request_reopen()


async def run(path: str | Path, config: FollowConfig) -> Exception | None:
    """Follow ``path`` and print every line; returns the fatal error, if any."""
    follower = Follower(config)
    loop = asyncio.get_running_loop()
    sighup = getattr(signal, "SIGHUP", None)
    if sighup is not None:
        loop.add_signal_handler(sighup, _reopen, follower)
    try:
        return await _print_records(follower, path)
    finally:
        if sighup is not None:
            loop.remove_signal_handler(sighup)


async def _print_records(follower: Follower, path: str | Path) -> Exception | None:
    task = asyncio.create_task(follower.start(path))
    ready = asyncio.create_task(follower.ready.wait())
    await asyncio.wait({task, ready}, return_when=asyncio.FIRST_COMPLETED)
    if not ready.done():
        # Setup failed; re-raise it.
        ready.cancel()
        return task.result()

    try:
        async for record in follower.stream():
            if record.error is None:
                output.print_line(str(record))
            elif follower.state is State.FAILED:
                output.print_error(str(record.error))
            else:
                output.print_warning(str(record.error))
        return await task
    finally:
        if not task.done():
            task.cancel()
            # Let the follower hand over its end-of-stream record.
            async for _ in follower.stream():
                pass
            await asyncio.gather(task, return_exceptions=True)


@app.command()
def follow(
    file: Annotated[
        Path,
        typer.Argument(help="File to follow"),
    ],
    retry: Annotated[
        float,
        typer.Option(
            "--retry",
            "-r",
            envvar="LOGFOLLOW_RETRY",
            help="Seconds to keep trying to reopen a vanished file (negative: forever, 0: only briefly)",
        ),
    ] = -1.0,
    delimiter: Annotated[
        str,
        typer.Option("--delimiter", "-d", help="Line delimiter, a single byte (escapes such as \\0 allowed)"),
    ] = "\\n",
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show what the follower is doing"),
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-V", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """Print lines appended to FILE as they are written."""
    setup_logging(verbose)

    try:
        config = FollowConfig(delimiter=parse_delimiter(delimiter), retry=retry)
    except (ValueError, UnicodeError) as e:
        output.print_error(str(e))
        raise typer.Exit(1)

    if not file.exists():
        output.print_error(f"File not found: {file}")
        raise typer.Exit(1)

    if verbose:
        output.print_startup(str(file.resolve()), retry)

    try:
        reason = asyncio.run(run(file, config))
    except KeyboardInterrupt:
        output.err_console.print("\n[dim]Stopped following.[/dim]")
        return
    except Exception as e:
        output.print_error(str(e))
        raise typer.Exit(1)

    if reason is not None:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
