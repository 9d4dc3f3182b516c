"""Terminal output using rich."""

from rich import box
from rich.console import Console
from rich.panel import Panel


# Followed lines go to stdout untouched; everything else goes to stderr.
console = Console(highlight=False)
err_console = Console(stderr=True)


def print_startup(path: str, retry: float) -> None:
    """Print startup message."""
    if retry < 0:
        policy = "reconnecting forever"
    elif retry == 0:
        policy = "no slow reconnect"
    else:
        policy = f"reconnecting for up to {retry:g}s"
    err_console.print(
        Panel(
            f"Following [green]{path}[/green] ({policy})\n"
            "[dim]Press Ctrl+C to stop, send SIGHUP to reopen[/dim]",
            box=box.ROUNDED,
            border_style="cyan",
        )
    )


def print_line(line: str) -> None:
    """Print a followed line as-is."""
    console.out(line, highlight=False)


def print_warning(message: str) -> None:
    """Print a non-fatal error."""
    err_console.print(f"[yellow]Warning:[/yellow] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[bold red]Error:[/bold red] {message}")

