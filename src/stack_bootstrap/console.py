"""Rich console utilities for styled terminal output.

Every user-facing line printed by a bootstrap run goes through this module
so phases share one look: phase banners, step markers, outcome symbols and
the summary panels of the final report.
"""

from collections.abc import Generator, Iterable
from contextlib import contextmanager

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "phase": "blue bold",
        "highlight": "cyan bold",
        "muted": "dim",
    }
)

# Shared console instance
console = Console(theme=_THEME, highlight=False)


def info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[info]ℹ[/info] {message}")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[warning]⚠[/warning] {message}")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[error]✗[/error] {message}")


def action(message: str) -> None:
    """Print the start of an operation."""
    console.print(f"[phase]==>[/phase] {message}")


def step(message: str) -> None:
    """Print a sub-step message."""
    console.print(f"[muted]•[/muted] {message}")


def highlight(text: str) -> str:
    """Return text wrapped in highlight markup."""
    return f"[highlight]{text}[/highlight]"


def phase_banner(index: int, total: int, title: str) -> None:
    """Print the separator announcing a phase.

    Args:
        index: 1-based position of the phase in the running sequence.
        total: Number of phases in the running sequence.
        title: Phase name.

    """
    console.print(Rule(f"[phase]{index}/{total}[/phase] {title}", style="muted"))


def progress_dot() -> None:
    """Print a single polling progress dot without a line break."""
    console.print(".", end="", style="muted")


def command_hint(title: str, commands: Iterable[str]) -> None:
    """Print a follow-up instruction with the commands to run.

    Args:
        title: What the commands are for.
        commands: Shell commands, one per line.

    """
    console.print(f"[info]💡[/info] {title}")
    for command in commands:
        console.print(f"  [muted]{command}[/muted]", soft_wrap=True)


@contextmanager
def spinner(message: str) -> Generator[None, None, None]:
    """Display a spinner while performing an operation.

    Args:
        message: The status message to display.

    """
    with console.status(f"[info]{message}[/info]", spinner="dots"):
        yield


def summary_panel(title: str, items: dict[str, str], *, border_style: str = "green") -> None:
    """Print a summary panel with key-value pairs.

    Args:
        title: Title for the panel.
        items: Dictionary of label -> value pairs to display.
        border_style: Rich style of the panel border.

    """
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(style="cyan")

    for label, value in items.items():
        table.add_row(f"{label}:", value)

    console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style=border_style))


def newline() -> None:
    """Print an empty line."""
    console.print()
