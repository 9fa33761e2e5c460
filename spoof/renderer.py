"""Rich-based output for spoofkit.

Prints command notices, the active PIF profile and a summary of the
stored keybox blob.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pif.reader import format_properties
from spoof.models import AppliedProfile, Notice, NoticeLevel

# Notice level → Rich style
NOTICE_STYLES: dict[NoticeLevel, str] = {
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.ERROR: "red bold",
}


def print_notice(notice: Notice, console: Console | None = None, verbose: bool = False) -> None:
    """Print a one-line notice, with its detail when verbose or on error."""
    console = console or Console()
    line = Text(notice.message, style=NOTICE_STYLES[notice.level])
    if notice.detail and (verbose or not notice.ok):
        line.append(f" ({notice.detail})", style="dim")
    console.print(line)


def print_properties(profile: dict[str, str], console: Console | None = None) -> None:
    """Print the active profile as indented JSON inside a panel."""
    console = console or Console()
    console.print(
        Panel(
            Text(format_properties(profile)),
            title="PIF properties",
            border_style="blue",
        )
    )


def print_applied(applied: AppliedProfile, console: Console | None = None) -> None:
    """Print the short keys written by an apply and the resulting digest."""
    console = console or Console()

    table = Table(title="Applied properties", expand=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", ratio=1)

    for key in applied.keys:
        table.add_row(key, applied.values.get(key, ""))

    console.print(table)
    digest = applied.digest or "[red]not written[/red]"
    console.print(f"[dim]Digest:[/dim] {digest}")


def print_keybox(blob: dict[str, str], console: Console | None = None) -> None:
    """Summarize the stored keybox entries without printing key material."""
    console = console or Console()

    table = Table(title="Keybox data", expand=True)
    table.add_column("Entry", style="cyan", no_wrap=True)
    table.add_column("PEM header")
    table.add_column("Length", justify="right")

    for name, pem in blob.items():
        table.add_row(name, _pem_header(pem), str(len(pem)))

    console.print(table)


def _pem_header(pem: str) -> str:
    first = pem.strip().splitlines()[0] if pem.strip() else ""
    if first.startswith("-----BEGIN"):
        return first
    return "[dim]unknown[/dim]"
