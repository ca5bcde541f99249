"""Operator-facing status lines and tables."""
from typing import Any, Dict, Iterable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

console = Console(highlight=False)


def info(message: str) -> None:
    console.print(f"[blue][INFO][/blue] {escape(message)}")


def success(message: str) -> None:
    console.print(f"[green][SUCCESS][/green] {escape(message)}")


def warning(message: str) -> None:
    console.print(f"[yellow][WARNING][/yellow] {escape(message)}")


def error(message: str) -> None:
    console.print(f"[red][ERROR][/red] {escape(message)}")


def step(title: str) -> None:
    console.print(f"[cyan]=== {escape(title)} ===[/cyan]")


def check(message: str) -> None:
    """Print a satisfied-check line."""
    console.print(f"[green]✓ {escape(message)}[/green]")


def line(message: str = "") -> None:
    console.print(escape(message))


def banner(title: str, bullets: Sequence[str] = ()) -> None:
    body = "\n".join(f"• {escape(b)}" for b in bullets)
    console.print(Panel(body or "", title=escape(title), style="cyan", expand=False))


def table(rows: Iterable[Dict[str, Any]], columns: List[str], title: Optional[str] = None) -> None:
    """Render dict rows as a table, one column per key in ``columns``."""
    rendered = Table(title=title, show_lines=False)
    for column in columns:
        rendered.add_column(column)
    for row in rows:
        rendered.add_row(*[escape(str(row.get(column, ""))) for column in columns])
    console.print(rendered)


def key_values(values: Dict[str, Any], title: Optional[str] = None) -> None:
    table(
        [{"Key": k, "Value": v} for k, v in values.items()],
        ["Key", "Value"],
        title=title,
    )
