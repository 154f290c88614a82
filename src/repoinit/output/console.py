"""Rich Console factory and theme for repoinit output.

Consoles render to a StringIO buffer so formatting stays a pure
``ServiceResult -> str`` function. In non-TTY environments (tests,
pipes) Rich drops color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

REPOINIT_THEME = Theme(
    {
        "repoinit.ok": "bold green",
        "repoinit.error": "bold red",
        "repoinit.warning": "bold yellow",
        "repoinit.op": "bold cyan",
        "repoinit.key": "dim",
        "repoinit.target": "bold blue",
        "repoinit.path": "dim",
        "repoinit.status.changed": "green",
        "repoinit.status.same": "dim",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=REPOINIT_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Rich style for an outcome status (changed vs. already in place)."""
    if status in ("exists", "absent", "unchanged"):
        return "repoinit.status.same"
    return "repoinit.status.changed"
