"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from repoinit.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from collections.abc import Callable

    from rich.console import Console

    from repoinit.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()
    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="repoinit.ok"), Text(f"  {result.op}", style="repoinit.op"))


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="repoinit.key")
    if key in ("principal_id", "target"):
        v = Text(str(value), style="repoinit.target")
    elif key == "path":
        v = Text(str(value), style="repoinit.path")
    elif isinstance(value, dict | list):
        v = Text(json.dumps(value, separators=(",", ":")))
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    if not result.meta:
        return
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        console.print(f"    {k}: {v}")


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = f" [{err.code}]" if err else ""
    console.print(
        Text("ERROR", style="repoinit.error"),
        Text(f"  {result.op}{code}", style="repoinit.op"),
        Text(f"  {msg}"),
    )
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Operation renderers ───────────────────────────────────────────────


def _render_apply(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render an applied batch: summary counts, outcome table when verbose."""
    d = result.data
    _status_line(console, result)
    _field(console, "operations", d.get("count", 0))
    _field(console, "changed", d.get("changed", 0))
    if d.get("dry_run"):
        _field(console, "dry_run", "rolled back, nothing committed")
    counts = d.get("counts") or {}
    if counts:
        _field(console, "statuses", ", ".join(f"{k}={v}" for k, v in sorted(counts.items())))

    outcomes = d.get("outcomes") or []
    if verbose and outcomes:
        table = Table(show_header=True, pad_edge=False, expand=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Kind")
        table.add_column("Target", style="repoinit.target")
        table.add_column("Status")
        for outcome in outcomes:
            status = str(outcome.get("status", ""))
            table.add_row(
                str(outcome.get("index", 0) + 1),
                str(outcome.get("kind", "")),
                str(outcome.get("target", "")),
                Text(status, style=style_for_status(status)),
            )
        console.print(table)
        _render_meta(console, result)


def _render_parse(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render the parsed operation list, one line per operation."""
    _status_line(console, result)
    operations = result.data.get("operations") or []
    _field(console, "operations", len(operations))
    for i, operation in enumerate(operations, start=1):
        kind = operation.get("kind", "?")
        rest = {k: v for k, v in operation.items() if k != "kind" and v is not None}
        line = f"  {i:>3}. {kind}"
        if rest:
            line += " " + json.dumps(rest, separators=(",", ":"))
        console.print(Text(line))


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        if value is not None:
            _field(console, key, value)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Callable[..., None]] = {
    "apply": _render_apply,
    "parse": _render_parse,
    "check_user": _render_check,
    "check_service_user": _render_check,
    "check_enabled": _render_check,
    "check_disabled": _render_check,
    "check_node": _render_check,
}
