"""Presentation helpers for handlerbus CLI output."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, TextIO

from rich import box
from rich.console import Console
from rich.table import Table


def render_notice(level: str, message: str) -> str:
    prefix_map = {
        "info": "Info",
        "warn": "Warning",
        "error": "Error",
        "success": "Success",
    }
    return "{0}: {1}".format(prefix_map.get(level, "Info"), message)


def _is_tty(stream: TextIO, forced: Optional[bool]) -> bool:
    if forced is not None:
        return forced
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except ValueError:
        # Closed streams raise instead of answering.
        return False


def _status_label(row: Dict[str, Any]) -> str:
    if row.get("reserved"):
        return "reserved"
    resolved = row.get("resolved")
    if resolved is None:
        return "-"
    return "ok" if resolved else "missing"


def render_resolution_table(
    rows: Iterable[Dict[str, Any]],
    stream: TextIO,
    handler: Optional[str] = None,
    is_tty: Optional[bool] = None,
) -> None:
    items = list(rows)
    if _is_tty(stream, is_tty):
        table = Table(
            title="Dispatch table{0}".format(" for {0}".format(handler) if handler else ""),
            box=box.ROUNDED,
        )
        table.add_column("event", style="cyan")
        table.add_column("method")
        table.add_column("status")
        for row in items:
            status = _status_label(row)
            style = "red" if status in {"reserved", "missing"} else "green"
            table.add_row(row["event"], row["method"], "[{0}]{1}[/{0}]".format(style, status))
        Console(file=stream, highlight=False).print(table)
        return

    for row in items:
        stream.write("{0} -> {1} [{2}]\n".format(row["event"], row["method"], _status_label(row)))


def render_doctor_text(report: Dict[str, Any]) -> str:
    reserved = report.get("reserved_event_names")
    if not isinstance(reserved, list):
        reserved = []

    lines: List[str] = [
        "Doctor Report",
        "project_root={0}".format(report.get("project_root", "")),
        "config_file={0}".format(report.get("config_file") or "(defaults)"),
        "",
        "Dispatch",
        "event_prefix={0}".format(report.get("event_prefix", "")),
        "error_event={0}".format(report.get("error_event", "")),
        "debug_log_enabled={0}".format(bool(report.get("debug_log_enabled"))),
        "reserved_event_names={0}".format(",".join(str(item) for item in reserved)),
        "",
        "Logs",
        "logs_enabled={0}".format(bool(report.get("logs_enabled"))),
        "logs_dir={0}".format(report.get("logs_dir", "")),
        "logs_max_file_bytes={0} logs_max_files={1}".format(
            int(report.get("logs_max_file_bytes") or 0),
            int(report.get("logs_max_files") or 0),
        ),
        "logs_redaction={0}".format(report.get("logs_redaction", "")),
    ]
    return "\n".join(lines)
