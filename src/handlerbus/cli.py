"""Typer CLI entrypoints for handlerbus."""

from __future__ import annotations

import importlib
import json
import sys
from typing import Any, Dict, List, Optional

import typer

from handlerbus.config import (
    ProjectConfigError,
    initialize_project_config,
    load_settings,
)
from handlerbus.kernel.errors import HandlerBusError
from handlerbus.kernel.events import RESERVED_EVENT_NAMES
from handlerbus.kernel.handler import derive_method_name, dispatch_table
from handlerbus.kernel.logger import JsonlLogger
from handlerbus.ui.render import render_doctor_text, render_notice, render_resolution_table

app = typer.Typer(
    no_args_is_help=True,
    help="Inspect event handler configuration and dispatch tables.",
)

_FORMATS = {"json", "text"}


def _normalize_format(output_format: str) -> str:
    normalized = output_format.strip().lower()
    if normalized not in _FORMATS:
        typer.echo(render_notice("error", "Unsupported format: {0}".format(output_format)), err=True)
        raise typer.Exit(code=2)
    return normalized


def _load_handler_class(spec: str) -> type:
    module_name, _, class_name = spec.partition(":")
    if not module_name or not class_name:
        raise ValueError("handler must look like module.path:ClassName, got {0!r}".format(spec))
    module = importlib.import_module(module_name)
    target = getattr(module, class_name, None)
    if not isinstance(target, type):
        raise ValueError("{0} is not a class in {1}".format(class_name, module_name))
    return target


def _doctor_report() -> Dict[str, Any]:
    settings = load_settings()
    logs = JsonlLogger(
        logs_dir=settings.logs_dir,
        enabled=settings.logs_enabled,
        max_file_bytes=settings.logs_max_file_bytes,
        max_files=settings.logs_max_files,
        redaction=settings.logs_redaction,
    )
    report: Dict[str, Any] = {
        "project_root": str(settings.project_root),
        "config_file": str(settings.loaded_from) if settings.loaded_from else None,
        "event_prefix": settings.event_prefix,
        "error_event": settings.error_event,
        "debug_log_enabled": settings.debug_log_enabled,
        "reserved_event_names": sorted(RESERVED_EVENT_NAMES),
        "logs_redaction": settings.logs_redaction,
    }
    report.update(logs.status())
    return report


@app.command("init")
def init_cmd(
    force: bool = typer.Option(False, "--force", help="Recreate .handlerbus (removes the existing directory)"),
) -> None:
    try:
        config_root = initialize_project_config(force=force)
    except ProjectConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    typer.echo(render_notice("success", "Initialized project config at: {0}".format(config_root)))


@app.command("doctor")
def doctor_cmd(
    output_format: str = typer.Option("json", "--format", help="Output format: json|text"),
) -> None:
    normalized_format = _normalize_format(output_format)
    try:
        report = _doctor_report()
    except ProjectConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    if normalized_format == "json":
        typer.echo(json.dumps(report, ensure_ascii=True, indent=2))
        return
    typer.echo(render_doctor_text(report))


@app.command("resolve")
def resolve_cmd(
    events: List[str] = typer.Argument(..., help="Event names to resolve"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Library prefix stripped from event names"),
    handler: Optional[str] = typer.Option(None, "--handler", help="Handler class as module.path:ClassName"),
    output_format: str = typer.Option("text", "--format", help="Output format: json|text"),
) -> None:
    normalized_format = _normalize_format(output_format)
    try:
        resolved_prefix = prefix if prefix is not None else load_settings().event_prefix
    except ProjectConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    if handler:
        try:
            handler_type = _load_handler_class(handler)
        except (ImportError, ValueError) as exc:
            typer.echo(render_notice("error", "Cannot load handler: {0}".format(exc)), err=True)
            raise typer.Exit(code=2)
        try:
            rows = dispatch_table(handler_type, resolved_prefix).describe(events)
        except HandlerBusError as exc:
            typer.echo(render_notice("error", "Invalid handler: {0}".format(exc)), err=True)
            raise typer.Exit(code=2)
    else:
        rows = [
            {
                "event": event,
                "method": derive_method_name(event, resolved_prefix),
                "reserved": event in RESERVED_EVENT_NAMES,
                "resolved": None,
            }
            for event in events
        ]

    if normalized_format == "json":
        typer.echo(json.dumps(rows, ensure_ascii=True, indent=2))
    else:
        render_resolution_table(rows, sys.stdout, handler=handler)

    if any(row["reserved"] or row["resolved"] is False for row in rows):
        raise typer.Exit(code=1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
