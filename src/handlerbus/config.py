"""Configuration loading and directory resolution for handlerbus."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

try:  # pragma: no cover - exercised on Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python 3.9/3.10
    import tomli as tomllib  # type: ignore[no-redef]

from handlerbus.kernel.events import ERROR, LIBRARY_EVENT_PREFIX

CONFIG_DIR_NAME = ".handlerbus"
CONFIG_FILE_NAME = "config.toml"
LOGS_DIR_NAME = "logs"

DEFAULT_EVENT_PREFIX = LIBRARY_EVENT_PREFIX
DEFAULT_ERROR_EVENT = ERROR
DEFAULT_DEBUG_LOG_ENABLED = False
DEFAULT_LOGS_ENABLED = False
DEFAULT_LOGS_MAX_FILE_BYTES = 1024 * 1024
DEFAULT_LOGS_MAX_FILES = 5
DEFAULT_LOGS_REDACTION = "default"
ALLOWED_LOG_REDACTION = ("default", "none", "strict")


class ProjectConfigError(RuntimeError):
    """Raised when project configuration is missing or invalid."""


@dataclass
class ProjectConfig:
    event_prefix: str = DEFAULT_EVENT_PREFIX
    error_event: str = DEFAULT_ERROR_EVENT
    debug_log_enabled: bool = DEFAULT_DEBUG_LOG_ENABLED
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES
    logs_redaction: str = DEFAULT_LOGS_REDACTION


@dataclass
class Settings:
    """Resolved settings for handlers created in one process."""

    project_root: Path
    config_root: Path
    event_prefix: str = DEFAULT_EVENT_PREFIX
    error_event: str = DEFAULT_ERROR_EVENT
    debug_log_enabled: bool = DEFAULT_DEBUG_LOG_ENABLED
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES
    logs_redaction: str = DEFAULT_LOGS_REDACTION
    loaded_from: Optional[Path] = field(default=None)

    @property
    def logs_dir(self) -> Path:
        return self.config_root / LOGS_DIR_NAME


def resolve_project_root(workspace_dir: Optional[Path] = None) -> Path:
    return (workspace_dir or Path.cwd()).resolve()


def resolve_project_config_root(workspace_dir: Optional[Path] = None) -> Path:
    return resolve_project_root(workspace_dir) / CONFIG_DIR_NAME


def project_config_exists(workspace_dir: Optional[Path] = None) -> bool:
    config_root = resolve_project_config_root(workspace_dir)
    return config_root.is_dir() and (config_root / CONFIG_FILE_NAME).is_file()


def _safe_positive_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _safe_event_name(value: object, default: str) -> str:
    if not isinstance(value, str):
        return default
    text = value.strip()
    return text or default


def _safe_prefix(value: object, default: str) -> str:
    # An empty prefix is meaningful: event names are used as-is.
    if not isinstance(value, str):
        return default
    return value.strip()


def _safe_redaction(value: object, default: str) -> str:
    normalized = str(value or default).strip().lower()
    if normalized not in ALLOWED_LOG_REDACTION:
        return default
    return normalized


def _parse_project_config_data(data: Dict[str, object]) -> ProjectConfig:
    dispatch = data.get("dispatch") if isinstance(data.get("dispatch"), dict) else {}
    logs = data.get("logs") if isinstance(data.get("logs"), dict) else {}

    return ProjectConfig(
        event_prefix=_safe_prefix(dispatch.get("event_prefix", DEFAULT_EVENT_PREFIX), DEFAULT_EVENT_PREFIX),  # type: ignore[union-attr]
        error_event=_safe_event_name(dispatch.get("error_event"), DEFAULT_ERROR_EVENT),  # type: ignore[union-attr]
        debug_log_enabled=_safe_bool(dispatch.get("debug_log_enabled"), DEFAULT_DEBUG_LOG_ENABLED),  # type: ignore[union-attr]
        logs_enabled=_safe_bool(logs.get("enabled"), DEFAULT_LOGS_ENABLED),  # type: ignore[union-attr]
        logs_max_file_bytes=_safe_positive_int(
            logs.get("max_file_bytes"),  # type: ignore[union-attr]
            DEFAULT_LOGS_MAX_FILE_BYTES,
        ),
        logs_max_files=_safe_positive_int(logs.get("max_files"), DEFAULT_LOGS_MAX_FILES),  # type: ignore[union-attr]
        logs_redaction=_safe_redaction(logs.get("redaction"), DEFAULT_LOGS_REDACTION),  # type: ignore[union-attr]
    )


def _toml_string(value: str) -> str:
    return '"{0}"'.format(str(value).replace("\\", "\\\\").replace('"', '\\"'))


def _render_project_config(config: ProjectConfig) -> str:
    lines = [
        "[dispatch]",
        "event_prefix = {0}".format(_toml_string(config.event_prefix)),
        "error_event = {0}".format(_toml_string(config.error_event)),
        "debug_log_enabled = {0}".format(str(bool(config.debug_log_enabled)).lower()),
        "",
        "[logs]",
        "enabled = {0}".format(str(bool(config.logs_enabled)).lower()),
        "max_file_bytes = {0}".format(_safe_positive_int(config.logs_max_file_bytes, DEFAULT_LOGS_MAX_FILE_BYTES)),
        "max_files = {0}".format(_safe_positive_int(config.logs_max_files, DEFAULT_LOGS_MAX_FILES)),
        "redaction = {0}".format(_toml_string(_safe_redaction(config.logs_redaction, DEFAULT_LOGS_REDACTION))),
        "",
    ]
    return "\n".join(lines)


def initialize_project_config(workspace_dir: Optional[Path] = None, force: bool = False) -> Path:
    config_root = resolve_project_config_root(workspace_dir)
    if config_root.exists():
        if not force:
            raise ProjectConfigError("configuration directory already exists: {0}".format(config_root))
        shutil.rmtree(config_root)
    (config_root / LOGS_DIR_NAME).mkdir(parents=True, exist_ok=True)
    (config_root / CONFIG_FILE_NAME).write_text(
        _render_project_config(ProjectConfig()),
        encoding="utf-8",
    )
    return config_root


def load_project_config(config_root: Optional[Path] = None, workspace_dir: Optional[Path] = None) -> ProjectConfig:
    resolved_root = (config_root or resolve_project_config_root(workspace_dir)).resolve()
    config_file = resolved_root / CONFIG_FILE_NAME
    if not resolved_root.is_dir() or not config_file.is_file():
        raise ProjectConfigError(
            "missing project config directory: {0}, run `handlerbus init` first".format(resolved_root)
        )
    try:
        parsed = tomllib.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ProjectConfigError("invalid config file: {0}".format(config_file)) from exc
    return _parse_project_config_data(parsed)


def save_project_config(
    config: ProjectConfig,
    config_root: Optional[Path] = None,
    workspace_dir: Optional[Path] = None,
) -> Path:
    resolved_root = (config_root or resolve_project_config_root(workspace_dir)).resolve()
    if not resolved_root.is_dir():
        raise ProjectConfigError(
            "missing project config directory: {0}, run `handlerbus init` first".format(resolved_root)
        )
    config_file = resolved_root / CONFIG_FILE_NAME
    config_file.write_text(_render_project_config(config), encoding="utf-8")
    return config_file


def load_settings(workspace_dir: Optional[Path] = None) -> Settings:
    """Resolve settings for a workspace; defaults apply when it has no config."""
    project_root = resolve_project_root(workspace_dir)
    config_root = resolve_project_config_root(project_root)
    if project_config_exists(project_root):
        config = load_project_config(config_root=config_root)
        loaded_from: Optional[Path] = config_root / CONFIG_FILE_NAME
    else:
        config = ProjectConfig()
        loaded_from = None

    return Settings(
        project_root=project_root,
        config_root=config_root,
        event_prefix=config.event_prefix,
        error_event=config.error_event,
        debug_log_enabled=config.debug_log_enabled,
        logs_enabled=config.logs_enabled,
        logs_max_file_bytes=config.logs_max_file_bytes,
        logs_max_files=config.logs_max_files,
        logs_redaction=config.logs_redaction,
        loaded_from=loaded_from,
    )
