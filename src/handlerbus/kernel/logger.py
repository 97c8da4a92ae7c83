"""Logging sinks used by event handlers.

Handlers only rely on ``debug(*args)`` and ``error(*args)``. Three sinks ship
with the package: a no-op sink (the default), a plain stream sink, and a
rotating JSONL writer for persistent diagnostics.
"""

from __future__ import annotations

import json
import re
import sys
import threading
import traceback
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Tuple

from handlerbus.kernel.types import Logger, now_ms

LOG_FILE_NAME = "handlerbus.log.jsonl"
ALLOWED_REDACTION = ("none", "default", "strict")

_REDACTED = "***REDACTED***"
_SENSITIVE_KEY_RE = re.compile(
    r"(password|secret|token|authorization|cookie|api[_-]?key|private[_-]?key)",
    re.IGNORECASE,
)
_BEARER_RE = re.compile(r"(?i)\bbearer\s+([^\s,;]+)")
_KEY_VALUE_RE = re.compile(
    r"(?i)\b(api[_-]?key|token|secret|authorization|cookie|password)\b\s*[:=]\s*([^\s,;]+)"
)


def _split_args(args: Tuple[Any, ...]) -> Tuple[str, List[BaseException], List[Any]]:
    words: List[str] = []
    errors: List[BaseException] = []
    extras: List[Any] = []
    for arg in args:
        if isinstance(arg, BaseException):
            errors.append(arg)
        elif isinstance(arg, (dict, list, tuple)):
            extras.append(arg)
        else:
            words.append(str(arg))
    return " ".join(words), errors, extras


def _describe_exception(exc: BaseException) -> Dict[str, Any]:
    return {
        "error_type": type(exc).__name__,
        "error": str(exc),
        "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


class NullLogger:
    """Discards every record."""

    def debug(self, *args: Any) -> None:
        return

    def error(self, *args: Any) -> None:
        return


class StreamLogger:
    """Writes one plain line per record to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def debug(self, *args: Any) -> None:
        self._write("debug", args)

    def error(self, *args: Any) -> None:
        self._write("error", args)

    def _write(self, level: str, args: Tuple[Any, ...]) -> None:
        message, errors, extras = _split_args(args)
        parts = [message] + [json.dumps(item, default=str) for item in extras]
        line = "[{0}] {1}".format(level, " ".join(part for part in parts if part))
        self.stream.write(line.rstrip() + "\n")
        for exc in errors:
            self.stream.write(_describe_exception(exc)["traceback"])


class JsonlLogger:
    """Best-effort JSONL writer with size-based rotation and redaction."""

    def __init__(
        self,
        *,
        logs_dir: Path,
        enabled: bool = True,
        max_file_bytes: int = 1024 * 1024,
        max_files: int = 5,
        redaction: str = "default",
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._enabled = bool(enabled)
        self._max_file_bytes = max(1, int(max_file_bytes or 0))
        self._max_files = max(1, int(max_files or 0))
        self._redaction = str(redaction or "default").strip().lower()
        if self._redaction not in ALLOWED_REDACTION:
            self._redaction = "default"
        self._write_errors = 0
        self._lock = threading.Lock()

    @property
    def active_log_file(self) -> Path:
        return self._logs_dir / LOG_FILE_NAME

    def debug(self, *args: Any) -> None:
        self.write_entry("debug", args)

    def error(self, *args: Any) -> None:
        self.write_entry("error", args)

    def write_entry(self, level: str, args: Tuple[Any, ...]) -> None:
        if not self._enabled:
            return

        try:
            record = self._build_record(level, args)
            line = json.dumps(record, ensure_ascii=True, separators=(",", ":"), default=str)
        except Exception:
            with self._lock:
                self._write_errors += 1
            return
        payload = (line + "\n").encode("utf-8")

        with self._lock:
            try:
                self._logs_dir.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed_locked(len(payload))
                with self.active_log_file.open("ab") as fp:
                    fp.write(payload)
            except Exception:
                self._write_errors += 1

    def _build_record(self, level: str, args: Tuple[Any, ...]) -> Dict[str, Any]:
        message, errors, extras = _split_args(args)
        data: Dict[str, Any] = {}
        if extras:
            data["args"] = extras
        if errors:
            data["exceptions"] = [_describe_exception(exc) for exc in errors]

        if self._redaction != "none":
            message = self._redact_text(message)
            data = self._redact_payload(data, strict=self._redaction == "strict")

        return {
            "ts_ms": now_ms(),
            "level": level,
            "message": message,
            "data": data,
        }

    def status(self) -> Dict[str, Any]:
        with self._lock:
            active = self.active_log_file
            active_size = active.stat().st_size if self._enabled and active.exists() else 0
            rotated = [
                str(self._rotated_file(index))
                for index in range(1, self._max_files + 1)
                if self._enabled and self._rotated_file(index).exists()
            ]
            return {
                "logs_enabled": self._enabled,
                "logs_dir": str(self._logs_dir),
                "logs_active_file": str(active),
                "logs_active_size_bytes": int(active_size),
                "logs_max_file_bytes": self._max_file_bytes,
                "logs_max_files": self._max_files,
                "logs_rotated_files": rotated,
                "logs_write_errors": int(self._write_errors),
            }

    def _rotate_if_needed_locked(self, incoming_size: int) -> None:
        current_size = 0
        if self.active_log_file.exists():
            current_size = int(self.active_log_file.stat().st_size)
        if current_size == 0 or current_size + int(incoming_size) <= self._max_file_bytes:
            return

        self._rotated_file(self._max_files).unlink(missing_ok=True)
        for index in range(self._max_files - 1, 0, -1):
            src = self._rotated_file(index)
            if src.exists():
                src.replace(self._rotated_file(index + 1))
        self.active_log_file.replace(self._rotated_file(1))

    def _rotated_file(self, index: int) -> Path:
        return Path("{0}.{1}".format(self.active_log_file, index))

    def _redact_payload(self, value: Any, strict: bool) -> Any:
        if isinstance(value, dict):
            out: Dict[str, Any] = {}
            for key, item in value.items():
                if _SENSITIVE_KEY_RE.search(str(key)):
                    out[key] = _REDACTED
                else:
                    out[key] = self._redact_payload(item, strict)
            return out
        if isinstance(value, (list, tuple)):
            return [self._redact_payload(item, strict) for item in value]
        if strict:
            return _REDACTED
        if isinstance(value, str):
            return self._redact_text(value)
        return value

    @staticmethod
    def _redact_text(text: str) -> str:
        if not text:
            return text
        masked = _BEARER_RE.sub("Bearer {0}".format(_REDACTED), text)
        return _KEY_VALUE_RE.sub(lambda m: "{0}={1}".format(m.group(1), _REDACTED), masked)


_active_logger: Logger = NullLogger()


def enable_logs(config: Any) -> Logger:
    """Select the process-wide sink used by handlers without their own logger.

    ``config`` may be falsy (disable), ``True`` (stderr) or any object with
    callable ``debug`` and ``error`` attributes.
    """
    global _active_logger
    if config is True:
        _active_logger = StreamLogger()
    elif not config:
        _active_logger = NullLogger()
    elif callable(getattr(config, "debug", None)) and callable(getattr(config, "error", None)):
        _active_logger = config
    else:
        raise TypeError("logger must provide debug() and error(), got {0}".format(type(config).__name__))
    return _active_logger


def get_logger() -> Logger:
    return _active_logger


def build_logger(settings: Any) -> Logger:
    if not getattr(settings, "logs_enabled", False):
        return get_logger()
    return JsonlLogger(
        logs_dir=settings.logs_dir,
        enabled=True,
        max_file_bytes=settings.logs_max_file_bytes,
        max_files=settings.logs_max_files,
        redaction=settings.logs_redaction,
    )
