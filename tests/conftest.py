from __future__ import annotations

from pathlib import Path
from typing import Any, List, Tuple

import pytest

from handlerbus.config import resolve_project_config_root
from handlerbus.kernel.eventbus import EventBus
from handlerbus.kernel.logger import enable_logs


class RecordingLogger:
    def __init__(self) -> None:
        self.records: List[Tuple[str, Tuple[Any, ...]]] = []

    def debug(self, *args: Any) -> None:
        self.records.append(("debug", args))

    def error(self, *args: Any) -> None:
        self.records.append(("error", args))

    def levels(self) -> List[str]:
        return [level for level, _ in self.records]

    def messages(self, level: str) -> List[Tuple[Any, ...]]:
        return [args for record_level, args in self.records if record_level == level]


@pytest.fixture(autouse=True)
def reset_process_logger():
    enable_logs(False)
    yield
    enable_logs(False)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def error_events(bus: EventBus):
    received: List[Any] = []
    bus.on("hlsError", lambda _name, payload: received.append(payload))
    return received


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    workspace = tmp_path / "workspace"
    workspace.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(workspace)

    return {
        "workspace": workspace,
        "config_root": resolve_project_config_root(workspace),
    }
