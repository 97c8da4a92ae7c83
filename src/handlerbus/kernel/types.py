"""Core typed contracts shared by the bus, handlers, and loggers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

Listener = Callable[[str, Any], None]


def now_ms() -> int:
    return int(time.time() * 1000)


class ErrorType(str, Enum):
    NETWORK_ERROR = "networkError"
    MEDIA_ERROR = "mediaError"
    MUX_ERROR = "muxError"
    OTHER_ERROR = "otherError"


class ErrorDetails(str, Enum):
    INTERNAL_EXCEPTION = "internalException"


class HandlerState(str, Enum):
    CONSTRUCTED = "constructed"
    ACTIVE = "active"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class ReportedError:
    """Payload published on the error event when a handler fails."""

    event: str
    err: Optional[BaseException] = None
    type: ErrorType = ErrorType.OTHER_ERROR
    details: ErrorDetails = ErrorDetails.INTERNAL_EXCEPTION
    fatal: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "details": self.details.value,
            "fatal": self.fatal,
            "event": self.event,
            "err": self.err,
        }


class EventBusLike(Protocol):
    def on(self, event_name: str, listener: Listener) -> None:
        ...

    def off(self, event_name: str, listener: Listener) -> None:
        ...

    def trigger(self, event_name: str, payload: Any = None) -> None:
        ...


class Logger(Protocol):
    def debug(self, *args: Any) -> None:
        ...

    def error(self, *args: Any) -> None:
        ...
