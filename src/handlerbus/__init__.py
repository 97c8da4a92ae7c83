"""Convention-based event subscription and dispatch for in-process buses."""

from handlerbus.kernel.errors import (
    DuplicateEventNameError,
    ForbiddenEventNameError,
    HandlerBusError,
    HandlerResolutionError,
)
from handlerbus.kernel.eventbus import EventBus
from handlerbus.kernel.handler import EventHandler, EventRouter, handles
from handlerbus.kernel.logger import enable_logs, get_logger
from handlerbus.kernel.types import ErrorDetails, ErrorType, HandlerState, ReportedError

__version__ = "0.1.0"

__all__ = [
    "ErrorDetails",
    "ErrorType",
    "DuplicateEventNameError",
    "EventBus",
    "EventHandler",
    "EventRouter",
    "ForbiddenEventNameError",
    "HandlerBusError",
    "HandlerResolutionError",
    "HandlerState",
    "ReportedError",
    "enable_logs",
    "get_logger",
    "handles",
]
