"""Exceptions raised by the handler dispatch core."""

from __future__ import annotations

from typing import Sequence


class HandlerBusError(RuntimeError):
    """Base error for handler subscription and dispatch."""


class ForbiddenEventNameError(HandlerBusError):
    """Raised at construction when a handler subscribes to a reserved name."""

    def __init__(self, event_name: str) -> None:
        self.event_name = event_name
        super().__init__("Forbidden event-name: {0}".format(event_name))


class DuplicateEventNameError(HandlerBusError):
    """Raised at construction when a handler lists the same name twice."""

    def __init__(self, event_name: str) -> None:
        self.event_name = event_name
        super().__init__("Duplicate event-name: {0}".format(event_name))


class HandlerResolutionError(HandlerBusError):
    """Raised during dispatch when no handler method matches an event."""

    def __init__(
        self,
        event: str,
        handler_type: str,
        method_name: str,
        tried: Sequence[str] = (),
    ) -> None:
        self.event = event
        self.handler_type = handler_type
        self.method_name = method_name
        self.tried = tuple(tried) or (method_name,)
        super().__init__(
            "Event {0} has no generic handler in this {1} class (tried {2})".format(
                event,
                handler_type,
                ", ".join(self.tried),
            )
        )
