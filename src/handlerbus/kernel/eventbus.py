"""In-process event bus that handlers attach to."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, DefaultDict, List, Optional

from handlerbus.kernel.types import Listener


class EventBus:
    """Synchronous pub-sub scoped to one process.

    Listeners run in registration order on the caller's stack. Each trigger
    works on a snapshot of the listener list, so ``off`` during dispatch only
    affects later triggers. The bus is not an error boundary: exceptions from
    plain listeners reach the caller of ``trigger``.
    """

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def on(self, event_name: str, listener: Listener) -> None:
        self._listeners[event_name].append(listener)

    def off(self, event_name: str, listener: Listener) -> None:
        registered = self._listeners.get(event_name)
        if not registered:
            return
        for index in range(len(registered) - 1, -1, -1):
            if registered[index] is listener:
                del registered[index]
                break
        if not registered:
            del self._listeners[event_name]

    def trigger(self, event_name: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event_name, [])):
            listener(event_name, payload)

    def listeners(self, event_name: str) -> List[Listener]:
        return list(self._listeners.get(event_name, []))

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def remove_all_listeners(self, event_name: Optional[str] = None) -> None:
        if event_name is None:
            self._listeners.clear()
            return
        self._listeners.pop(event_name, None)
