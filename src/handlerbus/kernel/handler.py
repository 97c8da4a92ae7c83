"""Subscription, dispatch, and error containment for bus-attached components.

Every object in the event handling chain either inherits from
:class:`EventHandler` or holds an :class:`EventRouter`. The router subscribes
one pinned listener per handled event name, resolves each incoming event to a
method on its owner, and turns any failure inside that method into a
non-fatal error event on the bus.

Resolution order for an event such as ``hlsFragLoaded``:

1. a method marked ``@handles("hlsFragLoaded")``;
2. the naming convention ``onFragLoaded`` (library prefix stripped, ``on``
   prepended);
3. its snake_case spelling ``on_frag_loaded``.
"""

from __future__ import annotations

import re
import weakref
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from handlerbus.kernel.errors import (
    DuplicateEventNameError,
    ForbiddenEventNameError,
    HandlerBusError,
    HandlerResolutionError,
)
from handlerbus.kernel.events import ERROR, LIBRARY_EVENT_PREFIX, RESERVED_EVENT_NAMES
from handlerbus.kernel.logger import build_logger, get_logger
from handlerbus.kernel.types import (
    EventBusLike,
    HandlerState,
    Listener,
    Logger,
    ReportedError,
)

DEBUG_LOG_ENABLED_DEFAULT = False

HANDLES_ATTR = "__handles_events__"

# Dispatch plumbing that must never be picked as an event's target.
_INTERNAL_METHODS = frozenset(
    {
        "on_event",
        "on_event_generic",
        "on_handler_destroying",
        "on_handler_destroyed",
    }
)

_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY_RE = re.compile(r"([a-z\d])([A-Z])")


def strip_event_prefix(event_name: str, prefix: str = LIBRARY_EVENT_PREFIX) -> str:
    if prefix and event_name.startswith(prefix):
        return event_name[len(prefix):]
    return event_name


def derive_method_name(event_name: str, prefix: str = LIBRARY_EVENT_PREFIX) -> str:
    """``hlsFragLoaded`` -> ``onFragLoaded``."""
    return "on" + strip_event_prefix(event_name, prefix)


def snake_case_method_name(event_name: str, prefix: str = LIBRARY_EVENT_PREFIX) -> str:
    """``hlsLevelPTSUpdated`` -> ``on_level_pts_updated``."""
    suffix = strip_event_prefix(event_name, prefix)
    suffix = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", suffix)
    suffix = _WORD_BOUNDARY_RE.sub(r"\1_\2", suffix)
    suffix = suffix.strip("_").lower()
    return "on_{0}".format(suffix) if suffix else "on"


def handles(*event_names: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Mark a method as the explicit target for one or more event names."""
    if not event_names:
        raise ValueError("handles() needs at least one event name")
    for name in event_names:
        if not isinstance(name, str) or not name:
            raise ValueError("event names must be non-empty strings, got {0!r}".format(name))

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        existing = getattr(func, HANDLES_ATTR, ())
        setattr(func, HANDLES_ATTR, tuple(existing) + tuple(event_names))
        return func

    return decorator


def _collect_explicit_handlers(owner_type: type) -> Dict[str, str]:
    mapping: Dict[str, str] = {}
    for klass in reversed(owner_type.__mro__):
        local: Dict[str, str] = {}
        for attr_name, value in vars(klass).items():
            target = getattr(value, "__func__", value)
            for event_name in getattr(target, HANDLES_ATTR, ()):
                previous = local.get(event_name)
                if previous is not None and previous != attr_name:
                    raise HandlerBusError(
                        "{0} maps event {1} to both {2} and {3}".format(
                            klass.__name__,
                            event_name,
                            previous,
                            attr_name,
                        )
                    )
                local[event_name] = attr_name
        mapping.update(local)
    return mapping


class DispatchTable:
    """Event name to method name lookup, shared by all instances of a type."""

    def __init__(self, owner_type: type, prefix: str = LIBRARY_EVENT_PREFIX) -> None:
        self._owner_ref = weakref.ref(owner_type)
        self.prefix = prefix
        self.explicit: Dict[str, str] = _collect_explicit_handlers(owner_type)
        self._candidates: Dict[str, Tuple[str, ...]] = {}

    @property
    def owner_type(self) -> Optional[type]:
        return self._owner_ref()

    def method_name(self, event_name: str) -> str:
        return self.explicit.get(event_name) or derive_method_name(event_name, self.prefix)

    def candidates(self, event_name: str) -> Tuple[str, ...]:
        cached = self._candidates.get(event_name)
        if cached is not None:
            return cached

        names: List[str] = []
        for name in (
            self.explicit.get(event_name),
            derive_method_name(event_name, self.prefix),
            snake_case_method_name(event_name, self.prefix),
        ):
            if not name or name in names or name in _INTERNAL_METHODS:
                continue
            names.append(name)
        cached = tuple(names)
        self._candidates[event_name] = cached
        return cached

    def describe(
        self,
        event_names: Iterable[str],
        reserved: frozenset = RESERVED_EVENT_NAMES,
    ) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for event_name in event_names:
            target = None
            for name in self.candidates(event_name):
                if callable(getattr(self.owner_type, name, None)):
                    target = name
                    break
            rows.append(
                {
                    "event": event_name,
                    "method": target or self.method_name(event_name),
                    "reserved": event_name in reserved,
                    "resolved": target is not None,
                }
            )
        return rows


# Tables hold their type weakly so a discarded handler class can be collected.
_TABLES: "weakref.WeakKeyDictionary[type, Dict[str, DispatchTable]]" = weakref.WeakKeyDictionary()


def dispatch_table(owner_type: type, prefix: str = LIBRARY_EVENT_PREFIX) -> DispatchTable:
    by_prefix = _TABLES.get(owner_type)
    if by_prefix is None:
        by_prefix = {}
        _TABLES[owner_type] = by_prefix
    table = by_prefix.get(prefix)
    if table is None:
        table = DispatchTable(owner_type, prefix)
        by_prefix[prefix] = table
    return table


class EventRouter:
    """Standalone subscription + dispatch + error boundary for one owner."""

    def __init__(
        self,
        bus: EventBusLike,
        owner: Any,
        events: Iterable[Any],
        *,
        prefix: str = LIBRARY_EVENT_PREFIX,
        error_event: str = ERROR,
        logger: Optional[Logger] = None,
        reserved: Iterable[str] = RESERVED_EVENT_NAMES,
        listener: Optional[Listener] = None,
        debug_log_enabled: bool = DEBUG_LOG_ENABLED_DEFAULT,
    ) -> None:
        self.bus = bus
        self.owner = owner
        self.handled_events: Tuple[Any, ...] = tuple(events)
        self.prefix = prefix
        self.error_event = error_event
        self.reserved = frozenset(reserved)
        # Pinned once so off() removes the same callable on() registered.
        self.listener: Listener = listener if listener is not None else self.on_event
        self.debug_log_enabled = bool(debug_log_enabled)
        self.state = HandlerState.CONSTRUCTED
        self.table = dispatch_table(type(owner), prefix)
        self._logger = logger

    @classmethod
    def attach(cls, bus: EventBusLike, owner: Any, *events: str, **options: Any) -> "EventRouter":
        router = cls(bus, owner, events, **options)
        router.register_listeners()
        return router

    @property
    def logger(self) -> Logger:
        return self._logger if self._logger is not None else get_logger()

    def is_event_handler(self) -> bool:
        return (
            bool(self.handled_events)
            and all(isinstance(event, str) for event in self.handled_events)
            and callable(self.listener)
        )

    def register_listeners(self) -> None:
        if self.is_event_handler():
            seen = set()
            for event in self.handled_events:
                if event in self.reserved:
                    raise ForbiddenEventNameError(event)
                if event in seen:
                    raise DuplicateEventNameError(event)
                seen.add(event)
            for event in self.handled_events:
                self.bus.on(event, self.listener)
        self.state = HandlerState.ACTIVE

    def unregister_listeners(self) -> None:
        if not self.is_event_handler():
            return
        for event in self.handled_events:
            self.bus.off(event, self.listener)

    def destroy(self) -> None:
        if self.state is not HandlerState.DESTROYED:
            self.state = HandlerState.DESTROYING
        try:
            self.unregister_listeners()
        finally:
            self.state = HandlerState.DESTROYED

    def set_debug_log_enabled(self, enabled: bool) -> None:
        self.debug_log_enabled = bool(enabled)

    def on_event(self, event: str, data: Any = None) -> None:
        self.dispatch(event, data)

    def resolve(self, event: str) -> Callable[[Any], Any]:
        candidates = self.table.candidates(event)
        for name in candidates:
            method = getattr(self.owner, name, None)
            if callable(method):
                return method
        raise HandlerResolutionError(
            event,
            type(self.owner).__name__,
            self.table.method_name(event),
            candidates,
        )

    def dispatch(self, event: str, data: Any = None) -> None:
        logger = self.logger
        if self.debug_log_enabled:
            logger.debug("Enter handling event:", event)

        try:
            self.resolve(event)(data)
        except Exception as exc:
            self._report_failure(logger, event, exc)

        if self.debug_log_enabled:
            logger.debug("Done handling event:", event)

    def _report_failure(self, logger: Logger, event: str, exc: Exception) -> None:
        logger.error(
            'An internal error happened while handling event {0}. Error message: "{1}". '
            "Here is a stacktrace:".format(event, exc),
            exc,
        )
        # A failing error listener would otherwise feed itself forever.
        if event == self.error_event:
            return
        try:
            self.bus.trigger(self.error_event, ReportedError(event=event, err=exc))
        except Exception as publish_exc:
            logger.error(
                "Publishing {0} for event {1} failed: {2}".format(self.error_event, event, publish_exc),
                publish_exc,
            )


class EventHandler:
    """Base class for components in the event handling chain.

    Subclasses pass the event names they handle to ``__init__`` and define one
    method per event (``onFragLoaded`` for ``hlsFragLoaded``, or any method
    marked with ``@handles``). Construction subscribes them; ``destroy()``
    unsubscribes them again.
    """

    def __init__(
        self,
        bus: EventBusLike,
        *events: str,
        prefix: str = LIBRARY_EVENT_PREFIX,
        error_event: str = ERROR,
        logger: Optional[Logger] = None,
        reserved: Iterable[str] = RESERVED_EVENT_NAMES,
        debug_log_enabled: bool = DEBUG_LOG_ENABLED_DEFAULT,
    ) -> None:
        self.bus = bus
        self.handled_events: Tuple[str, ...] = tuple(events)
        self._router = EventRouter(
            bus,
            self,
            self.handled_events,
            prefix=prefix,
            error_event=error_event,
            logger=logger,
            reserved=reserved,
            listener=self.on_event,
            debug_log_enabled=debug_log_enabled,
        )
        self.register_listeners()

    @property
    def router(self) -> EventRouter:
        return self._router

    @property
    def state(self) -> HandlerState:
        return self._router.state

    @property
    def debug_log_enabled(self) -> bool:
        return self._router.debug_log_enabled

    def destroy(self) -> None:
        if self._router.state is not HandlerState.DESTROYED:
            self._router.state = HandlerState.DESTROYING
        first_error: Optional[Exception] = None
        for step in (self.on_handler_destroying, self.unregister_listeners, self.on_handler_destroyed):
            try:
                step()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        self._router.state = HandlerState.DESTROYED
        if first_error is not None:
            raise first_error

    def on_handler_destroying(self) -> None:
        pass

    def on_handler_destroyed(self) -> None:
        pass

    def is_event_handler(self) -> bool:
        return self._router.is_event_handler()

    def register_listeners(self) -> None:
        self._router.register_listeners()

    def unregister_listeners(self) -> None:
        self._router.unregister_listeners()

    def on_event(self, event: str, data: Any = None) -> None:
        self.on_event_generic(event, data)

    def on_event_generic(self, event: str, data: Any = None) -> None:
        self._router.dispatch(event, data)

    def set_debug_log_enabled(self, enabled: bool) -> None:
        self._router.set_debug_log_enabled(enabled)


def router_options(settings: Any) -> Dict[str, Any]:
    """Keyword arguments for EventHandler/EventRouter from loaded settings.

    Without a configured log file the handler keeps following the
    process-wide sink selected by ``enable_logs``.
    """
    return {
        "prefix": settings.event_prefix,
        "error_event": settings.error_event,
        "debug_log_enabled": settings.debug_log_enabled,
        "logger": build_logger(settings) if settings.logs_enabled else None,
    }
