"""Event names owned by the dispatch core."""

from __future__ import annotations

LIBRARY_EVENT_PREFIX = "hls"

ERROR = "hlsError"

# Bus lifecycle signals. Ordinary handlers may never subscribe to these.
EVENT_GENERIC = "hlsEventGeneric"
HANDLER_DESTROYING = "hlsHandlerDestroying"
HANDLER_DESTROYED = "hlsHandlerDestroyed"

RESERVED_EVENT_NAMES = frozenset(
    {
        EVENT_GENERIC,
        HANDLER_DESTROYING,
        HANDLER_DESTROYED,
    }
)
