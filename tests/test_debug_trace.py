from __future__ import annotations

from handlerbus.kernel.handler import EventHandler


class Loader(EventHandler):
    def __init__(self, bus, **options):
        self.calls = []
        super().__init__(bus, "xLoaded", "xMissing", prefix="x", **options)

    def onLoaded(self, data):
        self.calls.append(data)


def test_debug_trace_disabled_by_default(bus, recording_logger):
    handler = Loader(bus, logger=recording_logger)

    bus.trigger("xLoaded", 1)

    assert handler.debug_log_enabled is False
    assert recording_logger.records == []


def test_debug_trace_brackets_successful_dispatch(bus, recording_logger):
    handler = Loader(bus, logger=recording_logger)
    handler.set_debug_log_enabled(True)

    bus.trigger("xLoaded", 1)

    assert recording_logger.records == [
        ("debug", ("Enter handling event:", "xLoaded")),
        ("debug", ("Done handling event:", "xLoaded")),
    ]
    assert handler.calls == [1]


def test_debug_trace_brackets_failed_dispatch(bus, recording_logger, error_events):
    handler = Loader(bus, logger=recording_logger, debug_log_enabled=True)

    bus.trigger("xMissing", None)

    assert recording_logger.levels() == ["debug", "error", "debug"]
    assert recording_logger.records[-1] == ("debug", ("Done handling event:", "xMissing"))
    assert len(error_events) == 1
    assert handler.calls == []


def test_toggling_trace_does_not_change_outcome(bus, recording_logger, error_events):
    handler = Loader(bus, logger=recording_logger)

    bus.trigger("xLoaded", "quiet")
    handler.set_debug_log_enabled(True)
    bus.trigger("xLoaded", "traced")
    handler.set_debug_log_enabled(False)
    bus.trigger("xLoaded", "quiet again")

    assert handler.calls == ["quiet", "traced", "quiet again"]
    assert len(recording_logger.messages("debug")) == 2
    assert error_events == []
