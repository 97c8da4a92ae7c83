"""Dispatch core: bus, handler base class, router, and logging sinks."""
