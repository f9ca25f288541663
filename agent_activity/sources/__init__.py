"""Event source and session feed registry."""

from typing import Type

from .base import EventSource, SessionFeed

# Registries of available implementations
_SOURCES: dict[str, Type[EventSource]] = {}
_FEEDS: dict[str, Type[SessionFeed]] = {}


def register_source(source_class: Type[EventSource]) -> Type[EventSource]:
    """Decorator to register an event source class."""
    _SOURCES[source_class.name] = source_class
    return source_class


def register_feed(feed_class: Type[SessionFeed]) -> Type[SessionFeed]:
    """Decorator to register a session feed class."""
    _FEEDS[feed_class.name] = feed_class
    return feed_class


def get_source(name: str, *args, **kwargs) -> EventSource | None:
    """Get an instance of an event source by name."""
    source_class = _SOURCES.get(name)
    if source_class:
        return source_class(*args, **kwargs)
    return None


def get_feed(name: str, *args, **kwargs) -> SessionFeed | None:
    """Get an instance of a session feed by name."""
    feed_class = _FEEDS.get(name)
    if feed_class:
        return feed_class(*args, **kwargs)
    return None


def source_names() -> list[str]:
    return sorted(_SOURCES)


def feed_names() -> list[str]:
    return sorted(_FEEDS)


# Import implementations to trigger registration
from . import spool  # noqa: F401, E402
from . import sessions  # noqa: F401, E402
from .sessions import DirectorySessionFeed, SessionSnapshotWriter  # noqa: E402
from .spool import JsonlEventSource, append_event  # noqa: E402
from .watcher import PathWatcher, watch_paths  # noqa: E402

__all__ = [
    "EventSource",
    "SessionFeed",
    "JsonlEventSource",
    "DirectorySessionFeed",
    "SessionSnapshotWriter",
    "PathWatcher",
    "append_event",
    "get_feed",
    "get_source",
    "register_feed",
    "register_source",
    "watch_paths",
]
