"""Base classes for event sources and session discovery feeds."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..models import Event, SessionSnapshot


class EventSource(ABC):
    """Somewhere lifecycle events arrive from.

    ``poll`` is called at the top of every tick. It must not block and
    returns whatever arrived since the last call, oldest first.
    """

    name: str = ""  # registry key: "jsonl", ...

    @abstractmethod
    def poll(self) -> list[Event]:
        ...

    def watch_paths(self) -> list[Path]:
        """Files whose changes mean new events. Empty if not file-backed."""
        return []

    def close(self):
        pass


class SessionFeed(ABC):
    """Periodic snapshot of every known session, for reconciliation."""

    name: str = ""

    @abstractmethod
    def discover(self, exclude_id: Optional[str] = None) -> list[SessionSnapshot]:
        """Every session currently backed by data, minus ``exclude_id``."""
        ...

    def forget(self, session_id: str):
        """The arbiter dropped ``session_id`` as stale; discard its data."""

    def watch_paths(self) -> list[Path]:
        return []
