"""Append-only JSONL event spool.

Adapters append one JSON object per line; the monitor tails the file.
"""

import json
import logging
from pathlib import Path

from ..models import Event
from . import register_source
from .base import EventSource

logger = logging.getLogger(__name__)


def append_event(path: Path, event: Event):
    """Append ``event`` as a single line. Creates the spool if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(event.to_dict(), separators=(",", ":")) + "\n"
    # One write call per line so concurrent appenders don't interleave
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)


@register_source
class JsonlEventSource(EventSource):
    """Tails a JSONL file, remembering a byte offset between polls.

    An unfinished last line is left for the next poll. If the file shrinks
    (rotated or truncated) reading starts over from the top. Lines that are
    not JSON objects are skipped.
    """

    name = "jsonl"

    def __init__(self, path: Path, from_end: bool = False):
        self.path = Path(path)
        self.offset = 0
        if from_end:
            try:
                self.offset = self.path.stat().st_size
            except OSError:
                self.offset = 0

    def watch_paths(self) -> list[Path]:
        return [self.path]

    def _read_new(self) -> bytes:
        try:
            size = self.path.stat().st_size
        except OSError:
            return b""

        if size < self.offset:
            logger.info(f"Event spool {self.path} shrank, rereading from start")
            self.offset = 0
        if size == self.offset:
            return b""

        try:
            with open(self.path, "rb") as f:
                f.seek(self.offset)
                chunk = f.read(size - self.offset)
        except OSError as e:
            logger.debug(f"Could not read event spool {self.path}: {e}")
            return b""

        end = chunk.rfind(b"\n")
        if end < 0:
            return b""
        self.offset += end + 1
        return chunk[: end + 1]

    def poll(self) -> list[Event]:
        events = []
        for raw in self._read_new().splitlines():
            raw = raw.strip()
            if not raw:
                continue
            try:
                data = json.loads(raw.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping garbled spool line: {e}")
                continue
            if not isinstance(data, dict):
                continue
            events.append(Event.from_dict(data))
        return events

