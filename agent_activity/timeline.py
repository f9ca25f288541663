"""Bounded history of presented states, plus helpers for drawing it."""

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Optional

from .config import TIMELINE_CAP
from .states import LOW_ACTIVITY_STATES, SemanticState

# Longest a single low-activity gap may appear on the timeline bar
COMPRESS_LOW_CAP_MS = 30000


@dataclass(frozen=True)
class TimelineEntry:
    state: SemanticState
    at: int


class Timeline:
    """Append-only ring buffer. The oldest entry is evicted past ``cap``."""

    def __init__(self, cap: int = TIMELINE_CAP):
        self._entries: deque[TimelineEntry] = deque(maxlen=cap)

    @property
    def cap(self) -> int:
        return self._entries.maxlen

    def append(self, state: SemanticState, at: int):
        self._entries.append(TimelineEntry(state, at))

    def entries(self) -> list[TimelineEntry]:
        return list(self._entries)

    def last(self) -> Optional[TimelineEntry]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TimelineEntry]:
        return iter(self._entries)


def compress_timeline(entries: list[TimelineEntry], now: int) -> tuple[list[TimelineEntry], int]:
    """Shrink long idle/sleep/wait gaps so they don't dominate the bar.

    Returns the shifted entries and the matching shifted ``now``.
    """
    if len(entries) < 2:
        return list(entries), now

    out = [entries[0]]
    offset = 0
    for prev, cur in zip(entries, entries[1:]):
        gap = cur.at - prev.at
        if prev.state in LOW_ACTIVITY_STATES and gap > COMPRESS_LOW_CAP_MS:
            offset += gap - COMPRESS_LOW_CAP_MS
        out.append(TimelineEntry(cur.state, cur.at - offset))

    last = entries[-1]
    if last.state in LOW_ACTIVITY_STATES and now - last.at > COMPRESS_LOW_CAP_MS:
        offset += now - last.at - COMPRESS_LOW_CAP_MS
    return out, now - offset


def activity_buckets(entries: list[TimelineEntry], now: int, width: int) -> Optional[list[int]]:
    """Transition counts per time bucket, for an activity sparkline.

    None when there isn't enough history to draw anything useful.
    """
    if width <= 0 or len(entries) < 3:
        return None
    start = entries[0].at
    total = now - start
    if total < 2000:
        return None

    buckets = [0] * width
    bucket_ms = total / width
    for entry in entries[1:]:
        idx = min(width - 1, int((entry.at - start) / bucket_ms))
        if idx >= 0:
            buckets[idx] += 1
    return buckets
