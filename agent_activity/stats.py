"""Streaks, per-session counters and their persistence."""

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from .classify.tools import input_path, is_edit_tool, is_subagent_tool
from .config import MAX_FREQUENT_FILES, MILESTONE_DISPLAY_MS, MILESTONES
from .models import now_ms

logger = logging.getLogger(__name__)


@dataclass
class Milestone:
    value: int
    type: str
    at: int


@dataclass
class DailyStats:
    date: str = ""
    session_count: int = 0
    cumulative_ms: int = 0


@dataclass
class SessionCounters:
    id: str = ""
    start: int = 0
    tool_calls: int = 0
    files_edited: list[str] = field(default_factory=list)
    subagent_count: int = 0


@dataclass
class Records:
    longest_session: int = 0
    most_subagents: int = 0
    most_files_edited: int = 0


@dataclass
class StreakStats:
    """Process-wide aggregate, mutated once per classified tool outcome."""

    streak: int = 0
    best_streak: int = 0
    broken_streak: int = 0
    broken_streak_at: int = 0
    total_tool_calls: int = 0
    total_errors: int = 0
    daily: DailyStats = field(default_factory=DailyStats)
    frequent_files: dict[str, int] = field(default_factory=dict)
    recent_milestone: Optional[Milestone] = None

    session: SessionCounters = field(default_factory=SessionCounters)
    records: Records = field(default_factory=Records)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "StreakStats":
        """Rebuild from stored JSON. Unknown or broken fields fall back to defaults."""
        if not isinstance(data, dict):
            return cls()

        def _int(key, source=data):
            try:
                return int(source.get(key) or 0)
            except (TypeError, ValueError):
                return 0

        def _sub(key, klass):
            raw = data.get(key)
            if not isinstance(raw, dict):
                return klass()
            known = {k: v for k, v in raw.items() if k in klass.__dataclass_fields__}
            try:
                return klass(**known)
            except TypeError:
                return klass()

        milestone = None
        raw_milestone = data.get("recent_milestone")
        if isinstance(raw_milestone, dict):
            milestone = Milestone(
                value=_int("value", raw_milestone),
                type=str(raw_milestone.get("type") or "streak"),
                at=_int("at", raw_milestone),
            )

        frequent = data.get("frequent_files")
        if not isinstance(frequent, dict):
            frequent = {}

        return cls(
            streak=_int("streak"),
            best_streak=_int("best_streak"),
            broken_streak=_int("broken_streak"),
            broken_streak_at=_int("broken_streak_at"),
            total_tool_calls=_int("total_tool_calls"),
            total_errors=_int("total_errors"),
            daily=_sub("daily", DailyStats),
            frequent_files={str(k): int(v) for k, v in frequent.items() if isinstance(v, int)},
            recent_milestone=milestone,
            session=_sub("session", SessionCounters),
            records=_sub("records", Records),
        )


def update_streak(stats: StreakStats, is_error: bool, now: Optional[int] = None) -> StreakStats:
    """Advance or break the success streak. Mutates and returns ``stats``."""
    now = now_ms() if now is None else now
    if is_error:
        stats.broken_streak = stats.streak
        stats.broken_streak_at = now
        stats.total_errors += 1
        stats.streak = 0
    else:
        stats.streak += 1
        stats.best_streak = max(stats.best_streak, stats.streak)
        if stats.streak in MILESTONES:
            stats.recent_milestone = Milestone(value=stats.streak, type="streak", at=now)
    return stats


def expire_milestone(stats: StreakStats, now: Optional[int] = None) -> Optional[Milestone]:
    """Drop the milestone once its display window has passed."""
    now = now_ms() if now is None else now
    milestone = stats.recent_milestone
    if milestone and now - milestone.at > MILESTONE_DISPLAY_MS:
        stats.recent_milestone = None
    return stats.recent_milestone


def _today(now: int) -> str:
    return datetime.fromtimestamp(now / 1000).strftime("%Y-%m-%d")


def _close_session(stats: StreakStats, now: int):
    """Fold the running session into records and the daily total."""
    session = stats.session
    if session.start:
        duration = max(0, now - session.start)
        stats.records.longest_session = max(stats.records.longest_session, duration)
        stats.daily.cumulative_ms += duration
        session.start = 0
    stats.records.most_files_edited = max(stats.records.most_files_edited, len(session.files_edited))
    stats.records.most_subagents = max(stats.records.most_subagents, session.subagent_count)


def begin_session(stats: StreakStats, session_id: str, now: Optional[int] = None) -> StreakStats:
    """Roll the daily bucket and switch the session counters to ``session_id``.

    Call once per event before classifying it.
    """
    now = now_ms() if now is None else now
    today = _today(now)
    if stats.daily.date != today:
        stats.daily = DailyStats(date=today)

    if stats.session.id != session_id:
        if stats.session.id:
            _close_session(stats, now)
        stats.daily.session_count += 1
        stats.session = SessionCounters(id=session_id, start=now)

    expire_milestone(stats, now)
    return stats


def end_session(stats: StreakStats, now: Optional[int] = None) -> StreakStats:
    """The session finished a turn or ended. Safe to call twice."""
    _close_session(stats, now_ms() if now is None else now)
    return stats


def record_tool_start(stats: StreakStats, tool_name: str, tool_input: dict) -> StreakStats:
    """Count a tool call, the file it edits and any subagent it spawns."""
    stats.total_tool_calls += 1
    stats.session.tool_calls += 1

    if is_edit_tool(tool_name):
        name = input_path(tool_input or {})
        if name:
            if name not in stats.session.files_edited:
                stats.session.files_edited.append(name)
            stats.frequent_files[name] = stats.frequent_files.get(name, 0) + 1
            prune_frequent_files(stats.frequent_files)

    if is_subagent_tool(tool_name):
        stats.session.subagent_count += 1
        stats.records.most_subagents = max(stats.records.most_subagents, stats.session.subagent_count)

    return stats


def prune_frequent_files(frequent: Optional[dict], cap: int = MAX_FREQUENT_FILES) -> Optional[dict]:
    """Keep ``frequent`` under ``cap`` entries, dropping one-off files first.

    Mutates in place and returns the same dict.
    """
    if frequent is None or len(frequent) <= cap:
        return frequent

    kept = {name: count for name, count in frequent.items() if count >= 2}
    ranked = sorted(kept.items(), key=lambda item: item[1], reverse=True)[:cap]
    frequent.clear()
    frequent.update(ranked)
    return frequent


def top_frequent_files(frequent: Optional[dict], limit: int = 10) -> dict:
    """The most edited files, three edits or more, as a new dict."""
    if not frequent:
        return {}
    ranked = sorted(
        ((name, count) for name, count in frequent.items() if count >= 3),
        key=lambda item: item[1],
        reverse=True,
    )
    return dict(ranked[:limit])


class StatsStore:
    """JSON file holding ``StreakStats`` between runs.

    Reads that fail for any reason yield fresh stats.
    """

    _lock = threading.Lock()

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> StreakStats:
        with self._lock:
            if not self.path.exists():
                return StreakStats()
            try:
                with open(self.path) as f:
                    return StreakStats.from_dict(json.load(f))
            except (json.JSONDecodeError, IOError) as e:
                logger.debug(f"Unreadable stats file {self.path}: {e}")
                return StreakStats()

    def save(self, stats: StreakStats):
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp = self.path.with_suffix(".tmp")
                with open(tmp, "w") as f:
                    json.dump(stats.to_dict(), f)
                tmp.replace(self.path)
            except IOError as e:
                logger.warning(f"Failed to save stats to {self.path}: {e}")
