"""UI widgets for the Agent Activity monitor."""

from pathlib import Path
from typing import Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.widgets import ListItem, Static

from ..display import DisplayState
from ..engine import EngineSnapshot, SessionView
from ..states import CRITICAL_STATES, OUTCOME_STATES, SemanticState
from ..stats import top_frequent_files
from ..timeline import activity_buckets, compress_timeline

S = SemanticState

STATE_STYLES = {
    S.IDLE: "dim white",
    S.SLEEPING: "dim blue",
    S.THINKING: "magenta",
    S.RESPONDING: "magenta bold",
    S.CODING: "green bold",
    S.READING: "cyan",
    S.SEARCHING: "cyan",
    S.REVIEWING: "cyan bold",
    S.EXECUTING: "yellow",
    S.TESTING: "yellow bold",
    S.INSTALLING: "yellow",
    S.COMMITTING: "green",
    S.SUBAGENT: "blue bold",
    S.STARTING: "white",
    S.SPAWNING: "white",
    S.WAITING: "bold orange1",
    S.CAFFEINATED: "bold bright_red",
    S.RATELIMITED: "bold red",
    S.ERROR: "bold red",
    S.HAPPY: "bold bright_green",
    S.PROUD: "bold bright_green",
    S.SATISFIED: "bright_green",
    S.RELIEVED: "bright_green",
}

SPARK_CHARS = " ▁▂▃▄▅▆▇█"


def state_style(state: SemanticState) -> str:
    return STATE_STYLES.get(state, "white")


def timeline_bar(display: DisplayState, now: int, width: int) -> Text:
    """One colored cell per slice of (compressed) history."""
    text = Text()
    entries, shifted_now = compress_timeline(display.timeline, now)
    if width <= 0 or not entries:
        return text

    start = entries[0].at
    span = max(1, shifted_now - start)
    idx = 0
    for col in range(width):
        t = start + span * col / width
        while idx + 1 < len(entries) and entries[idx + 1].at <= t:
            idx += 1
        text.append("█", style=state_style(entries[idx].state))
    return text


def sparkline(display: DisplayState, now: int, width: int) -> Optional[Text]:
    buckets = activity_buckets(display.timeline, now, width)
    if buckets is None:
        return None
    peak = max(buckets) or 1
    chars = "".join(SPARK_CHARS[round(count / peak * (len(SPARK_CHARS) - 1))] for count in buckets)
    return Text(chars, style="magenta")


class PrimaryPanel(Static):
    """The primary session: current state, history and streak."""

    def __init__(self, id: str = None):
        super().__init__("", id=id)
        self.snapshot: Optional[EngineSnapshot] = None

    def show(self, snapshot: EngineSnapshot):
        self.snapshot = snapshot
        self.update(self._build_text(max(20, self.size.width - 4)))

    def on_resize(self, event) -> None:
        if self.snapshot:
            self.update(self._build_text(max(20, self.size.width - 4)))

    def _build_text(self, width: int) -> Text:
        snap = self.snapshot
        display = snap.primary
        state = display.presented

        text = Text()
        if snap.primary_session_id is None:
            text.append("No sessions yet\n\n", style="dim")
            text.append("Waiting for events...", style="dim italic")
            return text

        text.append(f"{state.value.upper()}", style=state_style(state))
        if display.stopped:
            text.append("  (stopped)", style="dim")
        text.append("\n")
        if display.detail:
            text.append(f"{display.detail}\n", style="white")
        if display.pending:
            text.append("next: ", style="dim")
            text.append(f"{display.pending.state.value}", style=state_style(display.pending.state))
            if display.pending.detail:
                text.append(f" {display.pending.detail}", style="dim")
            text.append("\n")
        if snap.last_diff and state in OUTCOME_STATES:
            text.append(f"+{snap.last_diff.added}", style="green")
            text.append(f" -{snap.last_diff.removed}\n", style="red")
        text.append("\n")

        text.append("Session: ", style="bold")
        text.append(f"{snap.primary_session_id}\n", style="cyan")
        if snap.primary_cwd:
            text.append("Project: ", style="bold")
            text.append(f"{Path(snap.primary_cwd).name}\n", style="green")
        if snap.primary_model_name:
            text.append("Model: ", style="bold")
            text.append(f"{snap.primary_model_name}\n")
        text.append("\n")

        text.append("Timeline\n", style="bold")
        text.append_text(timeline_bar(display, snap.at, width))
        text.append("\n")
        spark = sparkline(display, snap.at, width)
        if spark is not None:
            text.append_text(spark)
            text.append("\n")
        text.append("\n")

        stats = snap.stats
        if stats is not None:
            text.append("Streak: ", style="bold")
            text.append(f"{stats.streak}", style="bright_green bold" if stats.streak else "dim")
            text.append(f"  best {stats.best_streak}", style="dim")
            if stats.recent_milestone:
                text.append(f"  ★ {stats.recent_milestone.value} in a row!", style="yellow bold")
            text.append("\n")
            text.append(
                f"Tools {stats.session.tool_calls} · files {len(stats.session.files_edited)}"
                f" · subagents {stats.session.subagent_count}\n",
                style="dim",
            )
            top = top_frequent_files(stats.frequent_files, limit=3)
            if top:
                text.append("Hot files: ", style="bold")
                text.append(", ".join(f"{name} ({count})" for name, count in top.items()), style="dim")
                text.append("\n")
        return text


class SessionItem(ListItem):
    """List item for a secondary session."""

    def __init__(self, view: SessionView):
        super().__init__()
        self.view = view
        self._static: Optional[Static] = None

    def compose(self) -> ComposeResult:
        self._static = Static(self._build_text(100))
        yield self._static

    def on_mount(self) -> None:
        self._sync_classes()

    def on_resize(self, event) -> None:
        """Update text when resized."""
        if self._static:
            self._static.update(self._build_text(self.size.width))

    def refresh_view(self, view: SessionView):
        self.view = view
        self._sync_classes()
        if self._static:
            self._static.update(self._build_text(self.size.width))

    def _sync_classes(self):
        self.set_class(self.view.stopped, "-stopped")
        self.set_class(self.view.display.presented in CRITICAL_STATES, "-critical")

    def _build_text(self, width: int) -> Text:
        view = self.view
        state = view.display.presented

        text = Text()
        text.append(f"{(view.label or view.session_id)[:8]:<8}", style="cyan bold")
        text.append(" │ ", style="dim")
        text.append(f"{state.value:<11}", style=state_style(state))
        text.append(" │ ", style="dim")

        prefix_width = 28  # label(8) + sep(3) + state(11) + sep(3) + padding(3)
        detail_width = max(10, width - prefix_width)
        detail = view.display.detail
        if view.stopped:
            detail = f"{detail} (stopped)" if detail else "(stopped)"
        text.append(detail[:detail_width], style="dim white" if view.stopped else "white")
        return text
