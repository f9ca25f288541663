"""Agent Activity monitor TUI application."""

import logging
import random
from pathlib import Path
from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Header, ListView, Static

from .config import FPS, Settings
from .engine import ActivityEngine, EngineSnapshot
from .sources import PathWatcher, watch_paths
from .ui import APP_CSS, PrimaryPanel, SessionItem

logger = logging.getLogger(__name__)


class ActivityMonitor(App):
    """Live view of the primary session and every secondary session."""

    CSS = APP_CSS

    TITLE = "Agent Activity"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("d", "discover", "Rescan"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
    ]

    def __init__(self, settings: Optional[Settings] = None, replay: bool = False, glitch: bool = False):
        super().__init__()
        self.settings = settings or Settings.from_env()
        self.engine = ActivityEngine.from_settings(
            self.settings,
            from_end=not replay,
            flavor_rng=random.Random() if glitch else None,
        )
        self.watcher: Optional[PathWatcher] = None
        self._session_ids: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="primary-container"):
            yield Static("[bold]Primary session[/]", id="primary-header")
            yield PrimaryPanel(id="primary-panel")
        with Vertical(id="sessions-container"):
            yield Static("[bold]Other sessions[/] [dim](oldest first)[/]", id="sessions-header")
            yield ListView(id="session-list")
        yield Footer()

    def on_mount(self):
        self.sub_title = str(self.settings.state_dir)
        try:
            self.watcher = watch_paths(
                self.engine.watch_paths(),
                callback=self._on_path_changed,
            )
        except OSError as e:
            # Polling still sees every change, only later
            logger.warning(f"File watching unavailable: {e}")
            self.watcher = None
        self.set_interval(1 / FPS, self._tick)

    def on_unmount(self):
        if self.watcher:
            self.watcher.stop()
        self.engine.close()

    def _on_path_changed(self, path: Path):
        # Runs on the watchdog thread
        self.call_from_thread(self._handle_change, path)

    def _handle_change(self, path: Path):
        if self.engine.notice_change(path):
            self._tick()

    def _tick(self):
        self.engine.tick()
        self._refresh_views(self.engine.snapshot())

    def _refresh_views(self, snapshot: EngineSnapshot):
        self.query_one("#primary-panel", PrimaryPanel).show(snapshot)

        session_list = self.query_one("#session-list", ListView)
        ids = [view.session_id for view in snapshot.sessions]
        if ids != self._session_ids:
            index = session_list.index
            session_list.clear()
            for view in snapshot.sessions:
                session_list.append(SessionItem(view))
            if ids and index is not None:
                session_list.index = min(index, len(ids) - 1)
            self._session_ids = ids
        else:
            for item, view in zip(session_list.children, snapshot.sessions):
                if isinstance(item, SessionItem):
                    item.refresh_view(view)

        header = self.query_one("#sessions-header", Static)
        header.update(f"[bold]Other sessions[/] [dim]({len(ids)})[/]")

    def action_discover(self):
        self.engine.request_discovery()
        self.notify("Rescanning sessions")

    def action_cursor_down(self):
        self.query_one("#session-list", ListView).action_cursor_down()

    def action_cursor_up(self):
        self.query_one("#session-list", ListView).action_cursor_up()
