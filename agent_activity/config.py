"""Paths, refresh rates and timeouts.

Defaults live under ``~/.agent-activity`` and can be moved with environment
variables, so adapters and the monitor agree on where to meet.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

HOME_ENV = "AGENT_ACTIVITY_HOME"
EVENTS_ENV = "AGENT_ACTIVITY_EVENTS"
MODEL_ENV = "AGENT_ACTIVITY_MODEL"

DEFAULT_STATE_DIR = Path.home() / ".agent-activity"
DEFAULT_MODEL_NAME = "claude"

FPS = 15
FRAME_MS = 1000 // FPS
DISCOVERY_INTERVAL_MS = 2000

# Display timing
COMPLETION_MIN_SHOW_MS = 500
CAFFEINE_WINDOW_MS = 10000
CAFFEINE_THRESHOLD = 5
CAFFEINE_HISTORY = 20
STARTING_TIMEOUT_MS = 3000
IDLE_TIMEOUT_MS = 8000
THINKING_TIMEOUT_MS = 45000
STOPPED_THINKING_TIMEOUT_MS = 3000
SLEEP_TIMEOUT_MS = 60000
TIMELINE_CAP = 200

# Session arbitration
PRIMARY_STALE_MS = 120000
STALE_MS = 120000
OUTCOME_STALE_MS = 30000
STOPPED_LINGER_MS = 15000

# Stats
MILESTONES = (10, 25, 50, 100, 200, 500)
MILESTONE_DISPLAY_MS = 8000
MAX_FREQUENT_FILES = 50

DETAIL_MAX = 40


def safe_filename(session_id) -> str:
    """Make a session id safe to use as a file name."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", str(session_id))[:64]


@dataclass
class Settings:
    """Resolved locations for the event spool, session snapshots and stats."""

    state_dir: Path
    events_file: Path
    sessions_dir: Path
    stats_file: Path
    model_name: str = DEFAULT_MODEL_NAME

    @classmethod
    def from_env(cls, home: Optional[Path] = None) -> "Settings":
        state_dir = Path(home or os.environ.get(HOME_ENV) or DEFAULT_STATE_DIR).expanduser()
        events = os.environ.get(EVENTS_ENV)
        return cls(
            state_dir=state_dir,
            events_file=Path(events).expanduser() if events else state_dir / "events.jsonl",
            sessions_dir=state_dir / "sessions",
            stats_file=state_dir / "stats.json",
            model_name=os.environ.get(MODEL_ENV) or DEFAULT_MODEL_NAME,
        )

    def session_file(self, session_id: str) -> Path:
        return self.sessions_dir / f"{safe_filename(session_id)}.json"
