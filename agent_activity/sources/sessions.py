"""Per-session snapshot files: one JSON document per session in a directory."""

import json
import logging
from pathlib import Path
from typing import Optional

from ..config import safe_filename
from ..models import SessionSnapshot
from . import register_feed
from .base import SessionFeed

logger = logging.getLogger(__name__)


@register_feed
class DirectorySessionFeed(SessionFeed):
    """Reads ``<dir>/*.json``. Unreadable files are skipped for this pass."""

    name = "directory"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def watch_paths(self) -> list[Path]:
        return [self.directory]

    def discover(self, exclude_id: Optional[str] = None) -> list[SessionSnapshot]:
        if not self.directory.is_dir():
            return []

        snapshots = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                with open(path) as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError) as e:
                # Usually a writer caught mid-replace; next pass will see it
                logger.debug(f"Skipping session file {path.name}: {e}")
                continue

            snap = SessionSnapshot.from_dict(data, fallback_id=path.stem)
            if snap is None or snap.session_id == exclude_id:
                continue
            snapshots.append(snap)
        return snapshots

    def forget(self, session_id: str):
        path = self.directory / f"{safe_filename(session_id)}.json"
        try:
            path.unlink()
            logger.debug(f"Removed stale session file {path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove session file {path}: {e}")


class SessionSnapshotWriter:
    """Writes the snapshot files ``DirectorySessionFeed`` reads."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{safe_filename(session_id)}.json"

    def write(self, snapshot: SessionSnapshot) -> bool:
        path = self.path_for(snapshot.session_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            with open(tmp, "w") as f:
                json.dump(snapshot.to_dict(), f)
            tmp.replace(path)
            return True
        except IOError as e:
            logger.warning(f"Failed to write session file {path}: {e}")
            return False

    def remove(self, session_id: str):
        self.path_for(session_id).unlink(missing_ok=True)
