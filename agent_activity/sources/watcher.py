"""Filesystem wake-ups for the tick loop.

Polling at the frame rate already picks up every change; the watcher only
lets a caller react sooner.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, targets: set[Path], callback: Callable[[Path], None]):
        super().__init__()
        self.targets = targets
        self.callback = callback

    def _relevant(self, path: Path) -> bool:
        return path in self.targets or path.parent in self.targets

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory:
            return
        # Atomic writers rename a .tmp file into place; the rename target counts
        raw = getattr(event, "dest_path", "") or event.src_path
        path = Path(raw).resolve()
        if path.suffix == ".tmp":
            return
        if self._relevant(path):
            self.callback(path)


class PathWatcher:
    """Watch files and directories, calling ``callback`` with each changed path."""

    def __init__(self, paths: Iterable[Path], callback: Optional[Callable[[Path], None]] = None):
        self.paths = [Path(p).expanduser().resolve() for p in paths]
        self.callback = callback
        self.observer: Optional[Observer] = None

    def _on_change(self, path: Path):
        logger.debug(f"Change detected: {path}")
        if self.callback:
            self.callback(path)

    def start(self):
        if self.observer is not None:
            logger.warning("Path watcher already running")
            return

        targets = set(self.paths)
        handler = _ChangeHandler(targets, self._on_change)
        self.observer = Observer()

        # watchdog watches directories, so a file is watched through its parent
        scheduled = set()
        for path in self.paths:
            directory = path if path.is_dir() or not path.suffix else path.parent
            if directory in scheduled:
                continue
            directory.mkdir(parents=True, exist_ok=True)
            self.observer.schedule(handler, path=str(directory), recursive=False)
            scheduled.add(directory)

        self.observer.start()
        logger.info(f"Watching {len(scheduled)} director{'y' if len(scheduled) == 1 else 'ies'}")

    def stop(self):
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None


def watch_paths(paths: Iterable[Path], callback: Optional[Callable[[Path], None]] = None) -> PathWatcher:
    """Start watching ``paths`` and return the running watcher."""
    watcher = PathWatcher(paths, callback)
    watcher.start()
    return watcher
