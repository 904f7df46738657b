"""Per-directory "created" signals shared by the workers."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional


class DirectoryGate:
    """Lets a worker wait until its destination directory exists.

    The walking thread calls ``register`` for a directory before submitting
    it or any of its children; the worker that creates the directory calls
    ``mark`` exactly once, whether creation succeeded or not. Directories are
    submitted ahead of their children, so a waiter's directory is always
    already being handled by another worker.
    """

    ROOT = ""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: Dict[str, threading.Event] = {}
        self._created: Dict[str, bool] = {}
        self.mark(self.ROOT, True)

    def register(self, rel_dir: str) -> None:
        with self._lock:
            self._events.setdefault(rel_dir, threading.Event())

    def mark(self, rel_dir: str, created: bool) -> None:
        with self._lock:
            self._created[rel_dir] = created
            event = self._events.setdefault(rel_dir, threading.Event())
        event.set()

    def wait(
        self,
        rel_dir: str,
        *,
        should_cancel: Optional[Callable[[], bool]] = None,
        poll_interval: float = 0.05,
    ) -> bool:
        """Block until *rel_dir* is marked; return whether it was created.

        Returns False for unknown directories and when *should_cancel* turns
        true while waiting.
        """
        with self._lock:
            event = self._events.get(rel_dir)
        if event is None:
            return False
        while not event.wait(poll_interval):
            if should_cancel is not None and should_cancel():
                return False
        with self._lock:
            return self._created.get(rel_dir, False)
