"""Background polling for scheduled messages that are due."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .db import DatabaseError
from .domain import Message

logger = logging.getLogger(__name__)


class ScheduledSender:
    """Polls the store at a fixed interval for messages whose time has come."""

    def __init__(self, store: Any, interval: float = 1.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._store = store
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> list[Message]:
        """Fetch the messages that are due; a store failure yields none."""
        try:
            return list(self._store.get_scheduled_messages())
        except DatabaseError:
            logger.error("Error getting scheduled messages")
            return []

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()

    def start(self) -> None:
        """Start polling in a background thread; does nothing if already running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="scheduled-sender", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop polling and wait for the background thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None