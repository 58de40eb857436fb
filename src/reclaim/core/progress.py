"""Subscription channel for clean progress records."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from reclaim.models.clean_result import CleanProgress

log = logging.getLogger(__name__)

ProgressCallback = Callable[[CleanProgress], None]


class ProgressChannel:
    """Fans progress records out to whoever is subscribed right now.

    Subscribers may come and go at any time, including from another thread
    while a clean is running. Records are delivered in publish order.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[ProgressCallback] = []

    def subscribe(self, callback: ProgressCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: ProgressCallback) -> None:
        with self._lock:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                log.debug("Unsubscribe of unknown progress callback ignored")

    def publish(self, progress: CleanProgress) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(progress)
            except Exception:
                log.exception("Progress subscriber failed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
