"""Minimal observer signal used for event and snapshot subscribers."""

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Signal:
    """
    A pure-Python signal: an ordered list of callbacks notified on emit().

    A failing subscriber is logged and skipped so it cannot stop delivery to
    the remaining subscribers or break the emitter.
    """
    def __init__(self, name: str = "signal"):
        self.name = name
        self._observers: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]):
        """Subscribe a callback function."""
        if callback not in self._observers:
            self._observers.append(callback)

    def disconnect(self, callback: Callable[..., Any]):
        """Unsubscribe a callback function."""
        if callback in self._observers:
            self._observers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._observers)

    def emit(self, *args, **kwargs):
        """Notify all subscribers."""
        # Iterate over a copy so callbacks may disconnect themselves.
        for callback in list(self._observers):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"[Signal:{self.name}] Error in observer callback: {e}", exc_info=True)
