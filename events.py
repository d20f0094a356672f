"""Change notification for the in-process stores."""

import logging
import threading

log = logging.getLogger(__name__)


class Observable:
    """Keeps a list of change listeners and calls them after each mutation.

    Listeners receive the observable itself and re-derive whatever they
    display from its read API.
    """

    def __init__(self):
        self._listeners = []
        self._listeners_lock = threading.Lock()

    def subscribe(self, listener):
        """Register ``listener``; returns a callable that unregisters it."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception:
                log.exception("Change listener %r failed", listener)
