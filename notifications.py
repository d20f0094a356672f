"""User-facing notifications raised by manual actions."""

import itertools
import threading

from events import Observable
from models import Toast


class ToastStore(Observable):
    """Queue of toasts; messages are localization keys plus parameters."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._toasts = []

    def show_toast(self, message, type="info", values=None, duration=None):
        toast = Toast(
            id=next(self._ids),
            message=message,
            type=type,
            values={k: str(v) for k, v in (values or {}).items()},
            duration=duration,
        )
        with self._lock:
            self._toasts.append(toast)
        self._notify()
        return toast

    def hide_toast(self, toast_id):
        with self._lock:
            before = len(self._toasts)
            self._toasts = [t for t in self._toasts if t.id != toast_id]
            removed = len(self._toasts) != before
        if removed:
            self._notify()
        return removed

    def toasts(self):
        with self._lock:
            return list(self._toasts)

    def clear(self):
        with self._lock:
            self._toasts = []
        self._notify()
