"""Reference-counted busy tracking for in-flight operations."""

import itertools
import logging
import threading

from events import Observable
from models import BusyStatus, BusyToken

log = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"

BLOCKING = "blocking"
NON_BLOCKING = "nonBlocking"


def make_full_key(scope, key=None):
    return f"{scope}:{key}" if key else scope


class BusyCoordinator(Observable):
    """Tracks live operations per scope or scope:key.

    ``begin_busy`` hands out an opaque BusyToken; ``end_busy`` redeems it.
    Counters, mode and status are all derived from the live tokens, so
    nested and overlapping operations compose. Redeeming an unknown or
    already-redeemed token does nothing.
    """

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._handles = itertools.count(1)
        self._tokens = {}        # BusyToken -> (full_key, keyed, blocking)
        self._in_flight = {}     # full_key -> count, zero counts removed
        self._global_count = 0
        self._mode = None
        self._status = None

    def begin_busy(self, scope=GLOBAL_SCOPE, key=None, blocking=False, status=None):
        with self._lock:
            token = self._begin(scope, key, blocking, status)
        self._notify()
        return token

    def try_begin_busy(self, scope, key, blocking=False, status=None):
        """Begin only if ``scope:key`` is idle; returns None when it is busy."""
        with self._lock:
            if self._in_flight.get(make_full_key(scope, key), 0) > 0:
                return None
            token = self._begin(scope, key, blocking, status)
        self._notify()
        return token

    def end_busy(self, token):
        with self._lock:
            entry = self._tokens.pop(token, None)
            if entry is None:
                return
            full_key, keyed, _ = entry
            if keyed:
                count = self._in_flight.get(full_key, 0) - 1
                if count > 0:
                    self._in_flight[full_key] = count
                else:
                    self._in_flight.pop(full_key, None)
            else:
                self._global_count = max(0, self._global_count - 1)
            self._recompute_mode()
            if self._mode is None:
                self._status = None
        self._notify()

    def set_status(self, status):
        with self._lock:
            self._status = status
        self._notify()

    def is_busy(self):
        with self._lock:
            return self._global_count > 0 or bool(self._in_flight)

    def is_busy_key(self, scope, key):
        with self._lock:
            return self._in_flight.get(make_full_key(scope, key), 0) > 0

    @property
    def mode(self):
        with self._lock:
            return self._mode

    @property
    def status(self):
        with self._lock:
            return self._status

    def snapshot(self):
        with self._lock:
            return {
                "mode": self._mode,
                "is_busy": self._global_count > 0 or bool(self._in_flight),
                "global_count": self._global_count,
                "in_flight": dict(self._in_flight),
                "status": self._status.to_dict() if self._status else None,
            }

    def _begin(self, scope, key, blocking, status):
        token = BusyToken(next(self._handles))
        full_key = make_full_key(scope, key)
        keyed = bool(key)
        if keyed:
            self._in_flight[full_key] = self._in_flight.get(full_key, 0) + 1
        else:
            self._global_count += 1
        self._tokens[token] = (full_key, keyed, bool(blocking))
        if status is not None:
            if not isinstance(status, BusyStatus):
                status = BusyStatus(status["key"], dict(status.get("values") or {}))
            self._status = status
        self._recompute_mode()
        log.debug("Busy begin %s (blocking=%s)", full_key, bool(blocking))
        return token

    def _recompute_mode(self):
        if any(blocking for _, _, blocking in self._tokens.values()):
            self._mode = BLOCKING
        elif self._global_count > 0 or self._in_flight:
            self._mode = NON_BLOCKING
        else:
            self._mode = None
