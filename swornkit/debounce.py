from __future__ import annotations

import logging
import threading
from typing import Callable

module_logger = logging.getLogger(__name__)

Cancel = Callable[[], None]


class KeyedDebouncer:
    """Delay a function per key, keeping only the most recent one.

    While the function for a key is running, newer functions for the same key
    are held (latest wins) and rescheduled through the normal delay once the
    running one returns or raises.
    """

    def __init__(self, delay_ms: float, logger: logging.Logger | None = None) -> None:
        self.delay = max(delay_ms, 0) / 1000.0
        self.logger = logger or module_logger
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}
        # key -> held function; present (possibly None) while the key is executing
        self._holds: dict[str, Callable[[], object] | None] = {}

    def __call__(self, key: str) -> Callable[[Callable[[], object]], Cancel]:
        return lambda fn: self.schedule(key, fn)

    def schedule(self, key: str, fn: Callable[[], object]) -> Cancel:
        with self._lock:
            self._schedule_locked(key, fn)
        return lambda: self._cancel(key)

    def _schedule_locked(self, key: str, fn: Callable[[], object]) -> None:
        # Caller holds self._lock.
        if key in self._holds:
            self.logger.debug(
                "Holding function for key %s until the running one finishes", key
            )
            self._holds[key] = fn
            return

        existing = self._timers.pop(key, None)
        if existing is not None:
            existing.cancel()

        timer = threading.Timer(self.delay, self._fire, args=(key, fn))
        timer.daemon = True
        self._timers[key] = timer
        timer.start()

    def _cancel(self, key: str) -> None:
        with self._lock:
            timer = self._timers.pop(key, None)
            if timer is not None:
                timer.cancel()
            elif key in self._holds:
                # Drop a held function but leave the running one alone.
                self._holds[key] = None

    def _fire(self, key: str, fn: Callable[[], object]) -> None:
        with self._lock:
            if self._timers.get(key) is not threading.current_thread():
                # Superseded or cancelled after the timer had already expired.
                return
            del self._timers[key]
            self._holds[key] = None

        try:
            fn()
        except Exception:
            self.logger.exception("Debounced function for key %s failed", key)
        finally:
            # Pop and re-arm atomically with respect to schedule().
            with self._lock:
                next_fn = self._holds.pop(key, None)
                if next_fn is not None:
                    self._schedule_locked(key, next_fn)
            if next_fn is not None:
                self.logger.debug("Triggering held function for key %s", key)

    def pending(self) -> set[str]:
        with self._lock:
            return set(self._timers)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._holds.clear()
        for timer in timers:
            timer.cancel()


def debouncer_by_key(
    delay_ms: float, logger: logging.Logger | None = None
) -> KeyedDebouncer:
    """Return a debouncer: ``debouncer(key)(fn)`` schedules ``fn`` and returns a cancel."""
    return KeyedDebouncer(delay_ms, logger)
