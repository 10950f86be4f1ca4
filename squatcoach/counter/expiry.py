from __future__ import annotations
import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerLike(Protocol):
    daemon: bool

    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


def _thread_timer(delay_s: float, fn: Callable[[], None]) -> TimerLike:
    return threading.Timer(delay_s, fn)


class ExpiryHandle:
    """
    Single-slot cancellable task. Scheduling replaces (and cancels) whatever
    is pending, so at most one expiry is outstanding per handle.
    A generation number guards against a timer that already fired but has not
    yet run its callback when it gets superseded.
    """
    def __init__(self, name: str, timer_factory: Optional[TimerFactory] = None):
        self.name = name
        self._factory = timer_factory or _thread_timer
        self._lock = threading.Lock()
        self._timer: Optional[TimerLike] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay_ms: int, callback: Callable[[], None]):
        with self._lock:
            self._cancel_locked()
            gen = self._generation
            timer = self._factory(delay_ms / 1000.0, lambda: self._fire(gen, callback))
            timer.daemon = True
            self._timer = timer
        timer.start()

    def cancel(self):
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self):
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, gen: int, callback: Callable[[], None]):
        with self._lock:
            if gen != self._generation:
                logger.debug("%s expiry superseded; ignoring", self.name)
                return
            self._timer = None
        try:
            callback()
        except Exception:
            logger.exception("%s expiry callback failed", self.name)


class DisplayExpiryScheduler:
    """Independent expiries for the last-rep snapshot and the active warnings."""
    def __init__(self, snapshot_ms: int, warning_ms: int, timer_factory: Optional[TimerFactory] = None):
        self.snapshot_ms = snapshot_ms
        self.warning_ms = warning_ms
        self.snapshot = ExpiryHandle("snapshot", timer_factory)
        self.warnings = ExpiryHandle("warnings", timer_factory)

    def schedule_snapshot(self, on_expire: Callable[[], None]):
        self.snapshot.schedule(self.snapshot_ms, on_expire)

    def schedule_warnings(self, on_expire: Callable[[], None]):
        self.warnings.schedule(self.warning_ms, on_expire)

    def cancel_all(self):
        self.snapshot.cancel()
        self.warnings.cancel()
