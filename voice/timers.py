# voice/timers.py
import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle: ...

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle: ...


class _RepeatingTimer:
    """Calls fn every `interval` seconds on a daemon thread until cancelled."""

    def __init__(self, interval: float, fn: Callable[[], None]):
        self._interval = interval
        self._fn = fn
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        while not self._cancelled.wait(self._interval):
            self._fn()

    def cancel(self) -> None:
        self._cancelled.set()


class ThreadingScheduler:
    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        t = threading.Timer(delay, fn)
        t.daemon = True
        t.start()
        return t

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(interval, fn)
