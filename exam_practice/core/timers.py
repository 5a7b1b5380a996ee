# exam_practice/core/timers.py
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

class TimerHandle:
    """Cancellable handle for a scheduled callback"""

    def __init__(self, name: str):
        self.name = name
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

class _OneShotHandle(TimerHandle):
    def __init__(self, name: str, delay: float, callback: Callable[[], None]):
        super().__init__(name)
        self._timer = threading.Timer(delay, self._fire, args=(callback,))
        self._timer.daemon = True
        self._timer.name = name

    def _fire(self, callback: Callable[[], None]):
        if self.cancelled:
            return
        try:
            callback()
        except Exception as e:
            logger.error(f"Timer {self.name} callback failed: {e}", exc_info=True)

    def start(self):
        self._timer.start()

    def cancel(self):
        super().cancel()
        self._timer.cancel()

class _RepeatingHandle(TimerHandle):
    def __init__(self, name: str, interval: float, callback: Callable[[], None]):
        super().__init__(name)
        self._interval = interval
        self._callback = callback
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def _run(self):
        # Event.wait returns True once cancelled
        while not self._cancelled.wait(self._interval):
            try:
                self._callback()
            except Exception as e:
                logger.error(f"Timer {self.name} tick failed: {e}", exc_info=True)

    def start(self):
        self._thread.start()

class Scheduler:
    """Thread-backed scheduler for session countdowns and auto-save ticks"""

    def call_later(self, delay: float, callback: Callable[[], None],
                   name: Optional[str] = None) -> TimerHandle:
        """Run callback once after delay seconds"""
        handle = _OneShotHandle(name or "one-shot", max(0.0, delay), callback)
        handle.start()
        return handle

    def call_every(self, interval: float, callback: Callable[[], None],
                   name: Optional[str] = None) -> TimerHandle:
        """Run callback every interval seconds until cancelled"""
        handle = _RepeatingHandle(name or "repeating", interval, callback)
        handle.start()
        return handle
