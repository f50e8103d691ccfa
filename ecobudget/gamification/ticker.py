"""
Background unlock ticker.

Optional: the engine already applies due unlocks whenever its state is
read. The ticker only exists so that a passive observer (a UI that never
reads) still gets the `challenges_unlocked` notification on time.
"""

import threading
from typing import Callable, Optional

import structlog


logger = structlog.get_logger("ecobudget.gamification.ticker")


class UnlockTicker:
    """Calls `tick` every `interval` seconds on a daemon thread until stopped."""

    def __init__(self, tick: Callable[[], object], interval: float = 5.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._tick = tick
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="ecobudget-unlock-ticker",
            daemon=True,
        )
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._tick()
            except Exception as e:
                logger.error("unlock_tick_failed", error=str(e))

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the thread and wait for it to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout if timeout is not None else self._interval + 1)
            self._thread = None
