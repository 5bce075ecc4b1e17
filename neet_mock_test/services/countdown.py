"""
services/countdown.py

One-tick-per-second countdown driver for a test session.
The ticker only fires the callback; the session decides whether a tick counts
(paused sessions ignore ticks). Cancelled on submission or disposal.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

LOW_TIME_WARNING_SECONDS = 300  # under 5 minutes the clock turns red


class Countdown:
    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0):
        self._on_tick = on_tick
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="countdown", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Stop ticking. Safe to call from inside the tick callback."""
        self._stop.set()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._on_tick()
            except Exception:
                logger.exception("Countdown tick failed; stopping the ticker")
                self._stop.set()


def format_time(seconds: int) -> str:
    """
    Clock text for the header timer.

    Returns:
        "H:MM:SS" from one hour upwards, "M:SS" below.
    """
    seconds = max(0, int(seconds))
    hrs, rem = divmod(seconds, 3600)
    mins, secs = divmod(rem, 60)
    if hrs > 0:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def is_low_time(seconds: int) -> bool:
    return seconds < LOW_TIME_WARNING_SECONDS
