# rom/core/countdown.py
from typing import Optional
import logging
import threading

from rom.core.base import SessionState
from rom.core.session import SamplingSession

logger = logging.getLogger("rom.countdown")


class CountdownTimer:
    """
    Periodic tick source that drives a session's countdown.

    Each tick calls session.advance_one_second() and reschedules itself
    until the session is no longer recording or the timer is cancelled.
    """

    def __init__(self, session: SamplingSession, interval: float = 1.0):
        """
        Initialize the countdown timer.

        Args:
            session: Session to advance
            interval: Seconds between ticks (must be positive)
        """
        if not interval > 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self.session = session
        self.interval = interval
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        # Bumped by start() and cancel(); ticks from an older generation stop silently
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """(Re)start ticking; any tick chain from an earlier start is dropped."""
        with self._lock:
            self._stop_locked()
            self._schedule(self._generation)

    def cancel(self) -> None:
        with self._lock:
            self._stop_locked()

    def _stop_locked(self):
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self, generation: int):
        self._timer = threading.Timer(self.interval, self._tick, args=(generation,))
        self._timer.daemon = True
        self._timer.start()

    def _tick(self, generation: int):
        with self._lock:
            if generation != self._generation:
                return

        completed = self.session.advance_one_second()

        with self._lock:
            if generation != self._generation:
                return
            if completed or self.session.state is not SessionState.RECORDING:
                logger.debug(f"Countdown finished for {self.session.joint.joint_id}")
                self._timer = None
                return
            self._schedule(generation)
