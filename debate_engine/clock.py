"""Phase timing that survives pause/resume."""

import time

from .types import TimeSource


def monotonic_ms() -> float:
    """Default time source: monotonic clock in milliseconds."""
    return time.monotonic() * 1000


class PhaseClock:
    """Tracks elapsed time for the current phase and the debate as a whole.

    Time spent paused or after stop() never counts towards either total.
    All values are milliseconds from the injected time source.
    """

    def __init__(self, time_source: TimeSource = monotonic_ms):
        self._now = time_source
        self._closed_phases_ms = 0.0
        self._phase_accumulated_ms = 0.0
        self._segment_started_at: float | None = None
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._segment_started_at is not None

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def start_phase(self) -> int:
        """Close the current phase and start timing a new one.

        Returns:
            Elapsed milliseconds of the phase that was just closed.
        """
        closed = self.phase_elapsed_ms()
        self._closed_phases_ms += closed
        self._phase_accumulated_ms = 0.0
        self._segment_started_at = self._now()
        self._stopped = False
        return closed

    def pause(self) -> None:
        if self._segment_started_at is None:
            return
        self._phase_accumulated_ms += self._now() - self._segment_started_at
        self._segment_started_at = None

    def resume(self) -> None:
        if self._segment_started_at is not None or self._stopped:
            return
        self._segment_started_at = self._now()

    def stop(self) -> int:
        """Freeze both totals for good; returns the final phase elapsed time."""
        self.pause()
        self._stopped = True
        return self.phase_elapsed_ms()

    def phase_elapsed_ms(self) -> int:
        running = 0.0
        if self._segment_started_at is not None:
            running = self._now() - self._segment_started_at
        return int(self._phase_accumulated_ms + running)

    def total_elapsed_ms(self) -> int:
        return int(self._closed_phases_ms) + self.phase_elapsed_ms()

    def restore(self, total_elapsed_ms: int) -> None:
        """Seed accumulated time when rebuilding a debate from history."""
        self._closed_phases_ms = float(total_elapsed_ms)
        self._phase_accumulated_ms = 0.0
        self._segment_started_at = None
