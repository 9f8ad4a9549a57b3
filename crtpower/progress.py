"""
Progress reporting for CRTPower simulations.

Provides a callback-based progress system that works from both Python scripts
and GUI applications. Progress is reported via a simple (current, total) callback.
"""

import sys
from datetime import datetime
from typing import Callable, Optional


class SimulationCancelled(Exception):
    """Raised when a simulation is cancelled by the user."""

    pass


class SimulationStopped(RuntimeError):
    """Raised when an early-stopping rule ends the run.

    Attributes:
        reason: Short name of the rule that fired (``"poor_fit"``,
            ``"low_power"`` or ``"time_limit"``).
        completed: Number of simulations finished before stopping.
    """

    def __init__(self, message: str, reason: str, completed: int = 0):
        super().__init__(message)
        self.reason = reason
        self.completed = completed


class ProgressReporter:
    """Wraps a ``(current, total)`` callback with counting and throttling.

    Fires the callback at most once every *update_every* advances.

    Args:
        total: Total number of simulations.
        callback: Function called as ``callback(current, total)``.
        update_every: Defaults to ``max(1, total // 200)``.
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self._callback = callback
        self._current = 0
        self.update_every = update_every if update_every is not None else max(1, total // 200)

    @property
    def current(self) -> int:
        return self._current

    def start(self):
        self._current = 0
        self._callback(0, self.total)

    def advance(self, n: int = 1):
        self._current += n
        if self._current >= self.total or self._current % self.update_every == 0:
            self._callback(self._current, self.total)

    def finish(self):
        if self._current < self.total:
            self._current = self.total
            self._callback(self.total, self.total)


class PrintReporter:
    """Console reporter writing ``\\rProgress: 45.2% (723/1600 simulations)`` to stderr."""

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        pct = 100.0 * current / total
        sys.stderr.write(f"\rProgress: {pct:5.1f}% ({current}/{total} simulations)")
        sys.stderr.flush()
        if current >= total:
            sys.stderr.write("\n")
            sys.stderr.flush()


class TqdmReporter:
    """Optional tqdm progress bar (lazy import).

    Usage::

        from crtpower.progress import TqdmReporter
        model.find_power(500, progress_callback=TqdmReporter(desc="GEE"))
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="sim", **self._tqdm_kwargs)

        delta = current - self._bar.n
        if delta > 0:
            self._bar.update(delta)

        if current >= total:
            self._bar.close()
            self._bar = None


def format_runtime(seconds: float) -> str:
    """Render a duration as ``<h>Hr:<m>Min:<s>Sec``."""
    total = max(0, int(round(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}Hr:{minutes}Min:{secs}Sec"


def format_completion_message(start_time: datetime, end_time: Optional[datetime] = None) -> str:
    end_time = end_time or datetime.now()
    elapsed = (end_time - start_time).total_seconds()
    return (
        f"Simulations Complete! Time Completed: {end_time.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Total Runtime: {format_runtime(elapsed)}"
    )


def format_estimated_finish(start_time: datetime, per_simulation: float, nsim: int) -> str:
    """Projected finish message printed after the first simulation."""
    projected = per_simulation * nsim
    finish = datetime.fromtimestamp(start_time.timestamp() + projected)
    return (
        f"Estimated completion time: {finish.strftime('%Y-%m-%d %H:%M:%S')} "
        f"(about {format_runtime(projected)})"
    )
