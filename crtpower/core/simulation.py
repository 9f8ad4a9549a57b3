"""
Simulation execution for CRTPower.

Generates one clustered binary dataset per simulation, fits the chosen
model to it and collects the fits into a ``SimulationBatch``. Runs
sequentially or through joblib, applies the early-stopping rules as
results arrive and honours user cancellation.
"""

import time
import warnings
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..progress import SimulationCancelled, SimulationStopped, format_estimated_finish
from .design import TrialDesign
from .fits import GEE, GLMM, FitResult, SimulationBatch, failed_fit, fit_type_for

POOR_FIT_SHARE = 0.25
LOW_POWER_THRESHOLD = 0.5
EARLY_STOP_MIN_SIMULATIONS = 50
LOW_POWER_CHECK_EVERY = 10
TIME_LIMIT_SECONDS = 120.0


def _fit_dataset(data: pd.DataFrame, design: TrialDesign, method: str, optimizer: str) -> FitResult:
    """Run the requested analysis on one simulated dataset."""
    if method == GLMM:
        from ..stats.data_generation import cluster_layout
        from ..stats.mixed_models import fit_glmm

        _, _, cluster_arm = cluster_layout(design)
        return fit_glmm(data["y"].to_numpy(), data["cluster"].to_numpy(), cluster_arm, design.narms, optimizer=optimizer)
    if method == GEE:
        from ..stats.estimating_equations import fit_gee

        return fit_gee(data["y"].to_numpy(), data["arm"].to_numpy(), data["cluster"].to_numpy(), design.narms)
    raise ValueError(f"Unknown analysis method: {method!r}")


def _simulate_and_fit(
    design: TrialDesign,
    method: str,
    sim_seed: Optional[int],
    tdist: bool = False,
    keep_data: bool = False,
    optimizer: str = "L-BFGS-B",
) -> Tuple[FitResult, Optional[pd.DataFrame], bool]:
    """One Monte Carlo iteration.

    Module-level so joblib can pickle it for worker processes.

    Returns:
        ``(fit, data, raised)``; *data* is ``None`` unless *keep_data*.
        A fit that raises is replaced by a NaN placeholder flagged as
        non-converged and *raised* is ``True``.
    """
    from ..stats.data_generation import simulate_dataset

    data = simulate_dataset(design, tdist=tdist, seed=sim_seed)
    try:
        fit = _fit_dataset(data, design, method, optimizer)
        raised = False
    except Exception as e:
        fit = failed_fit(method, design.narms, f"{type(e).__name__}: {e}")
        raised = True
    return fit, (data if keep_data else None), raised


class SimulationRunner:
    """Executes Monte Carlo simulations for multi-arm power analysis.

    Each iteration simulates a trial from the design, fits the model and
    records the fit. Early-stopping rules are evaluated as fits arrive, in
    simulation order, and raise ``SimulationStopped`` unless overridden.
    """

    def __init__(
        self,
        nsim: int,
        method: str = GLMM,
        seed: Optional[int] = None,
        alpha: float = 0.05,
        n_cores: int = 1,
        poor_fit_override: bool = False,
        low_power_override: bool = False,
        time_limit_override: bool = True,
        optimizer: str = "L-BFGS-B",
    ):
        """Initialise the simulation runner.

        Args:
            nsim: Number of Monte Carlo iterations.
            method: ``"glmm"`` or ``"gee"``.
            seed: Base random seed. Each iteration uses ``seed + 4 * sim_id``.
            alpha: Significance level used by the low-power rule.
            n_cores: Worker processes; ``1`` runs sequentially.
            poor_fit_override: Keep going when more than 25% of fits fail.
            low_power_override: Keep going when running power is below 0.5.
            time_limit_override: Keep going when the projected runtime
                exceeds two minutes.
            optimizer: Optimiser for the mixed-model fits.
        """
        fit_type_for(method)
        self.nsim = nsim
        self.method = method
        self.seed = seed
        self.alpha = alpha
        self.n_cores = n_cores
        self.poor_fit_override = poor_fit_override
        self.low_power_override = low_power_override
        self.time_limit_override = time_limit_override
        self.optimizer = optimizer

    def _sim_seed(self, sim_id: int) -> Optional[int]:
        return self.seed + 4 * sim_id if self.seed is not None else None

    # ------------------------------------------------------------------
    # Early stopping
    # ------------------------------------------------------------------

    def _check_early_stop(self, fits: List[FitResult]):
        completed = len(fits)
        if completed < EARLY_STOP_MIN_SIMULATIONS:
            return

        converged = [f for f in fits if f.converged]
        n_failed = completed - len(converged)
        if not self.poor_fit_override and n_failed / completed > POOR_FIT_SHARE:
            raise SimulationStopped(
                f"More than {POOR_FIT_SHARE:.0%} of simulations ({n_failed}/{completed}) are singular fits or "
                "did not converge. Check model parameters or use poor_fit_override=True.",
                reason="poor_fit",
                completed=completed,
            )

        due = (completed - EARLY_STOP_MIN_SIMULATIONS) % LOW_POWER_CHECK_EVERY == 0
        if not self.low_power_override and due and converged:
            running_power = float(np.mean([f.overall.p_value < self.alpha for f in converged]))
            if running_power < LOW_POWER_THRESHOLD:
                raise SimulationStopped(
                    f"Calculated power is below {LOW_POWER_THRESHOLD} after {completed} simulations "
                    f"({running_power:.3f}). Use low_power_override=True to continue.",
                    reason="low_power",
                    completed=completed,
                )

    def _check_time_limit(self, elapsed_first: float, start_time: datetime, quiet: bool):
        projected = elapsed_first * self.nsim
        if not quiet:
            print(format_estimated_finish(start_time, elapsed_first, self.nsim))
        if not self.time_limit_override and projected > TIME_LIMIT_SECONDS:
            raise SimulationStopped(
                f"Estimated completion time exceeds {TIME_LIMIT_SECONDS / 60:.0f} minutes "
                f"({projected:.0f} seconds). Use time_limit_override=True to continue.",
                reason="time_limit",
                completed=1,
            )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _sequential(self, design, tdist, keep_data):
        for sim_id in range(self.nsim):
            yield _simulate_and_fit(design, self.method, self._sim_seed(sim_id), tdist, keep_data, self.optimizer)

    def _parallel(self, design, tdist, keep_data):
        from joblib import Parallel, delayed

        return Parallel(n_jobs=self.n_cores, backend="loky", verbose=0, return_as="generator")(
            delayed(_simulate_and_fit)(design, self.method, self._sim_seed(sim_id), tdist, keep_data, self.optimizer)
            for sim_id in range(self.nsim)
        )

    def _consume(self, results, progress, cancel_check, start_time, quiet):
        fits: List[FitResult] = []
        datasets: List[pd.DataFrame] = []
        n_raised = 0
        tic = time.perf_counter()
        for fit, data, raised in results:
            if cancel_check is not None and cancel_check():
                raise SimulationCancelled("Simulation cancelled by user")
            fits.append(fit)
            if data is not None:
                datasets.append(data)
            n_raised += int(raised)
            if progress is not None:
                progress.advance(1)
            if len(fits) == 1:
                self._check_time_limit(time.perf_counter() - tic, start_time, quiet)
            self._check_early_stop(fits)
        return fits, datasets, n_raised

    def run(
        self,
        design: TrialDesign,
        tdist: bool = False,
        keep_data: bool = False,
        progress=None,
        cancel_check: Optional[Callable[[], bool]] = None,
        start_time: Optional[datetime] = None,
        quiet: bool = True,
    ) -> SimulationBatch:
        """Run all simulations and return the batch.

        Args:
            design: Normalised trial design.
            tdist: Draw cluster intercepts from a scaled t(3) distribution.
            keep_data: Keep every simulated dataset on the batch.
            progress: Optional ``ProgressReporter`` (advanced by 1 per fit).
            cancel_check: Optional callable returning ``True`` to abort.
            start_time: Run start, used for the projected finish message.
            quiet: Suppress the projected finish message.

        Returns:
            SimulationBatch with one fit per simulation.

        Raises:
            SimulationCancelled: If *cancel_check* returns ``True``.
            SimulationStopped: If an early-stopping rule fires.
        """
        start_time = start_time or datetime.now()

        if self.n_cores > 1:
            try:
                fits, datasets, n_raised = self._consume(
                    self._parallel(design, tdist, keep_data), progress, cancel_check, start_time, quiet
                )
            except (SimulationCancelled, SimulationStopped):
                raise
            except Exception as e:
                print(f"Warning: Parallel execution failed ({e}). Falling back to sequential.")
                if progress is not None:
                    progress.start()
                fits, datasets, n_raised = self._consume(
                    self._sequential(design, tdist, keep_data), progress, cancel_check, start_time, quiet
                )
        else:
            fits, datasets, n_raised = self._consume(
                self._sequential(design, tdist, keep_data), progress, cancel_check, start_time, quiet
            )

        if n_raised > 0:
            warnings.warn(f"{n_raised} model fits raised an error and were recorded as non-converged ({n_raised / self.nsim:.1%})")

        return SimulationBatch.from_fits(
            self.method,
            fits,
            sim_data=datasets if keep_data else None,
            n_failed_fits=n_raised,
        )
