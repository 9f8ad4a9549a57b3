"""
CRTPower - Monte Carlo power for multi-arm cluster-randomised trials.

This module provides the main ``MultiArmBinaryPower`` class and the
``cps_ma_binary`` convenience function for estimating the power of a
parallel multi-arm trial with a binary outcome.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Union

from .core import (
    GLMM,
    SimulationRunner,
    analyze_batch,
    normalize_design,
)
from .core.corrections import normalize_correction_method
from .utils.formatters import _format_results
from .utils.validators import (
    _validate_alpha,
    _validate_correction_method,
    _validate_method,
    _validate_parallel_settings,
    _validate_seed,
    _validate_simulations,
)
from .utils.visualization import _create_arm_power_plot


class MultiArmBinaryPower:
    """Simulation-based power for a multi-arm cluster-randomised trial.

    Each simulation draws clustered binary outcomes for every arm, fits a
    random-intercept logistic model (GLMM) or a marginal logistic model
    (GEE) with ``Arm.1`` as reference, and records the omnibus test of all
    arms and the per-arm tests. Power is the share of converged
    simulations that reject, with exact (Clopper-Pearson) intervals.

    Configuration methods (``set_*``) return ``self`` for chaining.

    Attributes:
        design: Normalised ``TrialDesign``.
        alpha: Significance level (default: 0.05).
        seed: Base random seed (default: ``None`` for fresh entropy).
        method: ``"glmm"`` (default) or ``"gee"``.
        multi_p_method: Multiplicity correction (default: ``"bonferroni"``).
        n_cores: Worker processes (default: 1, sequential).

    Example:
        >>> model = MultiArmBinaryPower(narms=3, nclusters=10, nsubjects=50,
        ...                             probs=[0.30, 0.40, 0.50], sigma_b_sq=0.1)
        >>> model.set_method("gee").set_seed(12345)
        >>> result = model.find_power(nsim=200)
        >>> result["power"]
    """

    def __init__(
        self,
        narms: Optional[int] = None,
        nclusters: Optional[Union[int, Sequence[int]]] = None,
        nsubjects: Optional[Union[int, Sequence[int], Sequence[Sequence[int]]]] = None,
        probs: Optional[Union[float, Sequence[float]]] = None,
        sigma_b_sq: Optional[Union[float, Sequence[float]]] = None,
    ):
        """Normalise and validate the trial design.

        Args:
            narms: Number of arms (at least 3).
            nclusters: Clusters per arm (scalar or one per arm).
            nsubjects: Subjects per cluster: scalar, one per arm, or a list
                of per-cluster sizes for each arm.
            probs: Outcome probability per arm (scalar or one per arm).
            sigma_b_sq: Between-cluster variance per arm on the logit scale.

        Raises:
            ValueError: If the design is invalid; every problem is listed.
        """
        self.design = normalize_design(narms, nclusters, nsubjects, probs, sigma_b_sq)

        # Analysis configuration
        self.alpha = 0.05
        self.seed: Optional[int] = None
        self.method = GLMM
        self.optimizer = "L-BFGS-B"
        self.multi_p_method = "bonferroni"

        # Parallel processing
        self.parallel = False
        self.n_cores = 1

        # Early stopping
        self.poor_fit_override = False
        self.low_power_override = False
        self.time_limit_override = True

    # =========================================================================
    # Configuration methods
    # =========================================================================

    def set_alpha(self, alpha: float):
        """Set the significance level.

        Args:
            alpha: Strictly between 0 and 1. Intervals use ``1 - alpha``.

        Returns:
            self: For method chaining.

        Raises:
            ValueError: If *alpha* is outside ``(0, 1)``.
        """
        _validate_alpha(alpha).raise_if_invalid()
        self.alpha = float(alpha)
        return self

    def set_seed(self, seed: Optional[int] = None):
        """Set the base random seed; ``None`` enables fresh seeding.

        Returns:
            self: For method chaining.
        """
        _validate_seed(seed).raise_if_invalid()
        self.seed = None if seed is None else int(seed)
        return self

    def set_method(self, method: str, optimizer: Optional[str] = None):
        """Choose the analysis model.

        Args:
            method: ``"glmm"`` (random-intercept logistic model, LRT for the
                omnibus test) or ``"gee"`` (exchangeable GEE, joint Wald test).
            optimizer: For ``"glmm"`` only: ``"L-BFGS-B"`` (default),
                ``"Nelder-Mead"`` or ``"Powell"``.

        Returns:
            self: For method chaining.
        """
        _validate_method(method).raise_if_invalid()
        self.method = method.lower()
        if optimizer is not None:
            from .stats.glmm_solver import OPTIMIZERS

            if optimizer not in OPTIMIZERS:
                raise ValueError(f"optimizer must be one of {', '.join(OPTIMIZERS)}, got {optimizer!r}")
            self.optimizer = optimizer
        return self

    def set_correction(self, multi_p_method: Optional[str] = "bonferroni"):
        """Set the multiple-comparison correction for the per-arm p values.

        Args:
            multi_p_method: ``"holm"``, ``"hochberg"``, ``"hommel"``,
                ``"bonferroni"``, ``"BH"``, ``"BY"``, ``"fdr"`` or ``"none"``.

        Returns:
            self: For method chaining.
        """
        _validate_correction_method(multi_p_method).raise_if_invalid()
        self.multi_p_method = normalize_correction_method(multi_p_method)
        return self

    def set_parallel(self, enable: bool = True, n_cores: Optional[Union[int, str]] = None):
        """Enable or disable parallel fitting.

        Requires ``joblib``. Falls back to sequential processing with a
        warning if ``joblib`` is unavailable.

        Args:
            enable: ``True`` for parallel, ``False`` for sequential.
            n_cores: Worker count or ``"all"``. Defaults to
                ``cpu_count // 2``.

        Returns:
            self: For method chaining.
        """
        if not enable:
            self.parallel, self.n_cores = False, 1
            return self

        try:
            import joblib  # noqa: F401 - availability check only
        except ImportError:
            print("Warning: joblib not available. Install with: pip install joblib")
            print("Warning: Continuing with sequential processing.")
            self.parallel, self.n_cores = False, 1
            return self

        if n_cores is None:
            import multiprocessing as mp

            n_cores = max(1, (mp.cpu_count() or 1) // 2)

        cores, result = _validate_parallel_settings(n_cores)
        for warning in result.warnings:
            print(f"Warning: {warning}")
        result.raise_if_invalid()
        self.parallel, self.n_cores = cores > 1, cores
        return self

    def set_overrides(
        self,
        poor_fit: Optional[bool] = None,
        low_power: Optional[bool] = None,
        time_limit: Optional[bool] = None,
    ):
        """Control the early-stopping rules.

        Args:
            poor_fit: ``True`` keeps running when more than 25% of fits do
                not converge.
            low_power: ``True`` keeps running when power is below 0.5 after
                50 simulations.
            time_limit: ``True`` (default) keeps running when the projected
                runtime exceeds two minutes.

        Returns:
            self: For method chaining.
        """
        if poor_fit is not None:
            self.poor_fit_override = bool(poor_fit)
        if low_power is not None:
            self.low_power_override = bool(low_power)
        if time_limit is not None:
            self.time_limit_override = bool(time_limit)
        return self

    # =========================================================================
    # Analysis
    # =========================================================================

    def find_power(
        self,
        nsim: int = 1000,
        all_sim_data: bool = False,
        return_all_models: bool = False,
        nofit: bool = False,
        tdist: bool = False,
        quiet: bool = False,
        print_results: bool = False,
        progress_callback=None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ):
        """Estimate power by simulation.

        Args:
            nsim: Number of simulated trials.
            all_sim_data: Return every simulated dataset as ``"sim_data"``.
            return_all_models: Return every fit as ``"all_models"``.
            nofit: Skip fitting and return the wide raw-data table only.
            tdist: Draw cluster intercepts from a scaled t(3) distribution.
            quiet: Suppress progress, projected finish and completion
                messages.
            print_results: Print a formatted summary.
            progress_callback: Progress reporting control:
                - ``None`` (default): ``PrintReporter`` unless *quiet*.
                - ``False``: disable progress.
                - callable ``(current, total)``: custom callback.
            cancel_check: Optional callable returning ``True`` to abort.

        Returns:
            Result dictionary, or a ``pandas.DataFrame`` with ``arm``,
            ``cluster`` and ``y1 .. y<nsim>`` when *nofit*.

        Raises:
            ValueError: For invalid settings.
            SimulationStopped: When an early-stopping rule fires.
            SimulationCancelled: When *cancel_check* returns ``True``.
            InsufficientConvergenceError: When no simulation converged.
        """
        nsim, result = _validate_simulations(nsim)
        if not quiet:
            for warning in result.warnings:
                print(f"Warning: {warning}")
        result.raise_if_invalid()

        start_time = datetime.now()

        if nofit:
            from .stats.data_generation import simulate_wide_table

            return simulate_wide_table(self.design, nsim, tdist=tdist, seed=self.seed)

        from .progress import PrintReporter, ProgressReporter

        if progress_callback is None:
            effective_cb = None if quiet else PrintReporter()
        elif progress_callback is False:
            effective_cb = None
        else:
            effective_cb = progress_callback

        reporter = ProgressReporter(nsim, effective_cb) if effective_cb is not None else None

        runner = SimulationRunner(
            nsim=nsim,
            method=self.method,
            seed=self.seed,
            alpha=self.alpha,
            n_cores=self.n_cores if self.parallel else 1,
            poor_fit_override=self.poor_fit_override,
            low_power_override=self.low_power_override,
            time_limit_override=self.time_limit_override,
            optimizer=self.optimizer,
        )

        if reporter is not None:
            reporter.start()
        batch = runner.run(
            self.design,
            tdist=tdist,
            keep_data=all_sim_data or return_all_models,
            progress=reporter,
            cancel_check=cancel_check,
            start_time=start_time,
            quiet=quiet,
        )
        if reporter is not None:
            reporter.finish()

        power_result = analyze_batch(
            batch,
            self.design,
            alpha=self.alpha,
            multi_p_method=self.multi_p_method,
            all_sim_data=all_sim_data,
            return_all_models=return_all_models,
            start_time=start_time,
            quiet=quiet,
        )

        if print_results:
            print(_format_results(power_result))

        return power_result

    def plot(self, result: Dict[str, Any], target_power: float = 0.8, show: bool = True):
        """Bar chart of per-arm power from a ``find_power`` result."""
        return _create_arm_power_plot(result, target_power=target_power, show=show)

    def __repr__(self):
        return (
            f"MultiArmBinaryPower(narms={self.design.narms}, nclusters={list(self.design.nclusters)}, "
            f"probs={list(self.design.probs)}, method='{self.method}')"
        )


def cps_ma_binary(
    nsim: int = 1000,
    nsubjects=None,
    narms: Optional[int] = None,
    nclusters=None,
    probs=None,
    sigma_b_sq=None,
    alpha: float = 0.05,
    multi_p_method: Optional[str] = "bonferroni",
    method: str = "glmm",
    all_sim_data: bool = False,
    seed: Optional[int] = None,
    cores: Optional[Union[int, str]] = None,
    tdist: bool = False,
    poor_fit_override: bool = False,
    low_power_override: bool = False,
    time_limit_override: bool = True,
    nofit: bool = False,
    return_all_models: bool = False,
    optimizer: str = "L-BFGS-B",
    quiet: bool = False,
):
    """Single-call power estimate for a multi-arm binary-outcome trial.

    Builds a ``MultiArmBinaryPower`` from the arguments and runs
    ``find_power``. ``cores`` is ``None`` for sequential fitting, an integer
    worker count, or ``"all"``.

    Example:
        >>> result = cps_ma_binary(nsim=100, nsubjects=50, narms=3, nclusters=8,
        ...                        probs=[0.35, 0.43, 0.50], sigma_b_sq=0.1,
        ...                        method="gee", seed=123, quiet=True)
        >>> result["power"]
    """
    model = MultiArmBinaryPower(
        narms=narms,
        nclusters=nclusters,
        nsubjects=nsubjects,
        probs=probs,
        sigma_b_sq=sigma_b_sq,
    )
    model.set_alpha(alpha).set_seed(seed).set_method(method, optimizer=optimizer).set_correction(multi_p_method)
    if cores is not None:
        model.set_parallel(True, n_cores=cores)
    model.set_overrides(poor_fit=poor_fit_override, low_power=low_power_override, time_limit=time_limit_override)
    return model.find_power(
        nsim=nsim,
        all_sim_data=all_sim_data,
        return_all_models=return_all_models,
        nofit=nofit,
        tdist=tdist,
        quiet=quiet,
    )
