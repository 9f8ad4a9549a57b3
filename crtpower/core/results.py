"""
Results processing for CRTPower.

Converts a completed simulation batch into power estimates with exact
confidence intervals, per-arm rejection rates ("Beta") and the per-
simulation estimates table, then assembles the final result dictionary.
"""

import warnings
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..progress import format_completion_message
from ..stats.distributions import exact_binomial_ci
from .convergence import ConvergenceSplit, low_convergence_message, require_converged, split_by_convergence
from .corrections import adjust_pvalues, normalize_correction_method
from .design import TrialDesign
from .extraction import EstimateMatrices, extract_batch
from .fits import INTERCEPT, LONG_METHOD_NAMES, SimulationBatch
from .overall import build_overall_table, converged_overall_table, omnibus_indicators


@dataclass(frozen=True)
class PowerEstimate:
    """Rejection rate with its exact confidence interval.

    Attributes:
        power: ``successes / trials``.
        lower: Lower Clopper-Pearson bound.
        upper: Upper Clopper-Pearson bound.
        successes: Number of rejections.
        trials: Number of converged simulations used.
        conf_level: Two-sided coverage (``1 - alpha``).
    """

    power: float
    lower: float
    upper: float
    successes: int
    trials: int
    conf_level: float

    def to_frame(self) -> pd.DataFrame:
        """One-row table with ``power``, ``lower.ci`` and ``upper.ci``."""
        return pd.DataFrame(
            {"power": [self.power], "lower.ci": [self.lower], "upper.ci": [self.upper]},
            index=["overall"],
        )


class ResultsProcessor:
    """Turns a simulation batch into power estimates.

    Runs extraction, convergence filtering, multiplicity adjustment and the
    omnibus aggregation, then computes the omnibus power and the per-arm
    rejection rates from converged simulations only.
    """

    def __init__(self, alpha: float = 0.05, multi_p_method: Optional[str] = "bonferroni"):
        """Initialise the processor.

        Args:
            alpha: Significance level; intervals use ``1 - alpha`` coverage.
            multi_p_method: Correction applied within each simulation.
        """
        self.alpha = alpha
        self.multi_p_method = normalize_correction_method(multi_p_method)

    @property
    def conf_level(self) -> float:
        return 1.0 - self.alpha

    def power_from_indicators(self, indicators) -> PowerEstimate:
        """Omnibus power and exact interval from 0/1 rejection indicators.

        Raises:
            InsufficientConvergenceError: If *indicators* is empty.
        """
        indicators = np.asarray(indicators, dtype=int)
        trials = int(indicators.shape[0])
        require_converged(trials, "power confidence interval")
        successes = int(indicators.sum())
        lower, upper = exact_binomial_ci(successes, trials, self.conf_level)
        return PowerEstimate(
            power=successes / trials,
            lower=lower,
            upper=upper,
            successes=successes,
            trials=trials,
            conf_level=self.conf_level,
        )

    def calculate_arm_powers(self, adjusted_p_converged: np.ndarray, arm_names: List[str]) -> pd.DataFrame:
        """Per-arm rejection rate, exact interval and ``beta = 1 - power``.

        Args:
            adjusted_p_converged: Adjusted p values of the treatment arms,
                converged simulations only, shape ``(n_converged, n_arms)``.
            arm_names: Labels for the columns (``Arm.2 .. Arm.N``).

        Returns:
            DataFrame indexed by arm with columns ``power``, ``lower.ci``,
            ``upper.ci``, ``alpha``, ``beta`` and ``multi_p_method``.

        Raises:
            InsufficientConvergenceError: If there are no converged rows.
        """
        p = np.atleast_2d(np.asarray(adjusted_p_converged, dtype=float))
        require_converged(p.shape[0], "per-arm power confidence interval")

        rows = []
        for j in range(p.shape[1]):
            estimate = self.power_from_indicators((p[:, j] < self.alpha).astype(int))
            rows.append(
                {
                    "power": estimate.power,
                    "lower.ci": estimate.lower,
                    "upper.ci": estimate.upper,
                    "alpha": self.alpha,
                    "beta": 1.0 - estimate.power,
                    "multi_p_method": self.multi_p_method,
                }
            )
        return pd.DataFrame(rows, index=list(arm_names))

    def process_batch(self, batch: SimulationBatch, design: TrialDesign) -> Dict[str, Any]:
        """Run the whole aggregation over *batch*.

        Args:
            batch: Completed simulation batch (all ``nsim`` fits).
            design: The trial design the batch was simulated from.

        Returns:
            Dict with keys ``"power"`` (``PowerEstimate``), ``"arm_power"``,
            ``"overall_power"`` (converged rows), ``"overall_table"`` (all
            rows), ``"model_estimates"``, ``"convergence"``,
            ``"n_converged"``, ``"n_failed_fits"`` (fits that raised) and
            ``"warnings"``.

        Raises:
            ValueError: If the batch is empty or the design has fewer than
                three arms.
            InsufficientConvergenceError: If no simulation converged.
        """
        if batch.nsim == 0:
            raise ValueError("nsim must be at least 1: cannot estimate power from an empty batch")
        if design.narms < 3:
            raise ValueError(f"narms must be at least 3 for the omnibus test, got {design.narms}")

        advisories: List[str] = []
        split = split_by_convergence(batch.converged)
        message = low_convergence_message(split.n_converged, batch.nsim)
        if message is not None:
            advisories.append(message)

        matrices = extract_batch(batch, design.narms)
        adjusted = adjust_pvalues(matrices.p_value, self.multi_p_method)

        overall_table = build_overall_table(batch, split)
        indicators = omnibus_indicators(overall_table, batch.method, self.alpha)
        power = self.power_from_indicators(indicators)

        treatment = [i for i, name in enumerate(matrices.names) if name != INTERCEPT]
        arm_names = [matrices.names[i] for i in treatment]
        arm_power = self.calculate_arm_powers(split.inferential(adjusted[:, treatment]), arm_names)

        return {
            "power": power,
            "arm_power": arm_power,
            "overall_power": converged_overall_table(overall_table),
            "overall_table": overall_table,
            "model_estimates": _model_estimates_table(matrices, adjusted, treatment, split),
            "convergence": pd.Series(split.flags, index=pd.RangeIndex(1, batch.nsim + 1), name="converge"),
            "n_converged": split.n_converged,
            "n_failed_fits": batch.n_failed_fits,
            "warnings": advisories,
        }


def _model_estimates_table(
    matrices: EstimateMatrices,
    adjusted: np.ndarray,
    treatment: List[int],
    split: ConvergenceSplit,
) -> pd.DataFrame:
    """Per-simulation estimates for the treatment arms (intercept excluded).

    Columns are grouped by quantity: every ``<arm>.Estimate`` first, then
    ``.Std.Err``, the method's statistic (``.zval`` or ``.wald``), the
    adjusted ``.pval`` and finally ``converge``.
    """
    blocks = [
        ("Estimate", matrices.estimate),
        ("Std.Err", matrices.std_error),
        (matrices.statistic_suffix, matrices.statistic),
        ("pval", adjusted),
    ]
    data = {}
    for suffix, values in blocks:
        for i in treatment:
            data[f"{matrices.names[i]}.{suffix}"] = values[:, i]
    table = pd.DataFrame(data, index=pd.RangeIndex(1, split.nsim + 1))
    return split.diagnostic(table)


def build_power_result(
    design: TrialDesign,
    method: str,
    alpha: float,
    multi_p_method: str,
    nsim: int,
    processed: Dict[str, Any],
    start_time: datetime,
    end_time: Optional[datetime] = None,
    all_sim_data: bool = False,
    return_all_models: bool = False,
    batch: Optional[SimulationBatch] = None,
) -> Dict[str, Any]:
    """Build the complete power analysis result dictionary.

    Args:
        design: Normalised trial design.
        method: ``"glmm"`` or ``"gee"``.
        alpha: Significance level.
        multi_p_method: Correction method used for the arm p values.
        nsim: Number of simulations requested.
        processed: Output of ``ResultsProcessor.process_batch``.
        start_time: When the run started; used for the runtime only.
        end_time: When the run finished (defaults to now).
        all_sim_data: Attach the simulated datasets as ``"sim_data"``.
        return_all_models: Attach every fit as ``"all_models"`` (and the
            simulated datasets, when they were kept).
        batch: The batch the results came from; required when either
            toggle is set.

    Returns:
        Result dictionary. ``"sim_data"`` and ``"all_models"`` are only
        present when requested.

    Raises:
        ValueError: If raw datasets are requested but *batch* holds none.
    """
    end_time = end_time or datetime.now()
    arm_names = list(design.arm_names)
    power: PowerEstimate = processed["power"]

    result: Dict[str, Any] = {
        "overview": (
            f"Monte Carlo Power Estimation based on {nsim} Simulations: "
            f"Parallel Design, Binary Outcome, {design.narms} Arms."
        ),
        "nsim": nsim,
        "power": power.to_frame(),
        "beta": processed["arm_power"]["beta"],
        "arm_power": processed["arm_power"],
        "overall_power": processed["overall_power"],
        "method": LONG_METHOD_NAMES[method],
        "alpha": alpha,
        "multi_p_method": normalize_correction_method(multi_p_method),
        "cluster_sizes": {name: list(sizes) for name, sizes in zip(arm_names, design.nsubjects)},
        "n_clusters": list(design.nclusters),
        "variance_parms": pd.DataFrame(
            {"sigma_b_sq": list(design.sigma_b_sq), "probs": list(design.probs)},
            index=arm_names,
        ),
        "probs": list(design.probs),
        "model_estimates": processed["model_estimates"],
        "convergence": processed["convergence"],
        "n_converged": processed["n_converged"],
        "n_failed_fits": processed["n_failed_fits"],
        "warnings": list(processed["warnings"]),
        "runtime": (end_time - start_time).total_seconds(),
    }

    if all_sim_data or return_all_models:
        if batch is None:
            raise ValueError("batch is required to attach simulated data or models")
        if batch.sim_data is not None:
            result["sim_data"] = list(batch.sim_data)
        elif all_sim_data:
            raise ValueError("all_sim_data requested but the simulation batch holds no datasets")
    if return_all_models:
        result["all_models"] = list(batch.fits)  # type: ignore[union-attr]

    return result


def analyze_batch(
    batch: SimulationBatch,
    design: TrialDesign,
    alpha: float = 0.05,
    multi_p_method: Optional[str] = "bonferroni",
    all_sim_data: bool = False,
    return_all_models: bool = False,
    start_time: Optional[datetime] = None,
    quiet: bool = True,
) -> Dict[str, Any]:
    """Aggregate an externally produced batch into a result dictionary.

    Emits a ``UserWarning`` when fewer than 25% of simulations converged
    and, unless *quiet*, prints the completion summary. Neither changes
    the returned structure.
    """
    start_time = start_time or datetime.now()
    processor = ResultsProcessor(alpha=alpha, multi_p_method=multi_p_method)
    processed = processor.process_batch(batch, design)

    for message in processed["warnings"]:
        warnings.warn(message, UserWarning, stacklevel=2)

    end_time = datetime.now()
    if not quiet:
        print(format_completion_message(start_time, end_time))

    return build_power_result(
        design=design,
        method=batch.method,
        alpha=alpha,
        multi_p_method=processor.multi_p_method,
        nsim=batch.nsim,
        processed=processed,
        start_time=start_time,
        end_time=end_time,
        all_sim_data=all_sim_data,
        return_all_models=return_all_models,
        batch=batch,
    )
