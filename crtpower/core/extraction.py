"""
Model-output extraction for CRTPower.

Turns fit results into per-arm arrays (estimate, standard error, test
statistic, p value). The statistic column depends on the analysis method:
the z value for mixed-effects fits and the Wald statistic for
estimating-equations fits. The method tag is always passed explicitly and
checked against the fit's type.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .fits import FitResult, SimulationBatch, fit_type_for


@dataclass(frozen=True)
class ArmEstimates:
    """Per-arm summary of one fit, in design arm order (intercept first)."""

    names: Tuple[str, ...]
    estimate: np.ndarray
    std_error: np.ndarray
    statistic: np.ndarray
    p_value: np.ndarray


@dataclass(frozen=True)
class EstimateMatrices:
    """Per-simulation, per-arm arrays of shape ``(nsim, narms)``."""

    names: Tuple[str, ...]
    statistic_suffix: str
    estimate: np.ndarray
    std_error: np.ndarray
    statistic: np.ndarray
    p_value: np.ndarray


def extract_arm_estimates(fit: FitResult, method: str) -> ArmEstimates:
    """Extract the four per-arm sequences from a single fit.

    Args:
        fit: A ``MixedEffectsFit`` or ``EstimatingEquationsFit``.
        method: The analysis method the caller expects (``"glmm"`` or
            ``"gee"``).

    Returns:
        ``ArmEstimates`` with one entry per coefficient row.

    Raises:
        TypeError: If *fit* is not the variant produced by *method*.
    """
    expected = fit_type_for(method)
    if not isinstance(fit, expected):
        raise TypeError(f"Cannot read a {type(fit).__name__} as a '{method}' fit (expected {expected.__name__})")

    rows = fit.coefficients
    stat_field = expected.statistic_field
    return ArmEstimates(
        names=tuple(row.name for row in rows),
        estimate=np.array([row.estimate for row in rows], dtype=float),
        std_error=np.array([row.std_error for row in rows], dtype=float),
        statistic=np.array([getattr(row, stat_field) for row in rows], dtype=float),
        p_value=np.array([row.p_value for row in rows], dtype=float),
    )


def extract_batch(batch: SimulationBatch, narms: int) -> EstimateMatrices:
    """Run the extractor over every simulation of *batch*.

    Args:
        batch: Completed simulation batch.
        narms: Number of arms in the design; every fit must report exactly
            this many coefficient rows with the same names.

    Returns:
        ``EstimateMatrices`` with ``nsim`` rows and ``narms`` columns.

    Raises:
        ValueError: If a fit reports a different number of rows, or row
            names that differ from the first simulation's.
    """
    nsim = batch.nsim
    estimate = np.full((nsim, narms), np.nan)
    std_error = np.full((nsim, narms), np.nan)
    statistic = np.full((nsim, narms), np.nan)
    p_value = np.full((nsim, narms), np.nan)
    names: Tuple[str, ...] = ()

    for i, fit in enumerate(batch.fits):
        arm = extract_arm_estimates(fit, batch.method)
        if len(arm.names) != narms:
            raise ValueError(f"Simulation {i + 1} reports {len(arm.names)} coefficients, expected {narms} (one per arm)")
        if i == 0:
            names = arm.names
        elif arm.names != names:
            raise ValueError(f"Simulation {i + 1} coefficient names {arm.names} differ from {names}")
        estimate[i] = arm.estimate
        std_error[i] = arm.std_error
        statistic[i] = arm.statistic
        p_value[i] = arm.p_value

    return EstimateMatrices(
        names=names,
        statistic_suffix=fit_type_for(batch.method).statistic_suffix,
        estimate=estimate,
        std_error=std_error,
        statistic=statistic,
        p_value=p_value,
    )
