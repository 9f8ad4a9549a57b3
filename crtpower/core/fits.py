"""
Fitted-model result types for CRTPower.

Each simulated dataset is summarised by exactly one fit result. The two
supported analyses produce structurally different coefficient tables, so
they are modelled as separate frozen dataclasses sharing a common shape
(``coefficients``, ``overall``, ``converged``) and tagged with the method
name they belong to. Downstream code selects fields by name and checks the
tag explicitly; it never infers the variant from column counts.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple, Type, Union

import numpy as np
import pandas as pd

GLMM = "glmm"
GEE = "gee"

METHODS = (GLMM, GEE)

LONG_METHOD_NAMES = {
    GLMM: "Generalized Linear Mixed Model",
    GEE: "Generalized Estimating Equation",
}

INTERCEPT = "(Intercept)"


def arm_label(arm: int) -> str:
    """Return the ``Arm.<n>`` label for a 1-based arm index."""
    return f"Arm.{arm}"


def coefficient_names(narms: int) -> Tuple[str, ...]:
    """Coefficient row names in design order: intercept, then ``Arm.2 .. Arm.N``."""
    return (INTERCEPT,) + tuple(arm_label(arm) for arm in range(2, narms + 1))


# ---------------------------------------------------------------------------
# Coefficient rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MixedEffectsRow:
    """One coefficient of a mixed-effects fit (Wald z test)."""

    name: str
    estimate: float
    std_error: float
    z_value: float
    p_value: float


@dataclass(frozen=True)
class EstimatingEquationsRow:
    """One coefficient of an estimating-equations fit (Wald chi-squared, 1 df)."""

    name: str
    estimate: float
    std_error: float
    wald: float
    p_value: float


@dataclass(frozen=True)
class OverallTest:
    """Omnibus test of all treatment arms against the intercept-only model."""

    df: float
    statistic: float
    p_value: float


# ---------------------------------------------------------------------------
# Fit variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MixedEffectsFit:
    """Random-intercept logistic model fit.

    Attributes:
        coefficients: One row per arm, intercept (reference arm) first.
        overall: Likelihood-ratio test of the arm terms.
        converged: ``False`` when the optimiser failed, the fit was
            singular or the standard errors are not finite.
        message: Optional human-readable reason for non-convergence.
    """

    coefficients: Tuple[MixedEffectsRow, ...]
    overall: OverallTest
    converged: bool
    message: Optional[str] = None

    method = GLMM
    statistic_field = "z_value"
    statistic_suffix = "zval"
    overall_columns = ("Df", "Chisq", "P(>Chisq)")
    overall_p_column = "P(>Chisq)"


@dataclass(frozen=True)
class EstimatingEquationsFit:
    """Marginal (GEE) logistic model fit with robust standard errors.

    Attributes:
        coefficients: One row per arm, intercept (reference arm) first.
        overall: Joint Wald chi-squared test of the arm terms.
        converged: ``False`` when the iterations did not converge or the
            standard errors are not finite.
        message: Optional human-readable reason for non-convergence.
    """

    coefficients: Tuple[EstimatingEquationsRow, ...]
    overall: OverallTest
    converged: bool
    message: Optional[str] = None

    method = GEE
    statistic_field = "wald"
    statistic_suffix = "wald"
    overall_columns = ("Df", "X2", "P(>|Chi|)")
    overall_p_column = "P(>|Chi|)"


FitResult = Union[MixedEffectsFit, EstimatingEquationsFit]

FIT_TYPES: Dict[str, Type] = {
    GLMM: MixedEffectsFit,
    GEE: EstimatingEquationsFit,
}


def fit_type_for(method: str) -> Type:
    """Return the fit dataclass for *method* (``"glmm"`` or ``"gee"``)."""
    try:
        return FIT_TYPES[method]
    except KeyError:
        raise ValueError(f"Unknown analysis method: {method!r}. Valid options: {', '.join(METHODS)}") from None


def failed_fit(method: str, narms: int, message: str) -> FitResult:
    """Build a non-converged fit with NaN statistics.

    Used when a simulation's fit raised, so the batch keeps one entry per
    simulation and the failure shows up as non-convergence.
    """
    nan = float("nan")
    names = coefficient_names(narms)
    overall = OverallTest(df=float(narms - 1), statistic=nan, p_value=nan)
    if method == GLMM:
        return MixedEffectsFit(
            coefficients=tuple(MixedEffectsRow(n, nan, nan, nan, nan) for n in names),
            overall=overall,
            converged=False,
            message=message,
        )
    if method == GEE:
        return EstimatingEquationsFit(
            coefficients=tuple(EstimatingEquationsRow(n, nan, nan, nan, nan) for n in names),
            overall=overall,
            converged=False,
            message=message,
        )
    raise ValueError(f"Unknown analysis method: {method!r}")


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SimulationBatch:
    """Completed set of per-simulation fits, in simulation order.

    Attributes:
        method: Analysis method shared by every fit in the batch.
        fits: One fit result per simulation.
        sim_data: Raw simulated datasets (one DataFrame per simulation),
            present only when raw-data retention was requested.
        n_failed_fits: Number of fits that raised and were recorded as
            non-converged placeholders.
    """

    method: str
    fits: Tuple[FitResult, ...]
    sim_data: Optional[Tuple[pd.DataFrame, ...]] = None
    n_failed_fits: int = 0
    _converged: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        expected = fit_type_for(self.method)
        for i, fit in enumerate(self.fits):
            if not isinstance(fit, expected):
                raise TypeError(
                    f"Simulation {i + 1} holds a {type(fit).__name__}, expected "
                    f"{expected.__name__} for method '{self.method}'"
                )
        if self.sim_data is not None and len(self.sim_data) != len(self.fits):
            raise ValueError(f"sim_data has {len(self.sim_data)} datasets for {len(self.fits)} fits")
        object.__setattr__(self, "_converged", np.array([bool(f.converged) for f in self.fits], dtype=bool))

    @property
    def nsim(self) -> int:
        return len(self.fits)

    @property
    def converged(self) -> np.ndarray:
        """Boolean convergence flag per simulation (read-only copy)."""
        return self._converged.copy()

    @classmethod
    def from_fits(
        cls,
        method: str,
        fits: Sequence[FitResult],
        sim_data: Optional[Sequence[pd.DataFrame]] = None,
        n_failed_fits: int = 0,
    ) -> "SimulationBatch":
        """Build a batch from any sequence of fits (and optional datasets)."""
        return cls(
            method=method,
            fits=tuple(fits),
            sim_data=tuple(sim_data) if sim_data is not None else None,
            n_failed_fits=n_failed_fits,
        )
