"""Builders for hand-made simulation batches.

Lets unit tests exercise the aggregation engine on exact p values without
fitting any model.
"""

import math

from crtpower.core.fits import (
    GEE,
    GLMM,
    EstimatingEquationsFit,
    EstimatingEquationsRow,
    MixedEffectsFit,
    MixedEffectsRow,
    OverallTest,
    SimulationBatch,
    coefficient_names,
)


def glmm_fit(arm_p, overall_p, converged=True, intercept_p=0.5, estimate=0.4, std_error=0.2):
    """Mixed-effects fit with the given treatment-arm p values (``Arm.2..``)."""
    names = coefficient_names(len(arm_p) + 1)
    p_values = [intercept_p] + list(arm_p)
    rows = tuple(
        MixedEffectsRow(name=n, estimate=estimate, std_error=std_error, z_value=estimate / std_error, p_value=p)
        for n, p in zip(names, p_values)
    )
    return MixedEffectsFit(
        coefficients=rows,
        overall=OverallTest(df=float(len(arm_p)), statistic=5.0, p_value=overall_p),
        converged=converged,
    )


def gee_fit(arm_p, overall_p, converged=True, intercept_p=0.5, estimate=0.4, std_error=0.2):
    """Estimating-equations fit with the given treatment-arm p values."""
    names = coefficient_names(len(arm_p) + 1)
    p_values = [intercept_p] + list(arm_p)
    rows = tuple(
        EstimatingEquationsRow(name=n, estimate=estimate, std_error=std_error, wald=(estimate / std_error) ** 2, p_value=p)
        for n, p in zip(names, p_values)
    )
    return EstimatingEquationsFit(
        coefficients=rows,
        overall=OverallTest(df=float(len(arm_p)), statistic=5.0, p_value=overall_p),
        converged=converged,
    )


def scenario_batch(nsim=100, n_converged=80, n_rejecting=45, method=GLMM, narms=3):
    """Batch where the first *n_converged* fits converge and the first
    *n_rejecting* of those reject the omnibus test at 0.05.

    Non-converged fits carry a rejecting p value so that leaking them into
    the estimate would change the result.
    """
    make = glmm_fit if method == GLMM else gee_fit
    arm_p = [0.001] * (narms - 1)
    fits = []
    for i in range(nsim):
        if i < n_rejecting:
            fits.append(make(arm_p, overall_p=0.001))
        elif i < n_converged:
            fits.append(make([0.6] * (narms - 1), overall_p=0.6))
        else:
            fits.append(make(arm_p, overall_p=0.0001, converged=False))
    return SimulationBatch.from_fits(method, fits)


def nan_fit(method=GLMM, narms=3):
    nan = math.nan
    make = glmm_fit if method == GLMM else gee_fit
    return make([nan] * (narms - 1), overall_p=nan, converged=False, intercept_p=nan)


__all__ = ["GEE", "GLMM", "glmm_fit", "gee_fit", "scenario_batch", "nan_fit"]
