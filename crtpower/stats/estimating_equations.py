"""Generalized estimating equations analysis for CRTPower.

Fits a marginal logistic model with an exchangeable working correlation
using ``statsmodels`` GEE, and reports per-coefficient Wald chi-squared
tests plus a joint Wald test of the arm terms.
"""

import warnings

import numpy as np
from scipy.special import expit

from ..core.fits import EstimatingEquationsFit, EstimatingEquationsRow, OverallTest, coefficient_names
from .distributions import chi2_sf, wald_chi2_p

# logit-scale coefficients beyond this only arise from separated data
MAX_ABS_ESTIMATE = 15.0
FITTED_PROB_TOL = 1e-8
SEPARATION_MESSAGE = "fitted probabilities numerically 0 or 1"


def separated(X: np.ndarray, estimates: np.ndarray) -> bool:
    """True when the fit sits on a separation boundary (an arm with no events or all events)."""
    if not np.all(np.isfinite(estimates)) or np.any(np.abs(estimates) > MAX_ABS_ESTIMATE):
        return True
    mu = expit(X @ estimates)
    return bool(np.any((mu < FITTED_PROB_TOL) | (mu > 1.0 - FITTED_PROB_TOL)))


def _arm_design(arm, narms: int) -> np.ndarray:
    """Intercept plus treatment dummies, ``Arm.1`` as reference."""
    arm = np.asarray(arm, dtype=np.int64)
    X = np.zeros((arm.shape[0], narms))
    X[:, 0] = 1.0
    for j in range(2, narms + 1):
        X[:, j - 1] = (arm == j).astype(float)
    return X


def joint_wald_test(estimates: np.ndarray, cov: np.ndarray):
    """``(statistic, df, p_value)`` for H0: all *estimates* are zero."""
    statistic = float(estimates @ np.linalg.solve(cov, estimates))
    df = estimates.shape[0]
    return statistic, df, chi2_sf(statistic, df)


def fit_gee(y, arm, cluster_ids, narms: int, maxiter: int = 60) -> EstimatingEquationsFit:
    """Fit ``y ~ arm`` by GEE with an exchangeable working correlation.

    Args:
        y: (N,) 0/1 outcomes.
        arm: (N,) 1-based arm of each subject.
        cluster_ids: (N,) cluster ids, used as GEE groups.
        narms: Number of arms.
        maxiter: Iteration limit passed to ``GEE.fit``.

    Returns:
        EstimatingEquationsFit with robust (sandwich) standard errors.
        ``converged`` is ``False`` when statsmodels reports a convergence
        problem, an arm has fitted probabilities numerically 0 or 1
        (separation) or the standard errors are not finite.
    """
    from statsmodels.genmod.cov_struct import Exchangeable
    from statsmodels.genmod.families import Binomial
    from statsmodels.genmod.generalized_estimating_equations import GEE
    from statsmodels.tools.sm_exceptions import ConvergenceWarning, IterationLimitWarning

    X = _arm_design(arm, narms)
    model = GEE(np.asarray(y, dtype=float), X, groups=np.asarray(cluster_ids), family=Binomial(), cov_struct=Exchangeable())

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = model.fit(maxiter=maxiter)

    problems = [str(w.message) for w in caught if issubclass(w.category, (ConvergenceWarning, IterationLimitWarning))]

    estimates = np.asarray(result.params, dtype=float)
    cov = np.asarray(result.cov_params(), dtype=float)
    with np.errstate(invalid="ignore"):
        se = np.sqrt(np.diag(cov))
        wald = (estimates / se) ** 2
    p = wald_chi2_p(wald)

    rows = tuple(
        EstimatingEquationsRow(
            name=name,
            estimate=float(estimates[i]),
            std_error=float(se[i]),
            wald=float(wald[i]),
            p_value=float(p[i]),
        )
        for i, name in enumerate(coefficient_names(narms))
    )

    converged = not problems and bool(np.all(np.isfinite(se))) and bool(np.all(se > 0))
    message = problems[0] if problems else (None if converged else "standard errors are not finite")
    if separated(X, estimates):
        converged = False
        message = SEPARATION_MESSAGE

    df = narms - 1
    try:
        statistic, _, p_value = joint_wald_test(estimates[1:], cov[1:, 1:])
    except np.linalg.LinAlgError:
        statistic, p_value = float("nan"), float("nan")
        converged = False
        message = message or "covariance of the arm terms is singular"

    return EstimatingEquationsFit(
        coefficients=rows,
        overall=OverallTest(df=float(df), statistic=statistic, p_value=p_value),
        converged=converged,
        message=message,
    )
