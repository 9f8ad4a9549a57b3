"""Generalized linear mixed model analysis for CRTPower.

Wraps the custom random-intercept logistic solver and turns its output into
a ``MixedEffectsFit``: Wald z tests for each coefficient and a
likelihood-ratio test of all arm terms against the intercept-only model.
"""

import warnings

import numpy as np

from ..core.fits import MixedEffectsFit, MixedEffectsRow, OverallTest, coefficient_names
from .distributions import norm_two_sided_p
from .glmm_solver import (
    SINGULAR_MESSAGE,
    compute_cluster_statistics,
    glmm_fit,
    glmm_fit_null,
    likelihood_ratio_test,
)


def fit_glmm(y, cluster_ids, cluster_arm, narms: int, optimizer: str = "L-BFGS-B") -> MixedEffectsFit:
    """Fit ``y ~ arm + (1 | cluster)`` with a logit link.

    Args:
        y: (N,) 0/1 outcomes.
        cluster_ids: (N,) 1-based cluster ids, unique across arms.
        cluster_arm: (K,) 1-based arm of each cluster.
        narms: Number of arms; ``Arm.1`` is the reference.
        optimizer: ``scipy.optimize.minimize`` method for both fits.

    Returns:
        MixedEffectsFit. ``converged`` is ``False`` for optimiser failure,
        a singular fit or non-finite standard errors; the statistics are
        still reported so they appear in the diagnostic tables.
    """
    stats = compute_cluster_statistics(y, cluster_ids, cluster_arm, narms)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        full = glmm_fit(stats, optimizer=optimizer)
        null = glmm_fit_null(stats, optimizer=optimizer)

    with np.errstate(divide="ignore", invalid="ignore"):
        z = full.beta / full.se_beta
    p = norm_two_sided_p(z)

    rows = tuple(
        MixedEffectsRow(
            name=name,
            estimate=float(full.beta[i]),
            std_error=float(full.se_beta[i]),
            z_value=float(z[i]),
            p_value=float(p[i]),
        )
        for i, name in enumerate(coefficient_names(narms))
    )

    df = narms - 1
    statistic, p_value = likelihood_ratio_test(full, null, df)
    converged = full.converged and null.converged
    message = full.message or (None if null.converged else f"null model: {null.message}")

    # a null fit whose only problem is the variance boundary is still a valid reference
    if not null.converged and null.message == SINGULAR_MESSAGE and full.converged:
        converged = True
        message = None

    return MixedEffectsFit(
        coefficients=rows,
        overall=OverallTest(df=float(df), statistic=float(statistic), p_value=float(p_value)),
        converged=converged,
        message=message,
    )
