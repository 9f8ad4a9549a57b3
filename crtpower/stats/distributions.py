"""Distribution helpers for CRTPower.

Thin wrappers over ``scipy.stats`` used by the model fitters and the power
calculator: chi-squared and normal tail probabilities, and the exact
(Clopper-Pearson) confidence interval for a binomial proportion.

Usage:
    from crtpower.stats.distributions import exact_binomial_ci, chi2_sf
"""

from typing import Tuple

import numpy as np
from scipy.stats import binomtest
from scipy.stats import chi2 as _chi2_dist
from scipy.stats import norm as _norm_dist


def chi2_sf(x, df):
    """Chi-squared upper-tail probability ``P(X > x)``."""
    return float(_chi2_dist.sf(x, df))


def norm_two_sided_p(z):
    """Two-sided p value for standard normal statistic(s) *z*."""
    return 2.0 * _norm_dist.sf(np.abs(z))


def wald_chi2_p(wald):
    """P value of a 1-df Wald chi-squared statistic (``wald = z**2``)."""
    return _chi2_dist.sf(wald, 1)


def exact_binomial_ci(successes: int, trials: int, confidence_level: float) -> Tuple[float, float]:
    """Clopper-Pearson interval for ``successes / trials``.

    Args:
        successes: Number of successes (``0 <= successes <= trials``).
        trials: Number of trials (must be positive).
        confidence_level: Two-sided coverage, e.g. ``0.95``.

    Returns:
        ``(lower, upper)`` with ``0 <= lower <= upper <= 1``.

    Raises:
        ValueError: If *trials* is not positive or *successes* is out of range.
    """
    successes = int(successes)
    trials = int(trials)
    if trials <= 0:
        raise ValueError(f"trials must be positive, got {trials}")
    if successes < 0 or successes > trials:
        raise ValueError(f"successes must be between 0 and {trials}, got {successes}")
    ci = binomtest(successes, trials).proportion_ci(confidence_level=confidence_level, method="exact")
    return float(ci.low), float(ci.high)
