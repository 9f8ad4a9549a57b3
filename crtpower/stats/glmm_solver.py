"""Custom solver for random-intercept logistic mixed models.

Fits ``logit P(y = 1) = X beta + b_c`` with ``b_c ~ N(0, sigma^2)`` by
maximum likelihood. The cluster intercept is integrated out with
Gauss-Hermite quadrature, which is exact enough for the small number of
parameters involved and needs only per-cluster sufficient statistics:
every subject in a cluster shares the same arm, so the cluster's
contribution depends on its success count, its size and its arm alone.

The likelihood-ratio test of the arm terms refits the intercept-only model
on the same statistics.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.optimize import minimize
from scipy.special import log_expit, logsumexp

N_QUADRATURE_POINTS = 25
SINGULAR_SIGMA = 1e-4
# a random intercept that improves the log-likelihood by less than this over
# sigma pinned at its lower bound is treated as a boundary fit
SINGULAR_LOGLIK_GAIN = 1e-3
LOG_SIGMA_BOUNDS = (np.log(1e-6), np.log(50.0))
OPTIMIZERS = ("L-BFGS-B", "Nelder-Mead", "Powell")
SINGULAR_MESSAGE = "boundary (singular) fit: random intercept variance is near zero"

_NODES, _WEIGHTS = np.polynomial.hermite.hermgauss(N_QUADRATURE_POINTS)
_LOG_WEIGHTS = np.log(_WEIGHTS) - 0.5 * np.log(np.pi)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass
class ClusterStats:
    """Per-cluster sufficient statistics for a binary random-intercept model."""

    K: int  # number of clusters
    p: int  # fixed effects (including intercept)
    successes: np.ndarray  # (K,) events per cluster
    trials: np.ndarray  # (K,) subjects per cluster
    X: np.ndarray  # (K, p) cluster-level design matrix


@dataclass
class GLMMResult:
    """Result of GLMM fitting."""

    beta: np.ndarray  # (p,) fixed effects incl. intercept
    sigma: float  # random intercept SD
    cov_beta: np.ndarray  # (p, p) covariance of fixed effects
    se_beta: np.ndarray  # (p,) standard errors
    log_likelihood: float  # at optimum
    converged: bool
    message: Optional[str] = None
    boundary_gain: float = np.inf  # log-likelihood gain over sigma at its lower bound

    @property
    def singular(self) -> bool:
        return self.sigma < SINGULAR_SIGMA or self.boundary_gain < SINGULAR_LOGLIK_GAIN


# ---------------------------------------------------------------------------
# Sufficient statistics
# ---------------------------------------------------------------------------


def compute_cluster_statistics(y, cluster_ids, cluster_arm, narms) -> ClusterStats:
    """Collapse subject-level outcomes to per-cluster counts.

    Args:
        y: (N,) 0/1 outcomes.
        cluster_ids: (N,) 1-based cluster ids.
        cluster_arm: (K,) 1-based arm of each cluster.
        narms: Number of arms; ``Arm.1`` is the reference level.

    Returns:
        ClusterStats with an intercept column followed by one dummy per
        non-reference arm.
    """
    y = np.asarray(y, dtype=float)
    idx = np.asarray(cluster_ids, dtype=np.int64) - 1
    cluster_arm = np.asarray(cluster_arm, dtype=np.int64)
    K = cluster_arm.shape[0]

    successes = np.bincount(idx, weights=y, minlength=K)
    trials = np.bincount(idx, minlength=K).astype(float)

    X = np.zeros((K, narms))
    X[:, 0] = 1.0
    for arm in range(2, narms + 1):
        X[:, arm - 1] = (cluster_arm == arm).astype(float)

    return ClusterStats(K=K, p=narms, successes=successes, trials=trials, X=X)


def _reduce_to_intercept(stats: ClusterStats) -> ClusterStats:
    return ClusterStats(K=stats.K, p=1, successes=stats.successes, trials=stats.trials, X=stats.X[:, :1])


# ---------------------------------------------------------------------------
# Marginal likelihood
# ---------------------------------------------------------------------------


def marginal_loglik(params, stats: ClusterStats) -> float:
    """Log-likelihood at ``params = (beta..., log sigma)``.

    The binomial coefficient is omitted; it cancels in every comparison.
    """
    beta = params[: stats.p]
    sigma = np.exp(params[stats.p])
    eta = stats.X @ beta  # (K,)

    # (K, Q) linear predictor at each quadrature node
    lin = eta[:, None] + np.sqrt(2.0) * sigma * _NODES[None, :]
    s = stats.successes[:, None]
    f = (stats.trials - stats.successes)[:, None]
    log_cond = s * log_expit(lin) + f * log_expit(-lin)

    per_cluster = logsumexp(log_cond + _LOG_WEIGHTS[None, :], axis=1)
    return float(per_cluster.sum())


def _start_values(stats: ClusterStats) -> np.ndarray:
    """Pooled logit per arm, intercept-relative, with ``sigma = 0.5``."""
    start = np.zeros(stats.p + 1)
    ref = stats.X[:, 1:].sum(axis=1) == 0 if stats.p > 1 else np.ones(stats.K, dtype=bool)

    def _pooled_logit(mask):
        events = stats.successes[mask].sum() + 0.5
        total = stats.trials[mask].sum() + 1.0
        return np.log(events / (total - events))

    base = _pooled_logit(ref)
    start[0] = base
    for j in range(1, stats.p):
        mask = stats.X[:, j] == 1
        if mask.any():
            start[j] = _pooled_logit(mask) - base
    start[stats.p] = np.log(0.5)
    return start


def boundary_loglik(stats: ClusterStats, beta_start) -> float:
    """Maximum log-likelihood with sigma pinned at its lower bound.

    ``_fit`` compares the free fit against this to detect boundary fits,
    which L-BFGS-B leaves at small positive sigma.
    """
    log_sigma = LOG_SIGMA_BOUNDS[0]

    def objective(beta):
        return -marginal_loglik(np.append(beta, log_sigma), stats)

    result = minimize(objective, np.asarray(beta_start, dtype=float), method="BFGS")
    return -float(result.fun)


def _fit(stats: ClusterStats, optimizer: str = "L-BFGS-B", compute_se: bool = True) -> GLMMResult:
    """Maximise the marginal likelihood and derive Wald standard errors."""
    from statsmodels.tools.numdiff import approx_hess3

    def objective(params):
        return -marginal_loglik(params, stats)

    bounds = [(None, None)] * stats.p + [LOG_SIGMA_BOUNDS]
    options = {"maxiter": 2000} if optimizer != "L-BFGS-B" else {"maxiter": 500}
    result = minimize(objective, _start_values(stats), method=optimizer, bounds=bounds, options=options)

    params = result.x
    beta = params[: stats.p]
    sigma = float(np.exp(params[stats.p]))
    loglik = -float(result.fun)
    converged = bool(result.success) and np.isfinite(loglik)
    message = None if converged else f"optimizer did not converge: {result.message}"

    p = stats.p
    cov_beta = np.full((p, p), np.nan)
    se_beta = np.full(p, np.nan)
    if compute_se:
        try:
            hessian = approx_hess3(params, objective)
            cov = np.linalg.inv(hessian)
            cov_beta = cov[:p, :p]
            se_beta = np.sqrt(np.diag(cov_beta))
        except np.linalg.LinAlgError:
            converged = False
            message = message or "Hessian is singular"

        if not np.all(np.isfinite(se_beta)):
            converged = False
            message = message or "standard errors are not finite"

    fit = GLMMResult(
        beta=beta,
        sigma=sigma,
        cov_beta=cov_beta,
        se_beta=se_beta,
        log_likelihood=loglik,
        converged=converged,
        message=message,
    )
    if np.isfinite(loglik):
        fit.boundary_gain = loglik - boundary_loglik(stats, beta)
    if fit.converged and fit.singular:
        fit.converged = False
        fit.message = SINGULAR_MESSAGE
    return fit


def glmm_fit(stats: ClusterStats, optimizer: str = "L-BFGS-B") -> GLMMResult:
    """Fit the full model (intercept plus arm dummies).

    Args:
        stats: Output of ``compute_cluster_statistics``.
        optimizer: ``scipy.optimize.minimize`` method, one of ``OPTIMIZERS``.
    """
    if optimizer not in OPTIMIZERS:
        raise ValueError(f"optimizer must be one of {', '.join(OPTIMIZERS)}, got {optimizer!r}")
    return _fit(stats, optimizer=optimizer)


def glmm_fit_null(stats: ClusterStats, optimizer: str = "L-BFGS-B") -> GLMMResult:
    """Fit the intercept-only model used for the likelihood-ratio test."""
    return _fit(_reduce_to_intercept(stats), optimizer=optimizer, compute_se=False)


def likelihood_ratio_test(full: GLMMResult, null: GLMMResult, df: int):
    """Return ``(statistic, p_value)`` for full vs. null; statistic floored at 0."""
    from .distributions import chi2_sf

    statistic = max(0.0, 2.0 * (full.log_likelihood - null.log_likelihood))
    return statistic, chi2_sf(statistic, df)
