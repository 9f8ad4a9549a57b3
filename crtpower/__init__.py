"""CRTPower - Monte Carlo power for multi-arm cluster-randomised trials.

Simulation-based power analysis for parallel multi-arm trials with a
binary outcome, analysed by a random-intercept logistic model (GLMM) or
by generalized estimating equations (GEE).

Example:
    >>> from crtpower import MultiArmBinaryPower
    >>>
    >>> model = MultiArmBinaryPower(narms=3, nclusters=10, nsubjects=40,
    ...                             probs=[0.30, 0.40, 0.50], sigma_b_sq=0.1)
    >>> result = model.set_seed(2137).find_power(nsim=200)
    >>> result["power"]
"""

from importlib.metadata import version as _get_version

from .core import InsufficientConvergenceError
from .model import MultiArmBinaryPower, cps_ma_binary
from .progress import PrintReporter, ProgressReporter, SimulationCancelled, SimulationStopped, TqdmReporter

__version__ = _get_version("CRTPower")

__all__ = [
    "MultiArmBinaryPower",
    "cps_ma_binary",
    "InsufficientConvergenceError",
    "SimulationCancelled",
    "SimulationStopped",
    "ProgressReporter",
    "PrintReporter",
    "TqdmReporter",
]
