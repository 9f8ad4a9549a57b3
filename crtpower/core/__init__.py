"""Core components for the CRTPower framework.

Re-exports the building blocks of a power analysis:

- ``TrialDesign``, ``normalize_design`` for design input.
- ``SimulationBatch`` and the fit result types.
- ``SimulationRunner`` for Monte Carlo execution.
- ``ResultsProcessor``, ``build_power_result``, ``analyze_batch`` for power
  calculation and the result dictionary.
"""

from .convergence import InsufficientConvergenceError
from .design import TrialDesign, normalize_design
from .fits import (
    GEE,
    GLMM,
    EstimatingEquationsFit,
    EstimatingEquationsRow,
    MixedEffectsFit,
    MixedEffectsRow,
    OverallTest,
    SimulationBatch,
)
from .results import PowerEstimate, ResultsProcessor, analyze_batch, build_power_result
from .simulation import SimulationRunner

__all__ = [
    # Design
    "TrialDesign",
    "normalize_design",
    # Fits
    "GLMM",
    "GEE",
    "MixedEffectsFit",
    "MixedEffectsRow",
    "EstimatingEquationsFit",
    "EstimatingEquationsRow",
    "OverallTest",
    "SimulationBatch",
    # Simulation
    "SimulationRunner",
    # Results
    "InsufficientConvergenceError",
    "PowerEstimate",
    "ResultsProcessor",
    "build_power_result",
    "analyze_batch",
]
