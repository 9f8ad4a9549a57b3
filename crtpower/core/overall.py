"""
Overall (omnibus) significance for CRTPower.

Collects each simulation's omnibus test row into a table and derives the
per-simulation rejection indicator used for the power estimate. Only
converged simulations contribute an indicator.
"""

import numpy as np
import pandas as pd

from .convergence import ConvergenceSplit
from .fits import SimulationBatch, fit_type_for


def build_overall_table(batch: SimulationBatch, split: ConvergenceSplit) -> pd.DataFrame:
    """Omnibus test rows for every simulation, with a ``converge`` column.

    Column names depend on the method: ``Df``/``Chisq``/``P(>Chisq)`` for
    the likelihood-ratio test of mixed-effects fits and
    ``Df``/``X2``/``P(>|Chi|)`` for the Wald test of estimating-equations
    fits. Rows are indexed by 1-based simulation number.
    """
    columns = fit_type_for(batch.method).overall_columns
    rows = [(f.overall.df, f.overall.statistic, f.overall.p_value) for f in batch.fits]
    table = pd.DataFrame(rows, columns=list(columns), index=pd.RangeIndex(1, batch.nsim + 1), dtype=float)
    return split.diagnostic(table)


def converged_overall_table(overall_table: pd.DataFrame) -> pd.DataFrame:
    """Restrict the omnibus table to converged simulations."""
    return overall_table[overall_table["converge"].astype(bool)]


def omnibus_indicators(overall_table: pd.DataFrame, method: str, alpha: float) -> np.ndarray:
    """Rejection indicator (1/0) for each converged simulation.

    Non-converged simulations are excluded entirely, so the result has one
    entry per converged simulation.
    """
    converged = converged_overall_table(overall_table)
    p_values = converged[fit_type_for(method).overall_p_column].to_numpy(dtype=float)
    return (p_values < alpha).astype(int)
