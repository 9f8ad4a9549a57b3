"""
Convergence filtering for CRTPower.

Splits a batch into a diagnostic view (every simulation, flag attached)
and an inferential view (converged simulations only, in simulation order).
Power and confidence intervals are computed from the inferential view.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

LOW_CONVERGENCE_SHARE = 0.25


class InsufficientConvergenceError(RuntimeError):
    """Raised when no converged simulation is available for inference."""

    pass


@dataclass(frozen=True)
class ConvergenceSplit:
    """Two views over the same simulations.

    Attributes:
        flags: Convergence flag per simulation (length ``nsim``).
        converged_index: Positions of converged simulations, ascending.
    """

    flags: np.ndarray
    converged_index: np.ndarray

    @property
    def nsim(self) -> int:
        return int(self.flags.shape[0])

    @property
    def n_converged(self) -> int:
        return int(self.converged_index.shape[0])

    @property
    def n_failed(self) -> int:
        return self.nsim - self.n_converged

    def diagnostic(self, table: pd.DataFrame) -> pd.DataFrame:
        """Return *table* (one row per simulation) with a ``converge`` column."""
        if len(table) != self.nsim:
            raise ValueError(f"Table has {len(table)} rows, expected {self.nsim}")
        out = table.copy()
        out["converge"] = self.flags
        return out

    def inferential(self, values):
        """Select the converged rows of an array or DataFrame."""
        if isinstance(values, (pd.DataFrame, pd.Series)):
            return values.iloc[self.converged_index]
        return np.asarray(values)[self.converged_index]


def split_by_convergence(flags) -> ConvergenceSplit:
    """Build the diagnostic/inferential split from per-simulation flags."""
    flags = np.asarray(flags, dtype=bool).copy()
    flags.setflags(write=False)
    index = np.flatnonzero(flags)
    index.setflags(write=False)
    return ConvergenceSplit(flags=flags, converged_index=index)


def require_converged(n_converged: int, what: str = "confidence interval") -> None:
    """Fail fast when there is nothing to compute *what* from."""
    if n_converged <= 0:
        raise InsufficientConvergenceError(
            f"Insufficient converged simulations: cannot compute the {what} because no simulation converged. "
            "Check model parameters or increase the number of simulations."
        )


def low_convergence_message(n_converged: int, nsim: int) -> Optional[str]:
    """Advisory text when fewer than 25% of simulations converged, else ``None``."""
    if n_converged < LOW_CONVERGENCE_SHARE * nsim:
        return f"{n_converged} models converged. Check model parameters."
    return None
