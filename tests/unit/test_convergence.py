"""Unit tests for crtpower.core.convergence."""

import numpy as np
import pandas as pd
import pytest

from crtpower.core.convergence import (
    InsufficientConvergenceError,
    low_convergence_message,
    require_converged,
    split_by_convergence,
)


class TestConvergenceSplit:
    def test_counts(self):
        split = split_by_convergence([True, False, True, True])
        assert split.nsim == 4
        assert split.n_converged == 3
        assert split.n_failed == 1
        np.testing.assert_array_equal(split.converged_index, [0, 2, 3])

    def test_diagnostic_keeps_all_rows(self):
        split = split_by_convergence([True, False])
        table = split.diagnostic(pd.DataFrame({"a": [1.0, 2.0]}))
        assert list(table["converge"]) == [True, False]
        assert len(table) == 2

    def test_diagnostic_row_mismatch(self):
        split = split_by_convergence([True, False])
        with pytest.raises(ValueError, match="expected 2"):
            split.diagnostic(pd.DataFrame({"a": [1.0]}))

    def test_inferential_preserves_order(self):
        split = split_by_convergence([False, True, False, True])
        np.testing.assert_array_equal(split.inferential(np.array([10, 20, 30, 40])), [20, 40])


class TestRequireConverged:
    def test_zero_raises(self):
        with pytest.raises(InsufficientConvergenceError, match="no simulation converged"):
            require_converged(0)

    def test_is_runtime_error(self):
        assert issubclass(InsufficientConvergenceError, RuntimeError)

    def test_positive_passes(self):
        require_converged(1)


class TestLowConvergenceMessage:
    def test_below_quarter(self):
        assert low_convergence_message(20, 100) == "20 models converged. Check model parameters."

    def test_at_quarter_is_fine(self):
        assert low_convergence_message(25, 100) is None
