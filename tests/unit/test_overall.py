"""Unit tests for crtpower.core.overall."""

import numpy as np

from crtpower.core.convergence import split_by_convergence
from crtpower.core.fits import GEE, GLMM, SimulationBatch
from crtpower.core.overall import build_overall_table, converged_overall_table, omnibus_indicators
from tests.helpers.batches import gee_fit, glmm_fit


class TestOverallTable:
    def test_glmm_columns_and_index(self):
        fits = [glmm_fit([0.1, 0.1], 0.01), glmm_fit([0.1, 0.1], 0.2, converged=False)]
        batch = SimulationBatch.from_fits(GLMM, fits)
        table = build_overall_table(batch, split_by_convergence(batch.converged))
        assert list(table.columns) == ["Df", "Chisq", "P(>Chisq)", "converge"]
        assert list(table.index) == [1, 2]
        assert len(converged_overall_table(table)) == 1

    def test_indicators_skip_non_converged(self):
        fits = [
            gee_fit([0.1, 0.1], 0.01),
            gee_fit([0.1, 0.1], 0.001, converged=False),
            gee_fit([0.1, 0.1], 0.3),
        ]
        batch = SimulationBatch.from_fits(GEE, fits)
        table = build_overall_table(batch, split_by_convergence(batch.converged))
        np.testing.assert_array_equal(omnibus_indicators(table, GEE, 0.05), [1, 0])
