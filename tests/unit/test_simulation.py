"""Unit tests for crtpower.core.simulation.SimulationRunner.

Model fitting is replaced by canned fits so the runner's bookkeeping,
seeding and early-stopping rules are tested without any optimisation.
"""

import itertools

import numpy as np
import pytest

from crtpower.core.fits import GEE, GLMM
from crtpower.progress import ProgressReporter, SimulationCancelled, SimulationStopped
from tests.helpers.batches import gee_fit, glmm_fit


@pytest.fixture
def canned_fits(monkeypatch):
    """Replace model fitting with a queue of pre-built fits."""
    from crtpower.core import simulation

    queue = []

    def fake_fit(data, design, method, optimizer):
        return queue.pop(0)

    monkeypatch.setattr(simulation, "_fit_dataset", fake_fit)
    return queue


class TestRun:
    def test_one_fit_per_simulation(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01)] * 5)
        batch = SimulationRunner(5, method=GLMM, seed=1).run(three_arm_design)
        assert batch.nsim == 5
        assert batch.method == GLMM
        assert batch.sim_data is None

    def test_keep_data(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([gee_fit([0.01, 0.02], 0.01)] * 3)
        batch = SimulationRunner(3, method=GEE, seed=1).run(three_arm_design, keep_data=True)
        assert len(batch.sim_data) == 3
        assert list(batch.sim_data[0].columns) == ["y", "arm", "cluster"]

    def test_seed_offsets(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner
        from crtpower.stats.data_generation import simulate_dataset

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01)] * 3)
        batch = SimulationRunner(3, seed=100).run(three_arm_design, keep_data=True)
        expected = simulate_dataset(three_arm_design, seed=108)
        np.testing.assert_array_equal(batch.sim_data[2]["y"], expected["y"])

    def test_raising_fit_recorded_as_non_converged(self, three_arm_design, monkeypatch):
        from crtpower.core import simulation

        def broken_fit(data, design, method, optimizer):
            raise np.linalg.LinAlgError("Singular matrix")

        monkeypatch.setattr(simulation, "_fit_dataset", broken_fit)
        with pytest.warns(UserWarning, match="2 model fits raised an error"):
            batch = simulation.SimulationRunner(2, seed=1).run(three_arm_design)
        assert batch.n_failed_fits == 2
        assert not batch.converged.any()
        assert "LinAlgError" in batch.fits[0].message

    def test_progress_advanced(self, three_arm_design, canned_fits):
        from unittest.mock import MagicMock

        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01)] * 4)
        cb = MagicMock()
        reporter = ProgressReporter(4, cb, update_every=1)
        SimulationRunner(4, seed=1).run(three_arm_design, progress=reporter)
        cb.assert_called_with(4, 4)

    def test_cancel(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01)] * 4)
        with pytest.raises(SimulationCancelled):
            SimulationRunner(4, seed=1).run(three_arm_design, cancel_check=lambda: True)


class TestEarlyStopping:
    def test_poor_fit_stops(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01, converged=False)] * 60)
        with pytest.raises(SimulationStopped) as exc:
            SimulationRunner(60, seed=1).run(three_arm_design)
        assert exc.value.reason == "poor_fit"
        assert exc.value.completed == 50

    def test_poor_fit_override(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01, converged=False)] * 60)
        batch = SimulationRunner(60, seed=1, poor_fit_override=True).run(three_arm_design)
        assert batch.nsim == 60

    def test_low_power_stops(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.5, 0.5], 0.5)] * 60)
        with pytest.raises(SimulationStopped) as exc:
            SimulationRunner(60, seed=1).run(three_arm_design)
        assert exc.value.reason == "low_power"

    def test_low_power_override(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.5, 0.5], 0.5)] * 60)
        batch = SimulationRunner(60, seed=1, low_power_override=True).run(three_arm_design)
        assert batch.nsim == 60

    def test_no_check_before_fifty(self, three_arm_design, canned_fits):
        from crtpower.core.simulation import SimulationRunner

        canned_fits.extend([glmm_fit([0.5, 0.5], 0.5, converged=False)] * 49)
        batch = SimulationRunner(49, seed=1).run(three_arm_design)
        assert batch.nsim == 49

    def test_time_limit(self, three_arm_design, canned_fits, monkeypatch):
        from crtpower.core import simulation

        canned_fits.extend([glmm_fit([0.01, 0.02], 0.01)] * 3)
        ticks = itertools.count(0.0, 10.0)
        monkeypatch.setattr(simulation.time, "perf_counter", lambda: next(ticks))

        runner = simulation.SimulationRunner(1000, seed=1, time_limit_override=False)
        with pytest.raises(SimulationStopped) as exc:
            runner.run(three_arm_design)
        assert exc.value.reason == "time_limit"
