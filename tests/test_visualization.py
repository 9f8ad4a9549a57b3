"""
Tests for visualization utilities (matplotlib mocked).
"""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from crtpower.core.results import analyze_batch
from crtpower.utils.visualization import _create_arm_power_plot
from tests.helpers.batches import scenario_batch


def _setup_mock_plt():
    mock_plt = MagicMock()
    mock_fig = MagicMock()
    mock_ax = MagicMock()
    mock_plt.subplots.return_value = (mock_fig, mock_ax)
    mock_plt.get_cmap.return_value = MagicMock(return_value=np.zeros((10, 4)))
    return mock_plt, mock_fig, mock_ax


def _mocked_modules(mock_plt):
    mock_mpl = MagicMock()
    mock_mpl.pyplot = mock_plt
    return {"matplotlib": mock_mpl, "matplotlib.pyplot": mock_plt}


@pytest.fixture
def result(three_arm_design):
    return analyze_batch(scenario_batch(nsim=40, n_converged=40, n_rejecting=30), three_arm_design)


class TestArmPowerPlot:
    def test_one_bar_per_treatment_arm(self, result):
        mock_plt, mock_fig, mock_ax = _setup_mock_plt()
        with patch.dict(sys.modules, _mocked_modules(mock_plt)):
            fig = _create_arm_power_plot(result, show=False)

        assert fig is mock_fig
        names, heights = mock_ax.bar.call_args.args[:2]
        assert names == ["Arm.2", "Arm.3"]
        assert len(heights) == 2
        mock_plt.show.assert_not_called()

    def test_error_bars_are_non_negative(self, result):
        mock_plt, _, mock_ax = _setup_mock_plt()
        with patch.dict(sys.modules, _mocked_modules(mock_plt)):
            _create_arm_power_plot(result, show=False)

        yerr = mock_ax.bar.call_args.kwargs["yerr"]
        assert yerr.shape == (2, 2)
        assert np.all(yerr >= 0)

    def test_target_and_omnibus_lines(self, result):
        mock_plt, _, mock_ax = _setup_mock_plt()
        with patch.dict(sys.modules, _mocked_modules(mock_plt)):
            _create_arm_power_plot(result, target_power=0.9, show=False)

        levels = [c.kwargs["y"] for c in mock_ax.axhline.call_args_list]
        assert 0.9 in levels
        assert pytest.approx(0.75) in levels

    def test_show_called_by_default(self, result):
        mock_plt, _, _ = _setup_mock_plt()
        with patch.dict(sys.modules, _mocked_modules(mock_plt)):
            _create_arm_power_plot(result)
        mock_plt.show.assert_called_once()

    def test_missing_matplotlib(self, result):
        with patch.dict(sys.modules, {"matplotlib": None, "matplotlib.pyplot": None}):
            with pytest.raises(ImportError, match="crtpower\\[plot\\]"):
                _create_arm_power_plot(result, show=False)
