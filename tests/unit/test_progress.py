"""
Tests for progress reporting module.
"""

import io
import sys
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from crtpower.progress import (
    PrintReporter,
    ProgressReporter,
    SimulationCancelled,
    SimulationStopped,
    TqdmReporter,
    format_completion_message,
    format_runtime,
)


class TestExceptions:
    def test_cancelled_is_exception(self):
        assert issubclass(SimulationCancelled, Exception)

    def test_stopped_carries_reason(self):
        exc = SimulationStopped("too slow", reason="time_limit", completed=1)
        assert isinstance(exc, RuntimeError)
        assert str(exc) == "too slow"
        assert exc.reason == "time_limit"
        assert exc.completed == 1


class TestProgressReporter:
    """Test ProgressReporter throttled callback wrapper."""

    def test_start_fires_zero(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb)
        pr.start()
        cb.assert_called_with(0, 100)

    def test_advance_throttled(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb, update_every=10)
        pr.start()
        cb.reset_mock()

        pr.advance(5)
        assert cb.call_count == 0

        pr.advance(5)
        cb.assert_called_with(10, 100)
        assert pr.current == 10

    def test_finish_fires_final_update(self):
        cb = MagicMock()
        pr = ProgressReporter(100, cb)
        pr.start()
        pr.advance(50)
        cb.reset_mock()

        pr.finish()
        cb.assert_called_with(100, 100)

    def test_finish_no_double_fire(self):
        cb = MagicMock()
        pr = ProgressReporter(10, cb, update_every=1)
        pr.start()
        for _ in range(10):
            pr.advance(1)
        cb.reset_mock()

        pr.finish()
        assert cb.call_count == 0


class TestPrintReporter:
    def test_output_format(self):
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            PrintReporter()(50, 100)
        assert "50.0%" in buf.getvalue()
        assert "50/100" in buf.getvalue()

    def test_completion_newline(self):
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            PrintReporter()(100, 100)
        assert buf.getvalue().endswith("\n")


class TestTqdmReporter:
    def test_tqdm_missing_raises(self):
        reporter = TqdmReporter()
        with patch.dict("sys.modules", {"tqdm": None}):
            with pytest.raises(ImportError, match="tqdm"):
                reporter(0, 100)

    def test_tqdm_basic_flow(self):
        mock_bar = MagicMock()
        mock_bar.n = 0
        mock_tqdm_module = MagicMock()
        mock_tqdm_module.tqdm = MagicMock(return_value=mock_bar)

        reporter = TqdmReporter(desc="GLMM")
        with patch.dict("sys.modules", {"tqdm": mock_tqdm_module}):
            reporter(0, 100)
            mock_tqdm_module.tqdm.assert_called_once_with(total=100, unit="sim", desc="GLMM")
            reporter(40, 100)
            mock_bar.update.assert_called_with(40)
            mock_bar.n = 40
            reporter(100, 100)
            mock_bar.close.assert_called_once()


class TestRuntimeFormatting:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0Hr:0Min:0Sec"), (59.6, "0Hr:1Min:0Sec"), (3725, "1Hr:2Min:5Sec"), (7200, "2Hr:0Min:0Sec")],
    )
    def test_format_runtime(self, seconds, expected):
        assert format_runtime(seconds) == expected

    def test_completion_message(self):
        start = datetime(2024, 5, 1, 10, 0, 0)
        end = datetime(2024, 5, 1, 11, 1, 1)
        message = format_completion_message(start, end)
        assert message.startswith("Simulations Complete! Time Completed: 2024-05-01 11:01:01")
        assert message.endswith("Total Runtime: 1Hr:1Min:1Sec")
