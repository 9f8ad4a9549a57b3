"""Unit tests for crtpower.utils.validators."""

import pytest

from crtpower.utils.validators import (
    _validate_alpha,
    _validate_correction_method,
    _validate_method,
    _validate_parallel_settings,
    _validate_seed,
    _validate_simulations,
    _ValidationResult,
)


class TestValidationResult:
    def test_raise_if_invalid_lists_errors(self):
        result = _ValidationResult(False, ["first", "second"], [])
        with pytest.raises(ValueError, match="Validation failed:\n• first\n• second"):
            result.raise_if_invalid()

    def test_valid_does_not_raise(self):
        _ValidationResult(True, [], ["just a warning"]).raise_if_invalid()

    def test_merge(self):
        merged = _ValidationResult(True, [], ["w"]).merge(_ValidationResult(False, ["e"], []))
        assert not merged.is_valid
        assert merged.errors == ["e"]
        assert merged.warnings == ["w"]


class TestValidateAlpha:
    @pytest.mark.parametrize("alpha", [0.001, 0.05, 0.5, 0.99])
    def test_valid(self, alpha):
        assert _validate_alpha(alpha).is_valid

    @pytest.mark.parametrize("alpha", [0, 1, -0.1, 1.5])
    def test_out_of_range(self, alpha):
        assert not _validate_alpha(alpha).is_valid

    def test_wrong_type(self):
        result = _validate_alpha("0.05")
        assert not result.is_valid
        assert "must be Real" in result.errors[0]


class TestValidateSimulations:
    def test_valid(self):
        n, result = _validate_simulations(1000)
        assert n == 1000 and result.is_valid and result.warnings == []

    def test_low_count_warns(self):
        n, result = _validate_simulations(50)
        assert result.is_valid
        assert "Low simulation count" in result.warnings[0]

    @pytest.mark.parametrize("nsim", [0, -5, 10.5, "100", None])
    def test_invalid(self, nsim):
        _, result = _validate_simulations(nsim)
        assert not result.is_valid


class TestValidateMethod:
    @pytest.mark.parametrize("method", ["glmm", "gee", "GEE"])
    def test_valid(self, method):
        assert _validate_method(method).is_valid

    def test_invalid(self):
        assert not _validate_method("ols").is_valid


class TestValidateCorrectionMethod:
    def test_valid(self):
        assert _validate_correction_method("holm").is_valid
        assert _validate_correction_method(None).is_valid

    def test_invalid(self):
        result = _validate_correction_method("sidak")
        assert not result.is_valid
        assert "Unknown correction method" in result.errors[0]


class TestValidateParallelSettings:
    def test_sequential(self):
        assert _validate_parallel_settings(None)[0] == 1

    def test_all(self):
        import multiprocessing as mp

        assert _validate_parallel_settings("all")[0] == mp.cpu_count()

    def test_too_many_capped(self):
        import multiprocessing as mp

        n, result = _validate_parallel_settings(mp.cpu_count() + 10)
        assert n == mp.cpu_count()
        assert result.warnings

    @pytest.mark.parametrize("cores", [0, -1, "some", 2.5])
    def test_invalid(self, cores):
        assert not _validate_parallel_settings(cores)[1].is_valid


class TestValidateSeed:
    def test_none_and_int(self):
        assert _validate_seed(None).is_valid
        assert _validate_seed(42).is_valid

    @pytest.mark.parametrize("seed", [-1, 3_000_000_001, 1.5, True])
    def test_invalid(self, seed):
        assert not _validate_seed(seed).is_valid
