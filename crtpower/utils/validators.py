"""
Validation utilities for CRTPower.

This module provides validation functions for trial-design inputs and
analysis settings. Each validator returns a ``_ValidationResult`` that
collects every problem before ``raise_if_invalid`` reports them together.
"""

import numbers
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple, Union

import numpy as np

__all__ = []


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``ValueError`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise ValueError(error_msg)

    def merge(self, other: "_ValidationResult") -> "_ValidationResult":
        """Combine two results into one."""
        errors = self.errors + other.errors
        return _ValidationResult(len(errors) == 0, errors, self.warnings + other.warnings)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
        inclusive: bool = True,
    ) -> Optional[str]:
        """Check if value is within range."""
        if inclusive:
            if min_val is not None and value < min_val:
                return f"{name} must be >= {min_val}, got {value}"
            if max_val is not None and value > max_val:
                return f"{name} must be <= {max_val}, got {value}"
        else:
            if min_val is not None and value <= min_val:
                return f"{name} must be > {min_val}, got {value}"
            if max_val is not None and value >= max_val:
                return f"{name} must be < {max_val}, got {value}"
        return None


_validator = _Validator()


def _is_whole_number(value: Any) -> bool:
    """``True`` for ints and for floats with no fractional part."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return float(value).is_integer()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (numbers.Real,),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    inclusive: bool = True,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, [])

    range_error = _validator._check_range(value, min_val, max_val, name, inclusive=inclusive)
    if range_error:
        errors.append(range_error)

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_alpha(alpha: Any) -> _ValidationResult:
    """Validate alpha level parameter, strictly between 0 and 1."""
    return _validate_numeric_parameter(alpha, "alpha", min_val=0, max_val=1, inclusive=False)


def _validate_simulations(nsim: Any) -> Tuple[int, _ValidationResult]:
    """Validate the number of simulations (a positive whole number)."""
    if not _is_whole_number(nsim) or nsim < 1:
        return 0, _ValidationResult(False, [f"nsim must be a positive integer, got {nsim!r}"], [])

    nsim = int(nsim)
    warnings = []
    if nsim < 100:
        warnings.append(f"Low simulation count ({nsim}). Consider using at least 1000 for reliable results.")
    return nsim, _ValidationResult(True, [], warnings)


def _validate_narms(narms: Any) -> _ValidationResult:
    """Validate the number of arms (required, whole number, at least 3)."""
    if narms is None:
        return _ValidationResult(False, ["narms is required."], [])
    if not _is_whole_number(narms):
        return _ValidationResult(False, [f"narms must be a whole number, got {narms!r}"], [])
    if narms < 3:
        return _ValidationResult(
            False,
            [f"LRT significance not calculable when narms < 3 (got {int(narms)}). Use a two-arm design instead."],
            [],
        )
    return _ValidationResult(True, [], [])


def _validate_positive_integers(values, name: str) -> _ValidationResult:
    """Every entry of *values* must be a whole number >= 1."""
    flat = np.asarray(values, dtype=object).ravel().tolist()
    bad = [v for v in flat if not _is_whole_number(v) or v < 1]
    if bad:
        return _ValidationResult(False, [f"{name} must be positive integer values, got {bad[:5]}"], [])
    return _ValidationResult(True, [], [])


def _validate_probabilities(probs) -> _ValidationResult:
    """Outcome probabilities must lie strictly between 0 and 1."""
    values = np.asarray(probs, dtype=float)
    if np.any(~np.isfinite(values)) or np.any(values <= 0) or np.any(values >= 1):
        return _ValidationResult(False, [f"probs must be strictly between 0 and 1, got {values.tolist()}"], [])
    return _ValidationResult(True, [], [])


def _validate_variances(sigma_b_sq) -> _ValidationResult:
    """Between-cluster variances must be finite and non-negative."""
    values = np.asarray(sigma_b_sq, dtype=float)
    if np.any(~np.isfinite(values)) or np.any(values < 0):
        return _ValidationResult(False, [f"sigma_b_sq must be non-negative, got {values.tolist()}"], [])
    return _ValidationResult(True, [], [])


def _validate_method(method: Any) -> _ValidationResult:
    """Validate the analysis method name."""
    valid = ("glmm", "gee")
    if not isinstance(method, str) or method.lower() not in valid:
        return _ValidationResult(False, [f"method must be one of {', '.join(valid)}, got {method!r}"], [])
    return _ValidationResult(True, [], [])


def _validate_correction_method(correction: Optional[str]) -> _ValidationResult:
    """Validate multiple-comparison correction method name."""
    from ..core.corrections import normalize_correction_method

    try:
        normalize_correction_method(correction)
    except ValueError as e:
        return _ValidationResult(False, [str(e)], [])
    return _ValidationResult(True, [], [])


def _validate_parallel_settings(cores: Any) -> Tuple[int, _ValidationResult]:
    """Validate the ``cores`` setting.

    Args:
        cores: ``None``/``False``/``1`` for sequential, ``"all"`` for every
            core, or a positive integer.

    Returns:
        (n_cores, ValidationResult)
    """
    import multiprocessing as mp

    max_cores = mp.cpu_count() or 1

    if cores is None or cores is False:
        return 1, _ValidationResult(True, [], [])
    if isinstance(cores, str):
        if cores.lower() == "all":
            return max_cores, _ValidationResult(True, [], [])
        return 1, _ValidationResult(False, [f"cores must be 'all', None or a positive integer, got {cores!r}"], [])
    if not _is_whole_number(cores) or cores < 1:
        return 1, _ValidationResult(False, [f"cores must be 'all', None or a positive integer, got {cores!r}"], [])

    warnings = []
    n_cores = int(cores)
    if n_cores > max_cores:
        warnings.append(f"Requested {n_cores} cores but only {max_cores} available; using {max_cores}.")
        n_cores = max_cores
    return n_cores, _ValidationResult(True, [], warnings)


def _validate_seed(seed: Any) -> _ValidationResult:
    """Seed must be ``None`` or a non-negative integer below 3e9."""
    if seed is None:
        return _ValidationResult(True, [], [])
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        return _ValidationResult(False, ["seed must be an integer or None"], [])
    if seed < 0:
        return _ValidationResult(False, ["seed must be non-negative"], [])
    if seed > 3000000000:
        return _ValidationResult(False, ["seed must be lower than 3,000,000,000"], [])
    return _ValidationResult(True, [], [])
