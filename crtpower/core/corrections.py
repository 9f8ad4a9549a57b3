"""
Multiple-comparison correction for CRTPower.

P values are adjusted within each simulation (across that simulation's
coefficient rows), never across simulations. Method names follow the
familiar ``p.adjust`` vocabulary and are mapped onto
``statsmodels.stats.multitest.multipletests``.
"""

from typing import Optional

import numpy as np
from statsmodels.stats.multitest import multipletests

# p.adjust name -> multipletests name (None = pass-through)
_METHOD_MAP = {
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "hommel": "hommel",
    "bonferroni": "bonferroni",
    "bh": "fdr_bh",
    "by": "fdr_by",
    "fdr": "fdr_bh",
    "none": None,
}

CORRECTION_METHODS = ("holm", "hochberg", "hommel", "bonferroni", "BH", "BY", "fdr", "none")


def normalize_correction_method(method: Optional[str]) -> str:
    """Return the canonical (lower-case) correction name.

    ``None`` is treated as ``"none"``.

    Raises:
        ValueError: For an unknown method name.
    """
    if method is None:
        return "none"
    key = str(method).strip().lower().replace("-", "_")
    if key == "benjamini_hochberg":
        key = "bh"
    elif key == "benjamini_yekutieli":
        key = "by"
    if key not in _METHOD_MAP:
        raise ValueError(f"Unknown correction method: {method}. Valid options: {', '.join(CORRECTION_METHODS)}")
    return key


def adjust_row(p_values, method: Optional[str]) -> np.ndarray:
    """Adjust the p values of one simulation.

    Missing (NaN) p values are left as NaN and do not count towards the
    number of comparisons.
    """
    key = normalize_correction_method(method)
    p = np.asarray(p_values, dtype=float)
    adjusted = p.copy()
    sm_method = _METHOD_MAP[key]
    if sm_method is None:
        return adjusted

    finite = np.isfinite(p)
    if finite.sum() == 0:
        return adjusted
    _, pvals_corrected, _, _ = multipletests(p[finite], method=sm_method)
    adjusted[finite] = np.minimum(pvals_corrected, 1.0)
    return adjusted


def adjust_pvalues(p_matrix, method: Optional[str]) -> np.ndarray:
    """Adjust a ``(nsim, narms)`` matrix row by row.

    Args:
        p_matrix: Raw p values, one row per simulation.
        method: One of ``holm``, ``hochberg``, ``hommel``, ``bonferroni``,
            ``BH``, ``BY``, ``fdr`` or ``none``.

    Returns:
        Matrix of the same shape with adjusted p values. ``"none"``
        returns an unchanged copy.
    """
    p = np.atleast_2d(np.asarray(p_matrix, dtype=float))
    key = normalize_correction_method(method)
    if key == "none":
        return p.copy()
    return np.vstack([adjust_row(row, key) for row in p]) if p.shape[0] else p.copy()
