"""
Trial design normalisation for CRTPower.

Accepts the flexible shorthand users type (scalar cluster sizes, one size
per arm, or one size per cluster; scalar or per-arm probabilities and
variances) and produces a fully expanded, immutable ``TrialDesign``.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ..utils.validators import (
    _validate_narms,
    _validate_positive_integers,
    _validate_probabilities,
    _validate_variances,
    _ValidationResult,
)
from .fits import arm_label

Number = Union[int, float]


@dataclass(frozen=True)
class TrialDesign:
    """Fully expanded multi-arm cluster-randomised design.

    Attributes:
        narms: Number of arms (at least 3).
        nclusters: Clusters per arm.
        nsubjects: Per arm, the number of subjects in each cluster.
        probs: Outcome probability per arm.
        sigma_b_sq: Between-cluster variance (logit scale) per arm.
    """

    narms: int
    nclusters: Tuple[int, ...]
    nsubjects: Tuple[Tuple[int, ...], ...]
    probs: Tuple[float, ...]
    sigma_b_sq: Tuple[float, ...]

    @property
    def arm_names(self) -> Tuple[str, ...]:
        return tuple(arm_label(arm) for arm in range(1, self.narms + 1))

    @property
    def total_clusters(self) -> int:
        return int(sum(self.nclusters))

    @property
    def total_subjects(self) -> int:
        return int(sum(sum(sizes) for sizes in self.nsubjects))


def _is_sequence(value) -> bool:
    return isinstance(value, (list, tuple, np.ndarray))


def _broadcast(value, narms: int, name: str, result: _ValidationResult) -> Tuple[float, ...]:
    """Expand a scalar to one value per arm; check the length otherwise."""
    if value is None:
        result.errors.append(f"{name} is required.")
        return ()
    values = np.atleast_1d(np.asarray(value, dtype=float))
    if values.size == 1:
        return tuple(float(values[0]) for _ in range(narms))
    if values.size != narms:
        result.errors.append(
            f"Length of {name} must equal narms ({narms}), or be provided as a scalar if {name} for all arms are equal."
        )
        return ()
    return tuple(float(v) for v in values)


def normalize_design(
    narms: Optional[int] = None,
    nclusters: Optional[Union[int, Sequence[int]]] = None,
    nsubjects: Optional[Union[int, Sequence[int], Sequence[Sequence[int]]]] = None,
    probs: Optional[Union[Number, Sequence[Number]]] = None,
    sigma_b_sq: Optional[Union[Number, Sequence[Number]]] = None,
) -> TrialDesign:
    """Validate and expand user input into a ``TrialDesign``.

    Args:
        narms: Number of arms. Required unless *nclusters* is a vector and
            *nsubjects* a scalar, in which case it is ``len(nclusters)``.
        nclusters: Clusters per arm, scalar or one per arm. May be omitted
            when *nsubjects* lists per-cluster sizes for every arm.
        nsubjects: Subjects per cluster: a scalar (same everywhere), one
            value per arm, or one sequence of cluster sizes per arm.
        probs: Outcome probability, scalar or one per arm.
        sigma_b_sq: Between-cluster variance, scalar or one per arm.

    Returns:
        Immutable ``TrialDesign``.

    Raises:
        ValueError: Listing every problem found.
    """
    result = _ValidationResult(True, [], [])

    if nsubjects is None:
        raise ValueError("Validation failed:\n• nsubjects must be specified.")

    nested = _is_sequence(nsubjects) and any(_is_sequence(arm) for arm in nsubjects)

    # nclusters from the per-cluster lists
    if nested and nclusters is None:
        nclusters = [len(arm) for arm in nsubjects]  # type: ignore[union-attr]

    scalar_subjects = not _is_sequence(nsubjects)
    if scalar_subjects and nclusters is None:
        raise ValueError("Validation failed:\n• When nsubjects is scalar, nclusters (clusters per arm) must be supplied.")

    # a vector of nclusters with a scalar nsubjects defines the arms
    if scalar_subjects and _is_sequence(nclusters) and len(nclusters) > 1:  # type: ignore[arg-type]
        narms = len(nclusters)  # type: ignore[arg-type]
    elif narms is None and nested:
        narms = len(nsubjects)  # type: ignore[arg-type]

    arms_check = _validate_narms(narms)
    arms_check.raise_if_invalid()
    narms = int(narms)  # type: ignore[arg-type]

    cluster_values = np.atleast_1d(np.asarray(nclusters, dtype=object))
    clusters_check = _validate_positive_integers(cluster_values, "nclusters")
    result = result.merge(clusters_check)
    if clusters_check.is_valid:
        if cluster_values.size == 1:
            cluster_counts = tuple(int(cluster_values[0]) for _ in range(narms))
        elif cluster_values.size == narms:
            cluster_counts = tuple(int(v) for v in cluster_values)
        else:
            result.errors.append(f"nclusters must be length 1 or length narms ({narms}), got {cluster_values.size}")
            cluster_counts = ()
    else:
        cluster_counts = ()

    structure: Tuple[Tuple[int, ...], ...] = ()
    if nested:
        arms = list(nsubjects)  # type: ignore[arg-type]
        subjects_check = _validate_positive_integers([v for arm in arms for v in np.atleast_1d(arm)], "nsubjects")
        result = result.merge(subjects_check)
        if len(arms) != narms:
            result.errors.append(f"nsubjects must provide one entry per arm ({narms}), got {len(arms)}")
        elif subjects_check.is_valid:
            structure = tuple(tuple(int(v) for v in np.atleast_1d(arm)) for arm in arms)
            if cluster_counts and tuple(len(s) for s in structure) != cluster_counts:
                result.errors.append("nclusters does not match the number of cluster sizes given per arm in nsubjects")
    else:
        sizes = np.atleast_1d(np.asarray(nsubjects, dtype=object))
        subjects_check = _validate_positive_integers(sizes, "nsubjects")
        result = result.merge(subjects_check)
        if subjects_check.is_valid and cluster_counts:
            if sizes.size == 1:
                structure = tuple(tuple(int(sizes[0]) for _ in range(k)) for k in cluster_counts)
            elif sizes.size == narms:
                structure = tuple(tuple(int(sizes[i]) for _ in range(k)) for i, k in enumerate(cluster_counts))
            else:
                result.errors.append("nsubjects must be length 1 or length narms if not provided as a list of per-cluster sizes.")

    arm_probs = _broadcast(probs, narms, "probs", result)
    if arm_probs:
        result = result.merge(_validate_probabilities(arm_probs))
    arm_variances = _broadcast(sigma_b_sq, narms, "sigma_b_sq", result)
    if arm_variances:
        result = result.merge(_validate_variances(arm_variances))

    result.is_valid = len(result.errors) == 0
    result.raise_if_invalid()

    return TrialDesign(
        narms=narms,
        nclusters=tuple(len(s) for s in structure),
        nsubjects=structure,
        probs=arm_probs,
        sigma_b_sq=arm_variances,
    )
