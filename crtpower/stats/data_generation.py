"""
Clustered binary outcome generation for CRTPower.

Each cluster receives a random intercept on the logit scale; subjects within
the cluster are Bernoulli draws around ``expit(logit(p_arm) + b_cluster)``.
"""

from typing import List, Optional

import numpy as np
import pandas as pd
from scipy.special import expit, logit

from ..core.design import TrialDesign

T3_DF = 3


def _generate_cluster_intercepts(
    n_clusters: int,
    sigma_b_sq: float,
    tdist: bool,
    rng: np.random.RandomState,
) -> np.ndarray:
    """Random intercepts with variance *sigma_b_sq*.

    With *tdist* the draws are Student-t (3 df) rescaled so the variance
    still equals *sigma_b_sq*.
    """
    tau = np.sqrt(sigma_b_sq)
    if tau == 0:
        return np.zeros(n_clusters)
    if tdist:
        # t(3) has variance 3
        scale = tau / np.sqrt(T3_DF / (T3_DF - 2))
        return rng.standard_t(T3_DF, size=n_clusters) * scale
    return rng.normal(0.0, tau, size=n_clusters)


def cluster_layout(design: TrialDesign):
    """Arm and cluster id for every subject, plus the cluster-to-arm map.

    Returns:
        ``(arm, cluster, cluster_arm)``; ids are 1-based and cluster ids are
        unique across arms.
    """
    arms: List[np.ndarray] = []
    clusters: List[np.ndarray] = []
    cluster_arm: List[int] = []
    next_id = 1
    for j, sizes in enumerate(design.nsubjects):
        for size in sizes:
            arms.append(np.full(size, j + 1, dtype=np.int64))
            clusters.append(np.full(size, next_id, dtype=np.int64))
            cluster_arm.append(j + 1)
            next_id += 1
    return np.concatenate(arms), np.concatenate(clusters), np.asarray(cluster_arm, dtype=np.int64)


def simulate_outcomes(design: TrialDesign, tdist: bool = False, seed: Optional[int] = None) -> np.ndarray:
    """One simulated 0/1 outcome vector in ``cluster_layout`` order."""
    rng = np.random.RandomState(seed)
    outcomes = []
    for j, sizes in enumerate(design.nsubjects):
        intercepts = _generate_cluster_intercepts(len(sizes), design.sigma_b_sq[j], tdist, rng)
        base = logit(design.probs[j])
        for size, b in zip(sizes, intercepts):
            outcomes.append(rng.binomial(1, expit(base + b), size=size))
    return np.concatenate(outcomes).astype(np.int64)


def simulate_dataset(design: TrialDesign, tdist: bool = False, seed: Optional[int] = None) -> pd.DataFrame:
    """One simulated trial as a long DataFrame with ``y``, ``arm``, ``cluster``."""
    arm, cluster, _ = cluster_layout(design)
    y = simulate_outcomes(design, tdist=tdist, seed=seed)
    return pd.DataFrame({"y": y, "arm": arm, "cluster": cluster})


def simulate_wide_table(
    design: TrialDesign,
    nsim: int,
    tdist: bool = False,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Raw data only: ``arm``, ``cluster`` and one ``y<i>`` column per simulation.

    Simulation *i* uses the same per-simulation seed as a fitted run, so the
    columns match the datasets a full run would analyse.
    """
    arm, cluster, _ = cluster_layout(design)
    data = {"arm": arm, "cluster": cluster}
    for sim_id in range(nsim):
        sim_seed = seed + 4 * sim_id if seed is not None else None
        data[f"y{sim_id + 1}"] = simulate_outcomes(design, tdist=tdist, seed=sim_seed)
    return pd.DataFrame(data)
