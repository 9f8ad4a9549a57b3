"""
Shared test configuration constants.

All test files should import from this module to ensure consistency
across the test suite.
"""

SEED = 2137
"""Default random seed for reproducibility."""

DEFAULT_ALPHA = 0.05
"""Default significance level for hypothesis tests."""

# Simulation counts for fitted runs
N_SIMS_QUICK = 10
"""Quick smoke tests - structure and API contract only."""

N_SIMS_STANDARD = 40
"""Standard tests - enough converged fits for a stable power estimate."""

# Designs
NARMS = 3
"""Smallest design that supports the omnibus test."""

N_CLUSTERS = 8
"""Clusters per arm for fitted tests."""

N_SUBJECTS = 30
"""Subjects per cluster for fitted tests."""

PROBS_NULL = [0.3, 0.3, 0.3]
"""No arm effect - omnibus power should be near alpha."""

PROBS_STRONG = [0.2, 0.5, 0.8]
"""Very large arm differences - power should be near 1."""

SIGMA_B_SQ = 0.2
"""Between-cluster variance on the logit scale."""
