"""
Shared pytest fixtures for CRTPower tests.
"""

import numpy as np
import pytest

from tests.config import N_CLUSTERS, N_SUBJECTS, NARMS, SIGMA_B_SQ

# Set random seed for reproducible tests
np.random.seed(42)


def pytest_configure(config):
    config.addinivalue_line("markers", "lme: mixed-model / GEE fitting tests (slow)")


@pytest.fixture
def suppress_output(capsys):
    """Swallow printed progress and summaries."""
    yield
    capsys.readouterr()


@pytest.fixture
def three_arm_design():
    """Balanced 3-arm design used across unit tests."""
    from crtpower.core.design import normalize_design

    return normalize_design(narms=NARMS, nclusters=N_CLUSTERS, nsubjects=N_SUBJECTS, probs=[0.3, 0.4, 0.5], sigma_b_sq=SIGMA_B_SQ)


@pytest.fixture
def four_arm_design():
    from crtpower.core.design import normalize_design

    return normalize_design(narms=4, nclusters=5, nsubjects=20, probs=[0.3, 0.35, 0.4, 0.45], sigma_b_sq=0.1)


@pytest.fixture
def model():
    """Configured 3-arm model with a fixed seed."""
    from crtpower import MultiArmBinaryPower

    m = MultiArmBinaryPower(narms=NARMS, nclusters=N_CLUSTERS, nsubjects=N_SUBJECTS, probs=[0.3, 0.4, 0.5], sigma_b_sq=SIGMA_B_SQ)
    return m.set_seed(2137)
