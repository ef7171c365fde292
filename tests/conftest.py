"""Shared fixtures for coop tests."""

import numpy as np
import pytest

from coop.core.config import CoopConfig


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def serial_config():
    return CoopConfig(n_jobs=1)


@pytest.fixture
def parallel_config():
    # threshold 0 forces the joblib path even on tiny inputs
    return CoopConfig(parallel_threshold=0, n_jobs=2)


@pytest.fixture(params=['scipy', 'reference'])
def backend_config(request):
    return CoopConfig(backend=request.param)
