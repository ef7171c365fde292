"""
Dense Vector-Pair Engine.

Cosine, Pearson correlation and covariance for exactly two vectors,
returning a scalar. Inner products go through the backend's gemm as
(1 x n)(n x 1) products. Zero vectors give NaN (0/0), never an error.
"""

from typing import Optional

import numpy as np

from coop.core.blas import get_backend
from coop.core.config import CoopConfig, resolve_config
from coop.core.stats import column_means
from coop.validation import check_vector_pair


def _center(v: np.ndarray) -> np.ndarray:
    return v - column_means(v.reshape(-1, 1))[0]


def cosine_vecvec(x, y, config: Optional[CoopConfig] = None) -> float:
    """
    Cosine similarity of two equal-length vectors.

    dot(x, y) / sqrt(dot(x, x) * dot(y, y))
    """
    config = resolve_config(config)
    x, y = check_vector_pair(x, y)
    blas = get_backend(config.backend)

    xy = blas.inner(x, y)
    xx = blas.inner(x, x)
    yy = blas.inner(y, y)

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        return float(xy / np.sqrt(xx * yy))


def pcor_vecvec(x, y, config: Optional[CoopConfig] = None) -> float:
    """Pearson correlation: cosine of the mean-centered vectors."""
    config = resolve_config(config)
    x, y = check_vector_pair(x, y)
    blas = get_backend(config.backend)

    xc = _center(x)
    yc = _center(y)

    xy = blas.inner(xc, yc)
    xx = blas.inner(xc, xc)
    yy = blas.inner(yc, yc)

    with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
        return float(xy / np.sqrt(xx * yy))


def covar_vecvec(x, y, config: Optional[CoopConfig] = None) -> float:
    """Unbiased (1 / (n - 1)) covariance. A single observation gives NaN."""
    config = resolve_config(config)
    x, y = check_vector_pair(x, y)
    blas = get_backend(config.backend)

    n = x.size
    xc = _center(x)
    yc = _center(y)
    xy = blas.inner(xc, yc)

    with np.errstate(divide='ignore', invalid='ignore'):
        return float(xy / np.float64(n - 1))
