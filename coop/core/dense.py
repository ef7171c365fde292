"""
Dense Rank-Update Engine
========================

Cosine similarity (and the raw crossproduct) for an (m, n) dense matrix.

Steps:
    1. C = X'X, upper triangle only, via the backend's syrk
       (the only call into the BLAS primitive; O(m n^2) flops)
    2. cosine: C[i, j] /= sqrt(C[i, i] * C[j, j]) for i < j, then
       C[j, j] = 1 (NaN for a zero-norm column)
    3. mirror the upper triangle onto the lower

Step 2 runs column-parallel once m*n exceeds config.parallel_threshold.
Each worker owns a block of columns j and writes only C[:j+1, j].

Zero-norm columns are NOT special-cased: 0/0 gives NaN across that column's
row and column, including the diagonal.

The covariance and correlation paths center (and scale) a working copy first;
see coop.core.weighted, which reuses ``crossprod_upper``.
"""

import logging
from typing import Optional

import numpy as np

from coop.core._alloc import deliver
from coop.core.blas import BlasBackend, get_backend
from coop.core.config import CoopConfig, resolve_config
from coop.core.parallel import parallel_for
from coop.core.symmetrize import symmetrize
from coop.validation import check_dense_matrix, check_output_buffer
from coop.validation.errors import AllocationError

logger = logging.getLogger(__name__)


def crossprod_upper(x: np.ndarray, blas: BlasBackend, alpha: float = 1.0) -> np.ndarray:
    """alpha * X'X, upper triangle only, in a new column-major buffer."""
    n = x.shape[1]
    try:
        return blas.syrk(x, alpha=alpha)
    except MemoryError as e:
        raise AllocationError("crossproduct", n * n * 8) from e


def rescale_to_unit_diagonal(c: np.ndarray, size: int, config: CoopConfig, label: str = "rescale") -> np.ndarray:
    """
    Turn an upper-triangle crossproduct into cosines, in place.

    Off-diagonal (i < j) entries are divided by sqrt(C[i,i] * C[j,j]); the
    diagonal becomes d/d, i.e. exactly 1 for a finite non-zero norm and NaN
    otherwise. Only the upper triangle is read or written.
    """
    n = c.shape[0]
    diag = np.diagonal(c).copy()

    def _rescale(start: int, stop: int) -> None:
        with np.errstate(divide='ignore', invalid='ignore'):
            for j in range(start, stop):
                if j > 0:
                    c[:j, j] /= np.sqrt(diag[:j] * diag[j])
                c[j, j] = diag[j] / diag[j]

    parallel_for(_rescale, n, size, config, label=label)
    return c


def crossprod(
    x,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Full symmetric X'X.

    Applied to an already column-centered matrix this is the raw
    (unnormalized) covariance crossproduct.
    """
    config = resolve_config(config)
    x = check_dense_matrix(x)
    n = x.shape[1]
    check_output_buffer(out, n)

    blas = get_backend(config.backend)
    c = crossprod_upper(x, blas)
    symmetrize(c, 'upper')
    return deliver(c, out)


def cosine_mat(
    x,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Cosine similarity between the columns of an (m, n) matrix.

    Args:
        x: (m, n) array-like, columns are variables
        out: optional pre-allocated (n, n) float64 buffer, written only on success
        config: engine configuration (None = defaults)

    Returns:
        (n, n) symmetric matrix with unit diagonal (NaN for zero columns)

    Raises:
        DimensionMismatchError: x is not 2-D / empty, or out has the wrong shape
        AllocationError: the crossproduct buffer could not be allocated
    """
    config = resolve_config(config)
    x = check_dense_matrix(x)
    m, n = x.shape
    check_output_buffer(out, n)

    blas = get_backend(config.backend)
    logger.debug("cosine_mat: m=%d n=%d backend=%s", m, n, blas.name)

    c = crossprod_upper(x, blas)
    rescale_to_unit_diagonal(c, m * n, config, label="cosine rescale")
    symmetrize(c, 'upper')
    return deliver(c, out)
