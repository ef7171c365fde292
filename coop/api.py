"""
Public entry points.

    cosine(x)            dense (m, n) matrix -> (n, n) cosine matrix
    cosine(x, y)         two vectors         -> scalar
    cosine(coo)          sparse COO matrix   -> (n, n) cosine matrix

    pcor / covar         same dispatch; matrices accept weights= and method=

Sparse inputs may be a SparseCOOMatrix or any scipy.sparse matrix (converted
with SparseCOOMatrix.from_scipy, which sorts and sums duplicates).
"""

import logging
from typing import Optional, Union

import numpy as np
from scipy import sparse as _sp

from coop.core.config import CoopConfig
from coop.core.dense import cosine_mat
from coop.core.sparse import sparse_cosine, sparse_covar, sparse_pcor
from coop.core.types import CovarianceMethod, Mode, SparseCOOMatrix
from coop.core.vector import cosine_vecvec, covar_vecvec, pcor_vecvec
from coop.core.weighted import covar_mat, pcor_mat
from coop.validation.errors import ValidationError

logger = logging.getLogger(__name__)

Result = Union[float, np.ndarray]


def _as_sparse(x) -> Optional[SparseCOOMatrix]:
    if isinstance(x, SparseCOOMatrix):
        return x
    if _sp.issparse(x):
        return SparseCOOMatrix.from_scipy(x)
    return None


def compute(
    mode: Union[str, Mode],
    x,
    y=None,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> Result:
    """
    Select the engine for ``mode`` from the shape of the inputs.

    Args:
        mode: 'cosine', 'correlation' or 'covariance'
        x: dense matrix, vector, SparseCOOMatrix or scipy.sparse matrix
        y: second vector (vector-pair mode)
        weights: row weights for covariance/correlation of matrices
        method: 'unbiased' or 'ml'
        out: optional pre-allocated (n, n) buffer (matrix modes)
        config: engine configuration
    """
    try:
        mode = Mode(mode)
    except ValueError:
        raise ValidationError(
            f"mode must be one of {[m.value for m in Mode]}, got {mode!r}"
        ) from None

    if y is not None:
        if weights is not None:
            raise ValidationError("weights are not supported for vector pairs")
        if out is not None:
            raise ValidationError("out is not supported for vector pairs, which return a scalar")
        logger.debug("%s: vector-pair engine", mode.value)
        if mode == Mode.COSINE:
            return cosine_vecvec(x, y, config=config)
        if mode == Mode.CORRELATION:
            return pcor_vecvec(x, y, config=config)
        return covar_vecvec(x, y, config=config)

    coo = _as_sparse(x)
    if coo is not None:
        logger.debug("%s: sparse engine (shape=%s, nnz=%d)", mode.value, coo.shape, coo.nnz)
        if mode == Mode.COSINE:
            if weights is not None:
                raise ValidationError("weights are not supported for cosine similarity")
            return sparse_cosine(coo, out=out, config=config)
        if mode == Mode.CORRELATION:
            return sparse_pcor(coo, weights=weights, method=method, out=out, config=config)
        return sparse_covar(coo, weights=weights, method=method, out=out, config=config)

    logger.debug("%s: dense engine", mode.value)
    if mode == Mode.COSINE:
        if weights is not None:
            raise ValidationError("weights are not supported for cosine similarity")
        return cosine_mat(x, out=out, config=config)
    if mode == Mode.CORRELATION:
        return pcor_mat(x, weights=weights, method=method, out=out, config=config)
    return covar_mat(x, weights=weights, method=method, out=out, config=config)


def cosine(x, y=None, out: Optional[np.ndarray] = None, config: Optional[CoopConfig] = None) -> Result:
    """Cosine similarity of the columns of ``x``, or of the vectors ``x`` and ``y``."""
    return compute(Mode.COSINE, x, y, out=out, config=config)


def pcor(
    x,
    y=None,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> Result:
    """Pearson correlation of the columns of ``x``, or of the vectors ``x`` and ``y``."""
    return compute(Mode.CORRELATION, x, y, weights=weights, method=method, out=out, config=config)


def covar(
    x,
    y=None,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> Result:
    """Covariance of the columns of ``x``, or of the vectors ``x`` and ``y``."""
    return compute(Mode.COVARIANCE, x, y, weights=weights, method=method, out=out, config=config)
