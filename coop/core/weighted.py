"""
Weighted Covariance Engine
==========================

Covariance and Pearson correlation of the columns of an (m, n) matrix under
row weights w (default uniform 1/m).

Steps:
    1. validate weights (non-negative, sum to 1) - fails before any work
    2. weighted column means (and, for correlation, weighted std devs)
    3. working copy Z = X - mean (correlation: Z /= sd), column-parallel
    4. alpha = 1 / (1 - sum w_i^2) (unbiased) or 1 (maximum likelihood)
    5. C = alpha * Z' diag(w) Z via the shared syrk crossproduct
    6. mirror the upper triangle; correlation gets d/d on the diagonal

The weights enter the crossproduct either as the syrk scalar (uniform
weights: alpha * w0) or as a sqrt(w_i) row scaling of the working copy
(general weights), so a single rank-k update covers both.

With uniform weights and the unbiased method this is the classical sample
covariance (divisor m - 1); maximum likelihood gives divisor m.

The working copy is owned by the call and dropped on every exit path.
"""

import logging
from typing import Optional, Union

import numpy as np

from coop.core._alloc import deliver, working_copy
from coop.core.blas import get_backend
from coop.core.config import CoopConfig, resolve_config
from coop.core.dense import crossprod_upper
from coop.core.parallel import parallel_for
from coop.core.stats import column_stats, correction_factor
from coop.core.symmetrize import symmetrize
from coop.core.types import CovarianceMethod, WeightVector
from coop.validation import check_dense_matrix, check_output_buffer

logger = logging.getLogger(__name__)


def _prepare(x, weights, method, out, config):
    """Validate everything up front; nothing is allocated before this returns."""
    x = check_dense_matrix(x)
    m, n = x.shape
    check_output_buffer(out, n)
    method = CovarianceMethod.coerce(method)
    if weights is None:
        wv = WeightVector.uniform_for(m)
    else:
        wv = WeightVector.from_array(weights, m, tolerance=config.weight_tolerance)
    return x, wv, method


def _weighted_crossprod(
    x: np.ndarray,
    wv: WeightVector,
    method: CovarianceMethod,
    scale: bool,
    config: CoopConfig,
) -> np.ndarray:
    """Upper triangle of alpha * Z' diag(w) Z for the centered (scaled) copy Z."""
    m, n = x.shape
    stats = column_stats(x, wv, method, with_norms=False, with_sds=scale)
    alpha = correction_factor(wv, method)

    work = working_copy(x)
    means = stats.means
    sds = stats.sds
    row_scale = None if wv.uniform else np.sqrt(wv.values)[:, np.newaxis]

    def _center(start: int, stop: int) -> None:
        block = work[:, start:stop]
        block -= means[start:stop]
        with np.errstate(divide='ignore', invalid='ignore'):
            if scale:
                block /= sds[start:stop]
            if row_scale is not None:
                block *= row_scale

    parallel_for(_center, n, m * n, config, label="weighted centering")

    syrk_alpha = alpha * wv.w0 if wv.uniform else alpha
    logger.debug(
        "weighted crossprod: m=%d n=%d method=%s uniform=%s alpha=%g",
        m, n, method.value, wv.uniform, alpha,
    )
    blas = get_backend(config.backend)
    if np.isfinite(alpha):
        return crossprod_upper(work, blas, alpha=syrk_alpha)

    # Single row, or all weight on one row: the unbiased factor is infinite
    c = crossprod_upper(work, blas, alpha=wv.w0 if wv.uniform else 1.0)
    with np.errstate(invalid='ignore', over='ignore'):
        c *= alpha
    return c


def covar_mat(
    x,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Weighted covariance matrix of the columns of ``x``.

    Args:
        x: (m, n) array-like
        weights: None (uniform), a length-1 weight, a length-m array, or a WeightVector
        method: 'unbiased' or 'ml'
        out: optional pre-allocated (n, n) float64 buffer
        config: engine configuration

    Returns:
        (n, n) symmetric covariance matrix; the diagonal holds variances

    Raises:
        InvalidWeightsError: weights negative / non-finite / not summing to 1
        DimensionMismatchError: bad shapes or weight length
        AllocationError: working copy could not be allocated
    """
    config = resolve_config(config)
    x, wv, method = _prepare(x, weights, method, out, config)

    c = _weighted_crossprod(x, wv, method, scale=False, config=config)
    symmetrize(c, 'upper')
    return deliver(c, out)


def pcor_mat(
    x,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Weighted Pearson correlation matrix of the columns of ``x``.

    Columns are centered and scaled to unit weighted standard deviation
    before the crossproduct. The diagonal is exactly 1, or NaN for a
    zero-variance column (whose whole row and column are NaN).
    """
    config = resolve_config(config)
    x, wv, method = _prepare(x, weights, method, out, config)

    c = _weighted_crossprod(x, wv, method, scale=True, config=config)
    diag = np.diagonal(c).copy()
    with np.errstate(divide='ignore', invalid='ignore'):
        np.fill_diagonal(c, diag / diag)
    symmetrize(c, 'upper')
    return deliver(c, out)
