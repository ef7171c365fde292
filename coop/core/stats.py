"""
Column Statistics
=================

Weighted column means, centered squared norms and standard deviations for an
(m, n) matrix whose columns are variables.

With no weights the row weights default to uniform 1/m. Uniform weights
(length 1, or all entries equal) go through the same scalar path as the
unweighted case, so ``column_means(x)`` and
``column_means(x, WeightVector.uniform_for(m))`` agree bit-for-bit.

Bias correction
---------------
For reliability weights w (sum w = 1) the unbiased weighted covariance is

    alpha * sum_i w_i (x_i - mu)(x_i - mu)'       alpha = 1 / (1 - sum_i w_i^2)

which reduces to the classical 1/(m-1) estimator when w_i = 1/m. The
maximum-likelihood convention uses alpha = 1.
"""

from typing import Optional

import numpy as np

from coop.core.types import ColumnStats, CovarianceMethod, WeightVector


def _resolve_weights(x: np.ndarray, weights: Optional[WeightVector]) -> WeightVector:
    return WeightVector.uniform_for(x.shape[0]) if weights is None else weights


def correction_factor(weights: WeightVector, method: CovarianceMethod) -> float:
    """
    Normalization factor alpha applied to the weighted crossproduct.

    Uniform weights w0 give 1 / (1 - m * w0^2); general weights give
    1 / (1 - sum w_i^2); maximum likelihood gives 1. A single row (or all
    weight on one row) makes the unbiased factor infinite, which turns the
    result into NaN downstream rather than raising.
    """
    if method == CovarianceMethod.ML:
        return 1.0
    denom = 1.0 - weights.sum_of_squares()
    if denom <= 0.0:
        return float('inf')
    return 1.0 / denom


def column_means(x: np.ndarray, weights: Optional[WeightVector] = None) -> np.ndarray:
    """
    Weighted column means, length n.

    A constant column gets its value exactly, so it centers to exact zeros.
    """
    weights = _resolve_weights(x, weights)
    if weights.uniform:
        means = weights.w0 * np.sum(x, axis=0)
    else:
        means = weights.values @ x

    constant = np.all(x == x[:1], axis=0)
    if np.any(constant):
        means[constant] = x[0, constant]
    return means


def column_sq_norms(
    x: np.ndarray,
    means: Optional[np.ndarray] = None,
    weights: Optional[WeightVector] = None,
) -> np.ndarray:
    """
    Squared column norms.

    Without ``means``: plain sum_i x_ij^2 (the cosine denominator).
    With ``means``: weighted centered sum_i w_i (x_ij - mean_j)^2, i.e. the
    maximum-likelihood weighted variance.
    """
    if means is None:
        return np.einsum('ij,ij->j', x, x)

    weights = _resolve_weights(x, weights)
    centered = x - means
    if weights.uniform:
        return weights.w0 * np.einsum('ij,ij->j', centered, centered)
    return weights.values @ (centered * centered)


def column_sds(
    x: np.ndarray,
    means: Optional[np.ndarray] = None,
    weights: Optional[WeightVector] = None,
    method: CovarianceMethod = CovarianceMethod.UNBIASED,
) -> np.ndarray:
    """Weighted column standard deviations under the given normalization."""
    weights = _resolve_weights(x, weights)
    if means is None:
        means = column_means(x, weights)
    alpha = correction_factor(weights, method)
    with np.errstate(invalid='ignore', over='ignore'):
        return np.sqrt(alpha * column_sq_norms(x, means, weights))


def column_stats(
    x: np.ndarray,
    weights: Optional[WeightVector] = None,
    method: CovarianceMethod = CovarianceMethod.UNBIASED,
    with_norms: bool = True,
    with_sds: bool = False,
) -> ColumnStats:
    """
    Compute the statistics one engine call needs.

    Args:
        x: (m, n) matrix
        weights: validated row weights (None = uniform 1/m)
        method: normalization used for the standard deviations
        with_norms: include centered squared norms
        with_sds: include standard deviations (correlation)
    """
    weights = _resolve_weights(x, weights)
    means = column_means(x, weights)
    sq_norms = column_sq_norms(x, means, weights) if (with_norms or with_sds) else None

    sds = None
    if with_sds:
        alpha = correction_factor(weights, method)
        with np.errstate(invalid='ignore', over='ignore'):
            sds = np.sqrt(alpha * sq_norms)

    return ColumnStats(
        means=means,
        sq_norms=sq_norms if with_norms else None,
        sds=sds,
    )
