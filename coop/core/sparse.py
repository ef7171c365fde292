"""
Sparse COO Engine
=================

Cosine similarity (plus covariance and correlation) between the columns of
a sparse matrix stored as (row, col, value) triplets sorted by column, then
row. Zero entries are never materialised; only the n x n result is dense.

Column runs
-----------
Because of the sort order, column j occupies the contiguous triplet range
``[starts[j], starts[j + 1])``. ``column_bounds`` finds every boundary in a
single left-to-right pass (a bincount followed by a cumulative sum), so the
total index-finding work is O(nnz + n) rather than one search per query.

Cosine algorithm
----------------
    C = 0
    for each column j:
        empty run      -> column j of the lower triangle is NaN
        otherwise      -> copy the run's rows/values into scratch buffers
                          sized to that run, then for every later column i
                          merge the two sorted row lists to get xy = x_i'x_j
                          |xy| <= epsilon     -> C[i, j] stays 0
                          else                -> C[i, j] = xy / sqrt(xx * yy)
    mirror lower -> upper
    diagonal = 1 for non-empty columns, NaN for empty ones

The merge against later columns is done a window at a time: the later
columns are cut into chunks holding about m triplets (``column_chunks``),
each chunk's rows are located in the sorted scratch row list by binary
search, and the matching products are summed per column. Temporary storage
per column is therefore O(m), independent of nnz. The scratch buffers belong
to the column being processed, so columns can be handed to separate threads;
each thread writes only C[j:, j] for its own j.

Covariance
----------
Centered sums are accumulated directly rather than as X'WX - mu mu', which
cancels catastrophically for large means. For a pair of columns the rows
split into four groups (both stored, only j stored, only i stored, neither)
and each group contributes sum w (x_j - mu_j)(x_i - mu_i), an unstored
entry entering as -mu.

Worst case (dense data stored as triplets) is O(m n^2); genuinely sparse
data costs far less.
"""

import logging
from typing import Iterator, Optional, Tuple, Union

import numpy as np

from coop.core._alloc import deliver, zeros_square
from coop.core.config import CoopConfig, resolve_config
from coop.core.dense import rescale_to_unit_diagonal
from coop.core.parallel import parallel_for
from coop.core.stats import correction_factor
from coop.core.symmetrize import symmetrize
from coop.core.types import CovarianceMethod, SparseCOOMatrix, WeightVector
from coop.validation import check_output_buffer
from coop.validation.errors import AllocationError, DimensionMismatchError, ValidationError

logger = logging.getLogger(__name__)


def column_bounds(cols: np.ndarray, n: int) -> np.ndarray:
    """
    Start offsets of every column run, length n + 1.

    Column j's triplets are ``[starts[j], starts[j + 1])``; an empty column
    has ``starts[j] == starts[j + 1]``. Requires column-sorted triplets.
    """
    starts = np.zeros(n + 1, dtype=np.int64)
    if cols.size:
        np.cumsum(np.bincount(cols, minlength=n), out=starts[1:])
    return starts


def column_chunks(starts: np.ndarray, first: int, budget: int) -> Iterator[Tuple[int, int]]:
    """
    Cut columns ``[first, n)`` into contiguous ``[c0, c1)`` windows.

    Each window holds at most ``budget`` triplets, or a single column when
    that column alone exceeds the budget.
    """
    n = starts.size - 1
    c0 = first
    while c0 < n:
        c1 = int(np.searchsorted(starts, starts[c0] + budget, side='right')) - 1
        c1 = min(n, max(c1, c0 + 1))
        yield c0, c1
        c0 = c1


def _check_sparse(coo, out: Optional[np.ndarray]) -> SparseCOOMatrix:
    if not isinstance(coo, SparseCOOMatrix):
        raise ValidationError(
            f"Expected a SparseCOOMatrix, got {type(coo).__name__}; "
            f"use SparseCOOMatrix.from_scipy or from_triplets"
        )
    m, n = coo.shape
    if m < 1 or n < 1:
        raise DimensionMismatchError(f"Sparse matrix must have at least one row and one column, got shape {coo.shape}")
    check_output_buffer(out, n)
    return coo


def _scratch_copy(a: np.ndarray, what: str) -> np.ndarray:
    try:
        return a.copy()
    except MemoryError as e:
        raise AllocationError(what, a.nbytes) from e


def _matches(
    coo: SparseCOOMatrix,
    starts: np.ndarray,
    j: int,
    rows_j: np.ndarray,
) -> Iterator[Tuple[int, int, np.ndarray, np.ndarray]]:
    """
    Match column j's rows against every later column, one window at a time.

    Yields ``(c0, c1, pos, idx)`` for each non-empty window ``[c0, c1)``:
    ``idx`` are global triplet indices in the window whose row also occurs
    in column j, at position ``pos`` of the scratch row list ``rows_j``.
    """
    for c0, c1 in column_chunks(starts, j + 1, coo.m):
        lo, hi = starts[c0], starts[c1]
        if hi == lo:
            continue
        window = coo.rows[lo:hi]
        pos = np.searchsorted(rows_j, window)
        np.minimum(pos, rows_j.size - 1, out=pos)
        hit = np.flatnonzero(rows_j[pos] == window)
        yield c0, c1, pos[hit], lo + hit


def _later_column_dots(
    coo: SparseCOOMatrix,
    starts: np.ndarray,
    j: int,
    values: np.ndarray,
) -> np.ndarray:
    """
    x_i'x_j for every column i > j, length n - j - 1.

    ``values`` is the triplet value array to use (the raw values, or values
    pre-scaled by sqrt(w_row) for weighted crossproducts).
    """
    start, stop = starts[j], starts[j + 1]
    rows_j = _scratch_copy(coo.rows[start:stop], "sparse column scratch")
    vals_j = _scratch_copy(values[start:stop], "sparse column scratch")

    xy = np.zeros(coo.n - j - 1)
    for c0, c1, pos, idx in _matches(coo, starts, j, rows_j):
        if idx.size:
            xy[c0 - j - 1:c1 - j - 1] += np.bincount(
                coo.cols[idx] - c0, weights=vals_j[pos] * values[idx], minlength=c1 - c0,
            )
    return xy


def _lower_scan(
    coo: SparseCOOMatrix,
    starts: np.ndarray,
    config: CoopConfig,
    label: str,
    visit_column,
) -> None:
    """Call ``visit_column(j)`` for every non-empty column; it fills C[j:, j] only."""
    nonempty = starts[1:] > starts[:-1]

    def _scan(start: int, stop: int) -> None:
        for j in range(start, stop):
            if nonempty[j]:
                visit_column(j)

    parallel_for(_scan, coo.n, coo.nnz * coo.n, config, label=label)


def sparse_cosine(
    coo: SparseCOOMatrix,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Cosine similarity between the columns of a sorted COO matrix.

    Args:
        coo: column-then-row sorted triplets
        out: optional pre-allocated (n, n) float64 buffer
        config: engine configuration (``sparse_epsilon`` is the orthogonality threshold)

    Returns:
        (n, n) symmetric matrix. Structurally empty columns are NaN across
        their row, column and diagonal entry; every other diagonal entry is 1.
    """
    config = resolve_config(config)
    coo = _check_sparse(coo, out)
    n = coo.n
    eps = config.sparse_epsilon

    starts = column_bounds(coo.cols, n)
    empty = starts[1:] == starts[:-1]
    sq_norms = np.bincount(coo.cols, weights=coo.values * coo.values, minlength=n)

    logger.debug(
        "sparse_cosine: shape=%s nnz=%d empty_columns=%d eps=%g",
        coo.shape, coo.nnz, int(empty.sum()), eps,
    )

    c = zeros_square(n)

    def _visit(j: int) -> None:
        xy = _later_column_dots(coo, starts, j, coo.values)
        keep = np.abs(xy) > eps
        if np.any(keep):
            lower = c[j + 1:, j]
            with np.errstate(divide='ignore', invalid='ignore'):
                lower[keep] = xy[keep] / np.sqrt(sq_norms[j + 1:][keep] * sq_norms[j])

    _lower_scan(coo, starts, config, "sparse cosine", _visit)

    symmetrize(c, 'lower')
    np.fill_diagonal(c, 1.0)
    if np.any(empty):
        c[empty, :] = np.nan
        c[:, empty] = np.nan
    return deliver(c, out)


def sparse_crossprod(
    coo: SparseCOOMatrix,
    weights=None,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Full symmetric X' diag(w) X for a sorted COO matrix.

    With ``weights=None`` this is the plain crossproduct X'X. No epsilon
    suppression is applied.
    """
    config = resolve_config(config)
    coo = _check_sparse(coo, out)
    wv = None
    if weights is not None:
        wv = WeightVector.from_array(weights, coo.m, tolerance=config.weight_tolerance)
    c = _crossprod(coo, wv, config)
    return deliver(c, out)


def _crossprod(coo: SparseCOOMatrix, wv: Optional[WeightVector], config: CoopConfig) -> np.ndarray:
    n = coo.n
    starts = column_bounds(coo.cols, n)

    # Non-uniform weights enter as sqrt(w_row) on every stored value
    if wv is None or wv.uniform:
        values = coo.values
    else:
        values = coo.values * np.sqrt(wv.values)[coo.rows]

    sq_norms = np.bincount(coo.cols, weights=values * values, minlength=n)
    c = zeros_square(n)

    def _visit(j: int) -> None:
        c[j + 1:, j] = _later_column_dots(coo, starts, j, values)

    _lower_scan(coo, starts, config, "sparse crossprod", _visit)
    np.fill_diagonal(c, sq_norms)
    symmetrize(c, 'lower')

    if wv is not None and wv.uniform:
        c *= wv.w0
    return c


def _sparse_means(coo: SparseCOOMatrix, starts: np.ndarray, wv: WeightVector) -> np.ndarray:
    """Weighted column means; a fully stored constant column gets its value exactly."""
    if wv.uniform:
        means = wv.w0 * np.bincount(coo.cols, weights=coo.values, minlength=coo.n)
    else:
        means = np.bincount(coo.cols, weights=wv.values[coo.rows] * coo.values, minlength=coo.n)

    counts = np.diff(starts)
    for col in np.flatnonzero(counts == coo.m):
        run = coo.values[starts[col]:starts[col + 1]]
        if np.all(run == run[0]):
            means[col] = run[0]
    return means


def _sparse_covariance(
    coo: SparseCOOMatrix,
    weights,
    method: Union[str, CovarianceMethod],
    out: Optional[np.ndarray],
    config: CoopConfig,
) -> np.ndarray:
    """alpha * sum_r w_r (x_r - mu)(x_r - mu)', accumulated from centered terms."""
    coo = _check_sparse(coo, out)
    method = CovarianceMethod.coerce(method)
    if weights is None:
        wv = WeightVector.uniform_for(coo.m)
    else:
        wv = WeightVector.from_array(weights, coo.m, tolerance=config.weight_tolerance)

    m, n = coo.shape
    starts = column_bounds(coo.cols, n)
    counts = np.diff(starts)
    means = _sparse_means(coo, starts, wv)

    w_rows = np.full(coo.nnz, wv.w0) if wv.uniform else wv.values[coo.rows]
    centered = coo.values - means[coo.cols]
    w_centered = w_rows * centered

    # Per column: sum of w(x - mu) over stored rows, stored weight, unstored weight
    stored_sums = np.bincount(coo.cols, weights=w_centered, minlength=n)
    if wv.uniform:
        zero_weight = wv.w0 * (m - counts)
    else:
        stored_weight = np.bincount(coo.cols, weights=w_rows, minlength=n)
        zero_weight = np.maximum(np.sum(wv.values) - stored_weight, 0.0)
        zero_weight[counts == m] = 0.0

    variances = np.bincount(coo.cols, weights=w_centered * centered, minlength=n)
    variances += zero_weight * means * means

    alpha = correction_factor(wv, method)
    logger.debug(
        "sparse covariance: shape=%s nnz=%d method=%s uniform=%s alpha=%g",
        coo.shape, coo.nnz, method.value, wv.uniform, alpha,
    )

    c = zeros_square(n)

    def _visit(j: int) -> None:
        start, stop = starts[j], starts[j + 1]
        rows_j = _scratch_copy(coo.rows[start:stop], "sparse column scratch")
        wc_j = _scratch_copy(w_centered[start:stop], "sparse column scratch")
        lower = c[j + 1:, j]
        mu_j = means[j]

        for c0, c1, pos, idx in _matches(coo, starts, j, rows_j):
            k = c1 - c0
            bins = coo.cols[idx] - c0
            both = np.bincount(bins, weights=wc_j[pos] * centered[idx], minlength=k)
            shared_j = np.bincount(bins, weights=wc_j[pos], minlength=k)
            shared_i = np.bincount(bins, weights=w_centered[idx], minlength=k)
            n_both = np.bincount(bins, minlength=k)

            # Rows stored in j only (i contributes -mu_i) and in i only (j contributes -mu_j)
            only_j = stored_sums[j] - shared_j
            only_i = stored_sums[c0:c1] - shared_i

            n_neither = m - counts[j] - counts[c0:c1] + n_both
            if wv.uniform:
                w_neither = wv.w0 * n_neither
            else:
                w_both = np.bincount(bins, weights=w_rows[idx], minlength=k)
                w_neither = zero_weight[j] - (stored_weight[c0:c1] - w_both)
                np.maximum(w_neither, 0.0, out=w_neither)
                w_neither[n_neither == 0] = 0.0

            mu_i = means[c0:c1]
            lower[c0 - j - 1:c1 - j - 1] = both - mu_i * only_j - mu_j * only_i + mu_i * mu_j * w_neither

    _lower_scan(coo, starts, config, "sparse covariance", _visit)

    # Empty columns have zero mean: their row and column stay 0
    np.fill_diagonal(c, variances)
    symmetrize(c, 'lower')
    with np.errstate(invalid='ignore', over='ignore'):
        c *= alpha
    return c


def sparse_covar(
    coo: SparseCOOMatrix,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Covariance matrix of a sorted COO matrix without densifying it.

    Structurally empty columns have zero mean and zero variance, so their
    row and column are 0.
    """
    config = resolve_config(config)
    c = _sparse_covariance(coo, weights, method, out, config)
    return deliver(c, out)


def sparse_pcor(
    coo: SparseCOOMatrix,
    weights=None,
    method: Union[str, CovarianceMethod] = CovarianceMethod.UNBIASED,
    out: Optional[np.ndarray] = None,
    config: Optional[CoopConfig] = None,
) -> np.ndarray:
    """
    Pearson correlation of a sorted COO matrix.

    Zero-variance columns (including structurally empty ones and fully
    stored constant ones) are NaN across their row, column and diagonal.
    """
    config = resolve_config(config)
    c = _sparse_covariance(coo, weights, method, out, config)
    rescale_to_unit_diagonal(c, coo.nnz * coo.n, config, label="sparse pcor rescale")
    symmetrize(c, 'upper')
    return deliver(c, out)
