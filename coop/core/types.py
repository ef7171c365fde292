"""
Data model shared by all engines.

- Mode              cosine / correlation / covariance
- CovarianceMethod  unbiased vs. maximum-likelihood normalization
- WeightVector      validated row weights (non-negative, sum to 1)
- SparseCOOMatrix   (row, col, value) triplets sorted by column, then row
- ColumnStats       per-column mean, centered squared norm, std

Dense matrices are plain ``np.ndarray`` of shape (m, n): rows are
observations, columns are variables. Engines work on column-major
(Fortran-ordered) working copies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np

from coop.validation.errors import (
    DimensionMismatchError,
    InvalidSparseInputError,
    InvalidWeightsError,
    ValidationError,
)


class Mode(str, Enum):
    """Which symmetric matrix to produce."""
    COSINE = "cosine"
    CORRELATION = "correlation"
    COVARIANCE = "covariance"


class CovarianceMethod(str, Enum):
    """Normalization convention for (weighted) covariance."""
    UNBIASED = "unbiased"   # alpha = 1 / (1 - sum(w^2))
    ML = "ml"               # alpha = 1

    @classmethod
    def coerce(cls, value: Union[str, 'CovarianceMethod']) -> 'CovarianceMethod':
        if isinstance(value, cls):
            return value
        aliases = {
            'unbiased': cls.UNBIASED,
            'ml': cls.ML,
            'maximum-likelihood': cls.ML,
            'maximum_likelihood': cls.ML,
        }
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise ValidationError(
                f"method must be 'unbiased' or 'ml', got {value!r}"
            ) from None


# =============================================================================
# WEIGHTS
# =============================================================================

@dataclass(frozen=True)
class WeightVector:
    """
    Row weights for weighted means and covariance.

    Either length 1 (the same weight ``w0`` on every row) or length m.
    Construction through ``from_array`` / ``uniform`` guarantees every entry
    is finite and >= 0 and that the weights sum to 1.

    ``uniform`` is True when every row carries the same weight; such vectors
    are collapsed to a single value so results match the unweighted path
    exactly.
    """
    values: np.ndarray
    m: int
    uniform: bool

    @property
    def w0(self) -> float:
        """The common weight of a uniform vector."""
        return float(self.values[0])

    def sum_of_squares(self) -> float:
        """sum_i w_i^2 over all m rows."""
        if self.uniform:
            return float(self.m) * self.w0 * self.w0
        return float(np.dot(self.values, self.values))

    @classmethod
    def uniform_for(cls, m: int) -> 'WeightVector':
        """Uniform weights 1/m."""
        if m < 1:
            raise DimensionMismatchError(f"Uniform weights need m >= 1, got {m}")
        return cls(values=np.array([1.0 / float(m)]), m=m, uniform=True)

    @classmethod
    def from_array(
        cls,
        weights,
        m: int,
        tolerance: float = 1e-10,
    ) -> 'WeightVector':
        """
        Validate raw weights for an m-row matrix.

        Raises:
            DimensionMismatchError: length is neither 1 nor m
            InvalidWeightsError: negative / non-finite entries, or sum != 1
        """
        if isinstance(weights, WeightVector):
            if weights.m != m:
                raise DimensionMismatchError(
                    f"Weight vector built for {weights.m} rows, matrix has {m}"
                )
            return weights

        w = np.asarray(weights, dtype=np.float64).ravel()
        if w.size not in (1, m):
            raise DimensionMismatchError(
                f"Weight vector length must be 1 or {m}, got {w.size}"
            )

        errors = []
        if not np.all(np.isfinite(w)):
            errors.append("weights contain NaN or Inf")
        elif np.any(w < 0):
            errors.append(f"weights must be non-negative (min={w.min():g})")
        else:
            total = float(m) * float(w[0]) if w.size == 1 else float(np.sum(w))
            if abs(total - 1.0) > tolerance:
                errors.append(f"weights must sum to 1, got {total!r}")
        if errors:
            raise InvalidWeightsError(errors)

        if w.size == 1 or np.all(w == w[0]):
            return cls(values=w[:1].copy(), m=m, uniform=True)
        return cls(values=w.copy(), m=m, uniform=False)


# =============================================================================
# SPARSE COO
# =============================================================================

@dataclass(frozen=True)
class SparseCOOMatrix:
    """
    Sparse matrix as parallel (values, rows, cols) arrays.

    Invariants (checked at construction, relied upon by the engines):
    - indices are zero-based and inside ``shape``
    - triplets sorted by ascending column, then ascending row
    - no duplicate (row, col) pairs

    Stored values are assumed non-zero; explicit zeros are not special-cased.
    """
    values: np.ndarray
    rows: np.ndarray
    cols: np.ndarray
    shape: Tuple[int, int]

    def __post_init__(self):
        values = np.ascontiguousarray(self.values, dtype=np.float64).ravel()
        rows = np.ascontiguousarray(self.rows, dtype=np.int64).ravel()
        cols = np.ascontiguousarray(self.cols, dtype=np.int64).ravel()
        object.__setattr__(self, 'values', values)
        object.__setattr__(self, 'rows', rows)
        object.__setattr__(self, 'cols', cols)
        object.__setattr__(self, 'shape', (int(self.shape[0]), int(self.shape[1])))
        _check_triplets(values, rows, cols, self.shape)

    @property
    def nnz(self) -> int:
        return int(self.values.size)

    @property
    def m(self) -> int:
        return self.shape[0]

    @property
    def n(self) -> int:
        return self.shape[1]

    @classmethod
    def from_triplets(
        cls,
        values,
        rows,
        cols,
        shape: Optional[Tuple[int, int]] = None,
        index_base: int = 0,
        sort: bool = False,
    ) -> 'SparseCOOMatrix':
        """
        Build from raw triplets.

        Args:
            values, rows, cols: parallel arrays
            shape: logical (m, n); inferred from the max indices when None
            index_base: 0 for zero-based indices, 1 for one-based (R style)
            sort: sort into column-then-row order instead of requiring it
        """
        if index_base not in (0, 1):
            raise DimensionMismatchError(f"index_base must be 0 or 1, got {index_base}")

        values = np.asarray(values, dtype=np.float64).ravel()
        rows = np.asarray(rows, dtype=np.int64).ravel() - index_base
        cols = np.asarray(cols, dtype=np.int64).ravel() - index_base

        if not (values.size == rows.size == cols.size):
            raise DimensionMismatchError(
                f"Triplet arrays differ in length: values={values.size}, "
                f"rows={rows.size}, cols={cols.size}"
            )

        if shape is None:
            shape = (
                int(rows.max()) + 1 if rows.size else 0,
                int(cols.max()) + 1 if cols.size else 0,
            )

        if sort and values.size:
            order = np.lexsort((rows, cols))
            values, rows, cols = values[order], rows[order], cols[order]

        return cls(values=values, rows=rows, cols=cols, shape=shape)

    @classmethod
    def from_scipy(cls, matrix) -> 'SparseCOOMatrix':
        """Build from any scipy.sparse matrix or array (duplicates are summed)."""
        csc = matrix.tocsc(copy=True)
        csc.sum_duplicates()
        csc.eliminate_zeros()
        csc.sort_indices()
        coo = csc.tocoo()
        # CSC -> COO walks columns in order with sorted row indices inside each
        return cls(values=coo.data, rows=coo.row, cols=coo.col, shape=csc.shape)

    def to_dense(self) -> np.ndarray:
        """Materialise as an (m, n) column-major array."""
        dense = np.zeros(self.shape, dtype=np.float64, order='F')
        dense[self.rows, self.cols] = self.values
        return dense

    def to_scipy(self):
        from scipy import sparse
        return sparse.coo_matrix((self.values, (self.rows, self.cols)), shape=self.shape)


def _check_triplets(values: np.ndarray, rows: np.ndarray, cols: np.ndarray, shape: Tuple[int, int]) -> None:
    m, n = shape
    if m < 0 or n < 0:
        raise DimensionMismatchError(f"Invalid shape {shape}")
    if not (values.size == rows.size == cols.size):
        raise DimensionMismatchError(
            f"Triplet arrays differ in length: values={values.size}, "
            f"rows={rows.size}, cols={cols.size}"
        )
    if values.size == 0:
        return

    errors = []
    if rows.min() < 0 or rows.max() >= m:
        errors.append(f"row indices must lie in [0, {m}), got [{rows.min()}, {rows.max()}]")
    if cols.min() < 0 or cols.max() >= n:
        errors.append(f"column indices must lie in [0, {n}), got [{cols.min()}, {cols.max()}]")
    if errors:
        raise DimensionMismatchError(errors)

    dcol = np.diff(cols)
    drow = np.diff(rows)
    if np.any(dcol < 0):
        raise InvalidSparseInputError("triplets must be sorted by ascending column")
    same_col = dcol == 0
    if np.any(drow[same_col] < 0):
        raise InvalidSparseInputError("triplets must be sorted by ascending row within each column")
    if np.any(drow[same_col] == 0):
        raise InvalidSparseInputError("duplicate (row, col) entries")


# =============================================================================
# COLUMN STATISTICS
# =============================================================================

@dataclass
class ColumnStats:
    """Per-column statistics produced and consumed within one call."""
    means: np.ndarray
    sq_norms: Optional[np.ndarray] = None   # sum_i w_i (x_ij - mean_j)^2
    sds: Optional[np.ndarray] = None

    @property
    def n(self) -> int:
        return int(self.means.size)
