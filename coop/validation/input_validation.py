"""
Input Validation

Eager checks run at the top of every engine, before any working buffer is
allocated and before the caller's output buffer is touched. An engine that
raises from here has not modified anything.

Usage:
    from coop.validation import check_dense_matrix, check_output_buffer

    x = check_dense_matrix(x)
    check_output_buffer(out, x.shape[1])
"""

from typing import Optional, Tuple

import numpy as np

from coop.validation.errors import DimensionMismatchError, ValidationError


def check_dense_matrix(x, name: str = "x") -> np.ndarray:
    """
    Return ``x`` as a float64 2-D array with at least one row and column.

    A 1-D input is treated as a single column. No copy is made when ``x`` is
    already float64.
    """
    try:
        arr = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be numeric: {e}") from e

    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise DimensionMismatchError(f"{name} must be 2-D, got {arr.ndim}-D")

    m, n = arr.shape
    if m < 1 or n < 1:
        raise DimensionMismatchError(f"{name} must have at least one row and one column, got shape {arr.shape}")
    return arr


def check_vector(x, name: str = "x") -> np.ndarray:
    """Return ``x`` as a non-empty float64 1-D array."""
    try:
        arr = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be numeric: {e}") from e

    if arr.ndim == 2 and 1 in arr.shape:
        arr = arr.ravel()
    if arr.ndim != 1:
        raise DimensionMismatchError(f"{name} must be a vector, got shape {arr.shape}")
    if arr.size == 0:
        raise DimensionMismatchError(f"{name} must not be empty")
    return arr


def check_vector_pair(x, y) -> Tuple[np.ndarray, np.ndarray]:
    """Validate two vectors of equal length."""
    x = check_vector(x, "x")
    y = check_vector(y, "y")
    if x.size != y.size:
        raise DimensionMismatchError(
            f"Vectors must have the same length, got {x.size} and {y.size}"
        )
    return x, y


def check_output_buffer(out: Optional[np.ndarray], n: int) -> None:
    """
    Validate a caller-supplied ``n x n`` output buffer.

    ``None`` is accepted (the engine allocates its own result).
    """
    if out is None:
        return
    if not isinstance(out, np.ndarray):
        raise ValidationError(f"out must be a numpy array, got {type(out).__name__}")

    errors = []
    if out.shape != (n, n):
        errors.append(f"out must have shape ({n}, {n}), got {out.shape}")
    if out.dtype != np.float64:
        errors.append(f"out must be float64, got {out.dtype}")
    if not out.flags.writeable:
        errors.append("out is read-only")
    if errors:
        raise DimensionMismatchError(errors)
