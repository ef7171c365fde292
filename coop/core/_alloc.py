"""Engine-owned buffer allocation. MemoryError surfaces as AllocationError."""

from typing import Optional

import numpy as np

from coop.validation.errors import AllocationError


def zeros_square(n: int, what: str = "output matrix") -> np.ndarray:
    try:
        return np.zeros((n, n), dtype=np.float64, order='F')
    except MemoryError as e:
        raise AllocationError(what, n * n * 8) from e


def working_copy(x: np.ndarray, what: str = "working copy") -> np.ndarray:
    """Column-major float64 copy of ``x`` that the caller exclusively owns."""
    try:
        return np.array(x, dtype=np.float64, order='F', copy=True)
    except MemoryError as e:
        raise AllocationError(what, x.size * 8) from e


def deliver(result: np.ndarray, out: Optional[np.ndarray]) -> np.ndarray:
    """Copy a finished result into the caller's buffer, if one was given."""
    if out is None:
        return result
    out[...] = result
    return out
