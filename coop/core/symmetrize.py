"""
Symmetrizer: mirror one computed triangle of a square matrix onto the other.

The diagonal is never touched; callers fix it before or after depending on
the metric. Works in place, column by column, without temporaries beyond
the row/column views.
"""

import numpy as np


def symmetrize(c: np.ndarray, source: str = 'upper') -> np.ndarray:
    """
    Copy the ``source`` triangle of ``c`` onto the opposite triangle, in place.

    Args:
        c: (n, n) array, modified in place
        source: 'upper' (upper triangle is valid, fill lower) or 'lower'

    Returns:
        ``c``, for chaining
    """
    if c.ndim != 2 or c.shape[0] != c.shape[1]:
        raise ValueError(f"symmetrize needs a square matrix, got shape {c.shape}")
    if source not in ('upper', 'lower'):
        raise ValueError(f"source must be 'upper' or 'lower', got {source!r}")

    n = c.shape[0]
    if source == 'upper':
        for j in range(n - 1):
            c[j + 1:, j] = c[j, j + 1:]
    else:
        for j in range(n - 1):
            c[j, j + 1:] = c[j + 1:, j]
    return c
