"""
Writer: all table writes go through here.

A square result is written as one column per variable plus a leading
``variable`` column holding the row labels.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import polars as pl

from coop.validation.errors import DimensionMismatchError, ValidationError

PathLike = Union[str, Path]


def matrix_frame(c: np.ndarray, names: Optional[Sequence[str]] = None) -> pl.DataFrame:
    """Label a square matrix as a DataFrame."""
    c = np.asarray(c, dtype=np.float64)
    if c.ndim != 2 or c.shape[0] != c.shape[1]:
        raise DimensionMismatchError(f"Expected a square matrix, got shape {c.shape}")

    n = c.shape[0]
    if names is None:
        names = [f"v{j}" for j in range(n)]
    names = [str(name) for name in names]
    if len(names) != n:
        raise DimensionMismatchError(f"Got {len(names)} names for a {n}x{n} matrix")

    data = {'variable': names}
    for j, name in enumerate(names):
        data[name] = c[:, j]
    return pl.DataFrame(data)


def write_matrix(
    c: np.ndarray,
    path: PathLike,
    names: Optional[Sequence[str]] = None,
    verbose: bool = False,
) -> Path:
    """Write a square result to parquet or CSV (by suffix)."""
    path = Path(path)
    df = matrix_frame(c, names)

    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()
    if suffix in ('.parquet', '.pq'):
        df.write_parquet(str(path))
    elif suffix in ('.csv', '.txt'):
        df.write_csv(str(path))
    else:
        raise ValidationError(f"Unsupported output type '{suffix}' (expected .parquet or .csv)")

    if verbose:
        print(f"  -> {path} ({df.height}x{df.height})")
    return path
