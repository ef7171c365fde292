"""
Reader: all table reads go through here.

Dense tables: one column per variable, one row per observation.
Triplet tables: long format with row / column / value columns.
Parquet and CSV are recognised by file suffix.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl

from coop.core.types import SparseCOOMatrix
from coop.validation.errors import ValidationError

PathLike = Union[str, Path]

_NUMERIC = (
    pl.Float64, pl.Float32,
    pl.Int64, pl.Int32, pl.Int16, pl.Int8,
    pl.UInt64, pl.UInt32, pl.UInt16, pl.UInt8,
)


@contextmanager
def _polars_errors(path: PathLike, what: str):
    """Surface parse and cast failures as ValidationError."""
    try:
        yield
    except pl.exceptions.PolarsError as e:
        raise ValidationError(f"Could not {what} {path}: {e}") from e


def read_table(path: PathLike) -> pl.DataFrame:
    """Read a parquet or CSV file into a DataFrame."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ('.parquet', '.pq'):
        with _polars_errors(path, "read"):
            return pl.read_parquet(str(path))
    if suffix in ('.csv', '.txt'):
        with _polars_errors(path, "read"):
            return pl.read_csv(str(path))
    raise ValidationError(f"Unsupported file type '{suffix}' (expected .parquet or .csv)")


def read_dense(
    path: PathLike,
    columns: Optional[Sequence[str]] = None,
) -> Tuple[np.ndarray, List[str]]:
    """
    Read a dense matrix.

    Args:
        path: parquet / CSV file
        columns: variables to keep (default: every numeric column)

    Returns:
        (matrix, names): (m, n) column-major float64 array and column names
    """
    df = read_table(path)

    if columns is None:
        columns = [c for c in df.columns if df[c].dtype in _NUMERIC]
    else:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValidationError(f"Columns not found in {path}: {', '.join(missing)}")

    if not columns:
        raise ValidationError(f"No numeric columns in {path}")

    with _polars_errors(path, "convert columns of"):
        matrix = df.select(list(columns)).cast(pl.Float64).to_numpy()
    return np.asfortranarray(matrix), list(columns)


def read_triplets(
    path: PathLike,
    row: str = 'row',
    col: str = 'col',
    value: str = 'value',
    shape: Optional[Tuple[int, int]] = None,
    index_base: int = 0,
) -> SparseCOOMatrix:
    """
    Read a long-format triplet table into a sorted SparseCOOMatrix.

    Rows of the table may come in any order; they are sorted by column, then
    row. Duplicate (row, col) pairs are rejected.
    """
    df = read_table(path)
    missing = [c for c in (row, col, value) if c not in df.columns]
    if missing:
        raise ValidationError(f"Columns not found in {path}: {', '.join(missing)}")

    with _polars_errors(path, "convert triplets of"):
        triplet_values = df[value].cast(pl.Float64).to_numpy()
        triplet_rows = df[row].cast(pl.Int64).to_numpy()
        triplet_cols = df[col].cast(pl.Int64).to_numpy()

    return SparseCOOMatrix.from_triplets(
        values=triplet_values,
        rows=triplet_rows,
        cols=triplet_cols,
        shape=shape,
        index_base=index_base,
        sort=True,
    )


def read_weights(path: PathLike, column: Optional[str] = None) -> np.ndarray:
    """Read a weight vector (first column unless ``column`` is given)."""
    df = read_table(path)
    if column is None:
        column = df.columns[0]
    elif column not in df.columns:
        raise ValidationError(f"Column '{column}' not found in {path}")
    with _polars_errors(path, "convert weights of"):
        return df[column].cast(pl.Float64).to_numpy()
