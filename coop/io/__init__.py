"""Table I/O for coop (polars)."""

from coop.io.reader import read_dense, read_table, read_triplets, read_weights
from coop.io.writer import matrix_frame, write_matrix

__all__ = [
    'read_dense',
    'read_table',
    'read_triplets',
    'read_weights',
    'matrix_frame',
    'write_matrix',
]
