"""
coop: symmetric similarity and association matrices.

Public API:
    from coop import cosine, pcor, covar

    cosine(x)                      # (m, n) dense -> (n, n)
    cosine(x, y)                   # two vectors  -> float
    cosine(SparseCOOMatrix(...))   # sorted COO   -> (n, n)
    covar(x, weights=w, method='ml')

Layers:
    coop.core        Engines: column statistics, symmetrizer, dense rank-update,
                     vector-pair, weighted covariance, sparse COO
    coop.validation  Error taxonomy and eager input checks
    coop.io          Parquet / CSV readers and writers (polars)
    coop.cli         Command line: python -m coop {cosine,pcor,covar}

Layout: rows are observations, columns are variables. Engines work on
column-major (Fortran-ordered) buffers internally.
"""

from coop.api import compute, cosine, covar, pcor
from coop.core.config import CoopConfig, DEFAULT_CONFIG, load_config
from coop.core.types import CovarianceMethod, Mode, SparseCOOMatrix, WeightVector
from coop.validation.errors import (
    AllocationError,
    CoopError,
    DimensionMismatchError,
    InvalidSparseInputError,
    InvalidWeightsError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    'compute',
    'cosine',
    'covar',
    'pcor',
    'CoopConfig',
    'DEFAULT_CONFIG',
    'load_config',
    'CovarianceMethod',
    'Mode',
    'SparseCOOMatrix',
    'WeightVector',
    'AllocationError',
    'CoopError',
    'DimensionMismatchError',
    'InvalidSparseInputError',
    'InvalidWeightsError',
    'ValidationError',
]
