"""
coop Core
=========

Pure computation engines. Arrays in, arrays (or scalars) out, no file I/O.

Structure:
    config.py      - CoopConfig: thresholds, epsilon, backend (explicit, immutable)
    types.py       - WeightVector, SparseCOOMatrix, ColumnStats, Mode, CovarianceMethod
    blas.py        - syrk / gemm backends (scipy.linalg.blas, numpy reference)
    parallel.py    - size-gated parallel-for over column blocks (joblib threads)
    stats.py       - column means, centered norms, standard deviations
    symmetrize.py  - mirror one triangle onto the other
    dense.py       - dense cosine via rank-k update
    vector.py      - vector-pair cosine / correlation / covariance
    weighted.py    - weighted covariance and correlation
    sparse.py      - sorted-COO cosine / crossproduct / covariance / correlation
"""

from coop.core.config import CoopConfig, DEFAULT_CONFIG, load_config
from coop.core.types import (
    ColumnStats,
    CovarianceMethod,
    Mode,
    SparseCOOMatrix,
    WeightVector,
)
from coop.core.blas import BlasBackend, get_backend, list_backends
from coop.core.stats import (
    column_means,
    column_sds,
    column_sq_norms,
    column_stats,
    correction_factor,
)
from coop.core.symmetrize import symmetrize
from coop.core.dense import cosine_mat, crossprod
from coop.core.vector import cosine_vecvec, covar_vecvec, pcor_vecvec
from coop.core.weighted import covar_mat, pcor_mat
from coop.core.sparse import (
    column_bounds,
    sparse_cosine,
    sparse_covar,
    sparse_crossprod,
    sparse_pcor,
)

__all__ = [
    # Configuration
    'CoopConfig',
    'DEFAULT_CONFIG',
    'load_config',
    # Data model
    'ColumnStats',
    'CovarianceMethod',
    'Mode',
    'SparseCOOMatrix',
    'WeightVector',
    # Backends
    'BlasBackend',
    'get_backend',
    'list_backends',
    # Column statistics
    'column_means',
    'column_sds',
    'column_sq_norms',
    'column_stats',
    'correction_factor',
    # Engines
    'symmetrize',
    'cosine_mat',
    'crossprod',
    'cosine_vecvec',
    'covar_vecvec',
    'pcor_vecvec',
    'covar_mat',
    'pcor_mat',
    'column_bounds',
    'sparse_cosine',
    'sparse_covar',
    'sparse_crossprod',
    'sparse_pcor',
]
