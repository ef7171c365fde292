"""
BLAS Backends
=============

The engines consume two black-box primitives:

- syrk:  C = alpha * X'X, upper triangle only (lower triangle left zero)
- gemm:  C = alpha * op(A) @ op(B)

Numeric contract shared by every backend:
- inputs are float64; column-major layout is preferred (no copy needed)
- syrk returns an (n, n) column-major array whose strictly-lower triangle is 0
- NaN/Inf in the input (or alpha) propagate into the output, never raise

Backends:
    scipy      scipy.linalg.blas (dsyrk / dgemm) - production
    reference  plain numpy matmul - testing and cross-checks

Usage:
    from coop.core.blas import get_backend

    blas = get_backend('scipy')
    upper = blas.syrk(x, alpha=1.0)
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Type

import numpy as np
from scipy.linalg import blas as _scipy_blas

logger = logging.getLogger(__name__)


class BlasBackend(ABC):
    """Capability interface: symmetric rank-k update and general matrix product."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def syrk(self, x: np.ndarray, alpha: float = 1.0) -> np.ndarray:
        """Upper triangle of alpha * X'X for an (m, n) matrix X."""

    @abstractmethod
    def gemm(
        self,
        a: np.ndarray,
        b: np.ndarray,
        alpha: float = 1.0,
        trans_a: bool = False,
        trans_b: bool = False,
    ) -> np.ndarray:
        """alpha * op(A) @ op(B)."""

    def inner(self, x: np.ndarray, y: np.ndarray) -> np.float64:
        """x'y for two equal-length vectors, as a (1 x m)(m x 1) product."""
        xm = np.asfortranarray(x, dtype=np.float64).reshape(-1, 1, order='F')
        ym = np.asfortranarray(y, dtype=np.float64).reshape(-1, 1, order='F')
        return np.float64(self.gemm(xm, ym, trans_a=True)[0, 0])


class ScipyBlasBackend(BlasBackend):
    """Level-3 BLAS through scipy.linalg.blas."""

    name = 'scipy'

    def syrk(self, x: np.ndarray, alpha: float = 1.0) -> np.ndarray:
        x = np.asfortranarray(x, dtype=np.float64)
        c = np.zeros((x.shape[1], x.shape[1]), dtype=np.float64, order='F')
        # trans=1: C = alpha * A'A with A of shape (m, n); lower=0 fills the upper triangle
        return _scipy_blas.dsyrk(float(alpha), x, c=c, trans=1, lower=0, overwrite_c=1)

    def gemm(self, a, b, alpha=1.0, trans_a=False, trans_b=False):
        a = np.asfortranarray(a, dtype=np.float64)
        b = np.asfortranarray(b, dtype=np.float64)
        return _scipy_blas.dgemm(
            float(alpha), a, b, trans_a=int(trans_a), trans_b=int(trans_b)
        )


class ReferenceBackend(BlasBackend):
    """Pure numpy fallback with the same contract."""

    name = 'reference'

    def syrk(self, x: np.ndarray, alpha: float = 1.0) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        with np.errstate(invalid='ignore', over='ignore'):
            full = alpha * (x.T @ x)
        return np.asfortranarray(np.triu(full))

    def gemm(self, a, b, alpha=1.0, trans_a=False, trans_b=False):
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        op_a = a.T if trans_a else a
        op_b = b.T if trans_b else b
        with np.errstate(invalid='ignore', over='ignore'):
            return np.asfortranarray(alpha * (op_a @ op_b))


_BACKENDS: Dict[str, Type[BlasBackend]] = {
    'scipy': ScipyBlasBackend,
    'reference': ReferenceBackend,
}

_INSTANCES: Dict[str, BlasBackend] = {}


def list_backends() -> List[str]:
    return sorted(_BACKENDS)


def get_backend(name: str = 'scipy') -> BlasBackend:
    """Get a (stateless, shared) backend instance by name."""
    if name not in _BACKENDS:
        available = ", ".join(list_backends())
        raise KeyError(f"Unknown BLAS backend: '{name}'. Available: {available}")
    if name not in _INSTANCES:
        _INSTANCES[name] = _BACKENDS[name]()
        logger.debug("Initialised BLAS backend %s", name)
    return _INSTANCES[name]
