"""
Error taxonomy for coop engines.

    CoopError
    ├── ValidationError          (also a ValueError)
    │   ├── InvalidWeightsError
    │   ├── DimensionMismatchError
    │   └── InvalidSparseInputError
    └── AllocationError          (also a MemoryError)

Numerical degeneracy (zero-norm columns, near-zero sparse dot products) is
NOT an error. It is absorbed into the output as NaN or zero.
"""

from typing import List, Optional, Union


class CoopError(Exception):
    """Base class for all coop errors."""


class ValidationError(CoopError, ValueError):
    """Raised when input validation fails, before any computation."""

    def __init__(self, errors: Union[str, List[str]], warnings: Optional[List[str]] = None):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        self.warnings = warnings or []

        message = "Input validation failed:\n" + "\n".join(
            f"  ERROR: {e}" for e in self.errors
        )
        if self.warnings:
            message += "\n" + "\n".join(f"  WARNING: {w}" for w in self.warnings)

        super().__init__(message)


class InvalidWeightsError(ValidationError):
    """Weight vector is negative somewhere, non-finite, or does not sum to 1."""


class DimensionMismatchError(ValidationError):
    """Vector lengths or matrix shapes are incompatible."""


class InvalidSparseInputError(ValidationError):
    """COO triplets are unsorted or contain duplicate (row, col) pairs."""


class AllocationError(CoopError, MemoryError):
    """A working copy, scratch buffer or output could not be allocated."""

    def __init__(self, what: str, nbytes: Optional[int] = None):
        self.what = what
        self.nbytes = nbytes
        if nbytes is not None:
            message = f"Failed to allocate {what} ({nbytes:,} bytes)"
        else:
            message = f"Failed to allocate {what}"
        super().__init__(message)
