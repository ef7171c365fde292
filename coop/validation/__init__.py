"""
coop Validation Module

Error taxonomy and eager input checks shared by every engine.

Exports:
    - CoopError: base class of every coop error
    - ValidationError: invalid input, detected before computation
    - InvalidWeightsError: negative / non-finite weights, or sum != 1
    - DimensionMismatchError: incompatible shapes or lengths
    - InvalidSparseInputError: unsorted or duplicated COO triplets
    - AllocationError: a working buffer could not be allocated
    - check_*: validators used at the top of each engine
"""

from .errors import (
    CoopError,
    ValidationError,
    InvalidWeightsError,
    DimensionMismatchError,
    InvalidSparseInputError,
    AllocationError,
)

from .input_validation import (
    check_dense_matrix,
    check_vector,
    check_vector_pair,
    check_output_buffer,
)

__all__ = [
    # Errors
    'CoopError',
    'ValidationError',
    'InvalidWeightsError',
    'DimensionMismatchError',
    'InvalidSparseInputError',
    'AllocationError',
    # Checks
    'check_dense_matrix',
    'check_vector',
    'check_vector_pair',
    'check_output_buffer',
]
