"""
Engine Configuration
====================

Explicit, immutable configuration passed to every engine call.

Nothing here is process-wide mutable state: engines take a ``config=``
keyword and fall back to ``DEFAULT_CONFIG`` when it is None.

Usage:
    from coop.core.config import CoopConfig, load_config

    config = CoopConfig(parallel_threshold=50_000, n_jobs=4)
    config = load_config('coop.yaml')
    serial = config.with_overrides(n_jobs=1)

YAML layout (fields at top level, or nested under ``coop:``):

    coop:
      parallel_threshold: 1000
      n_jobs: -1
      sparse_epsilon: 1.0e-10
      weight_tolerance: 1.0e-10
      backend: scipy
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from coop.validation.errors import ValidationError


# Minimum problem size (m*n dense, nnz*n sparse) before threads are engaged
DEFAULT_PARALLEL_THRESHOLD: int = 1000

# |x'y| at or below this is treated as numerically orthogonal in sparse cosine
DEFAULT_SPARSE_EPSILON: float = 1e-10

# Absolute tolerance on sum(weights) == 1
DEFAULT_WEIGHT_TOLERANCE: float = 1e-10

BACKENDS = ('scipy', 'reference')


@dataclass(frozen=True)
class CoopConfig:
    """Read-only configuration for one engine call."""
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD
    n_jobs: int = -1
    sparse_epsilon: float = DEFAULT_SPARSE_EPSILON
    weight_tolerance: float = DEFAULT_WEIGHT_TOLERANCE
    backend: str = 'scipy'

    def __post_init__(self):
        errors = []
        if not isinstance(self.parallel_threshold, int) or self.parallel_threshold < 0:
            errors.append(f"parallel_threshold must be a non-negative int, got {self.parallel_threshold!r}")
        if not isinstance(self.n_jobs, int) or self.n_jobs == 0:
            errors.append(f"n_jobs must be a non-zero int, got {self.n_jobs!r}")
        if not (self.sparse_epsilon >= 0.0):
            errors.append(f"sparse_epsilon must be >= 0, got {self.sparse_epsilon!r}")
        if not (self.weight_tolerance >= 0.0):
            errors.append(f"weight_tolerance must be >= 0, got {self.weight_tolerance!r}")
        if self.backend not in BACKENDS:
            errors.append(f"backend must be one of {BACKENDS}, got {self.backend!r}")
        if errors:
            raise ValidationError(errors)

    @property
    def parallel_enabled(self) -> bool:
        return self.n_jobs != 1

    def use_parallel(self, size: int) -> bool:
        """True when a problem of this size should fan out across threads."""
        return self.parallel_enabled and size > self.parallel_threshold

    def with_overrides(self, **overrides: Any) -> 'CoopConfig':
        """Return a copy with some fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'CoopConfig':
        """Build a config from a plain dict, rejecting unknown keys."""
        if not raw:
            return cls()
        if 'coop' in raw and isinstance(raw['coop'], dict):
            raw = raw['coop']

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(unknown)}")

        kwargs = dict(raw)
        # YAML gives ints for '1000' but floats for '1.0e-10'; coerce the int fields
        for key in ('parallel_threshold', 'n_jobs'):
            if key in kwargs and isinstance(kwargs[key], float) and kwargs[key].is_integer():
                kwargs[key] = int(kwargs[key])
        for key in ('sparse_epsilon', 'weight_tolerance'):
            if key in kwargs:
                kwargs[key] = float(kwargs[key])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_CONFIG = CoopConfig()


def resolve_config(config: Optional[CoopConfig]) -> CoopConfig:
    """Return ``config`` or the default."""
    return DEFAULT_CONFIG if config is None else config


def load_config(config_path: Union[str, Path]) -> CoopConfig:
    """Load configuration from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if raw is not None and not isinstance(raw, dict):
        raise ValidationError(f"Config file {config_path} must hold a mapping")

    return CoopConfig.from_dict(raw)
