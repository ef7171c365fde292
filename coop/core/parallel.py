"""
Size-gated parallel-for over column ranges.

Fork-join over disjoint ``[start, stop)`` column blocks with joblib threads
(``require='sharedmem'``), so every worker writes into the same output array.
Correctness depends on workers writing to disjoint columns only; the body
receives its block bounds and must stay inside them.

Below ``config.parallel_threshold`` (or with ``n_jobs=1``) the body runs once,
serially, over the full range.
"""

import logging
from typing import Callable, List, Tuple

from joblib import Parallel, delayed, effective_n_jobs

from coop.core.config import CoopConfig

logger = logging.getLogger(__name__)


def column_blocks(n: int, n_blocks: int) -> List[Tuple[int, int]]:
    """Split ``range(n)`` into at most ``n_blocks`` contiguous, non-empty blocks."""
    n_blocks = max(1, min(n_blocks, n))
    base, extra = divmod(n, n_blocks)
    blocks = []
    start = 0
    for b in range(n_blocks):
        stop = start + base + (1 if b < extra else 0)
        if stop > start:
            blocks.append((start, stop))
        start = stop
    return blocks


def parallel_for(
    body: Callable[[int, int], None],
    n: int,
    size: int,
    config: CoopConfig,
    label: str = "columns",
) -> None:
    """
    Run ``body(start, stop)`` over column blocks covering ``range(n)``.

    Args:
        body: writes results for columns [start, stop) only
        n: number of columns
        size: problem size compared against config.parallel_threshold
        config: engine configuration
        label: for log messages
    """
    if n <= 0:
        return

    if not config.use_parallel(size) or n == 1:
        logger.debug("%s: serial pass over %d columns (size=%d)", label, n, size)
        body(0, n)
        return

    n_workers = effective_n_jobs(config.n_jobs)
    blocks = column_blocks(n, n_workers)
    if len(blocks) == 1:
        body(0, n)
        return

    logger.debug(
        "%s: %d blocks on %d threads (size=%d > threshold=%d)",
        label, len(blocks), n_workers, size, config.parallel_threshold,
    )
    Parallel(n_jobs=config.n_jobs, require='sharedmem')(
        delayed(body)(start, stop) for start, stop in blocks
    )
