"""
Serial vs. parallel agreement.

Workers write disjoint column blocks, so the fan-out must not change any
result beyond summation-order noise.
"""

import numpy as np
from scipy import sparse

from coop.core.dense import cosine_mat
from coop.core.parallel import column_blocks, parallel_for
from coop.core.sparse import sparse_cosine, sparse_pcor
from coop.core.types import SparseCOOMatrix
from coop.core.weighted import covar_mat, pcor_mat


class TestColumnBlocks:

    def test_blocks_cover_range(self):
        blocks = column_blocks(10, 3)
        assert blocks == [(0, 4), (4, 7), (7, 10)]

    def test_more_blocks_than_columns(self):
        assert column_blocks(2, 8) == [(0, 1), (1, 2)]

    def test_single_block(self):
        assert column_blocks(5, 1) == [(0, 5)]


class TestParallelFor:

    def test_every_column_visited_once(self, parallel_config):
        hits = np.zeros(17, dtype=int)

        def body(start, stop):
            hits[start:stop] += 1

        parallel_for(body, 17, 10_000, parallel_config)
        np.testing.assert_array_equal(hits, np.ones(17, dtype=int))

    def test_below_threshold_runs_serially(self, serial_config):
        calls = []
        parallel_for(lambda start, stop: calls.append((start, stop)), 9, 10, serial_config)
        assert calls == [(0, 9)]


class TestEnginesAgree:
    """The same call with and without threads."""

    def test_dense_cosine(self, rng, serial_config, parallel_config):
        x = rng.standard_normal((50, 12))
        np.testing.assert_allclose(
            cosine_mat(x, config=parallel_config),
            cosine_mat(x, config=serial_config),
            rtol=1e-13,
        )

    def test_weighted(self, rng, serial_config, parallel_config):
        x = rng.standard_normal((40, 9))
        w = rng.random(40)
        w /= w.sum()
        np.testing.assert_allclose(
            covar_mat(x, weights=w, config=parallel_config),
            covar_mat(x, weights=w, config=serial_config),
            rtol=1e-13,
        )
        np.testing.assert_allclose(
            pcor_mat(x, config=parallel_config),
            pcor_mat(x, config=serial_config),
            rtol=1e-13,
        )

    def test_sparse(self, serial_config, parallel_config):
        mat = sparse.random(60, 15, density=0.2, format='csc', random_state=7)
        coo = SparseCOOMatrix.from_scipy(mat)
        np.testing.assert_allclose(
            sparse_cosine(coo, config=parallel_config),
            sparse_cosine(coo, config=serial_config),
            rtol=1e-13,
        )
        np.testing.assert_allclose(
            sparse_pcor(coo, config=parallel_config),
            sparse_pcor(coo, config=serial_config),
            rtol=1e-13,
        )
