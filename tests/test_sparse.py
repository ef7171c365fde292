"""
Tests for the sparse COO engine and the SparseCOOMatrix container.
"""

import numpy as np
import pytest
from scipy import sparse

from coop.core.dense import cosine_mat
from coop.core.sparse import (
    column_bounds,
    column_chunks,
    sparse_cosine,
    sparse_covar,
    sparse_crossprod,
    sparse_pcor,
)
from coop.core.config import CoopConfig
from coop.core.types import SparseCOOMatrix
from coop.core.weighted import covar_mat, pcor_mat
from coop.validation.errors import (
    DimensionMismatchError,
    InvalidSparseInputError,
    InvalidWeightsError,
    ValidationError,
)


def _random_coo(m=30, n=8, density=0.3, seed=42):
    mat = sparse.random(m, n, density=density, format='coo', random_state=seed)
    # keep values well away from zero so no product falls under epsilon
    mat.data = mat.data + 0.5
    return SparseCOOMatrix.from_scipy(mat)


class TestSparseCOOMatrix:
    """Container invariants."""

    def test_unsorted_columns_rejected(self):
        with pytest.raises(InvalidSparseInputError):
            SparseCOOMatrix(values=[1.0, 1.0], rows=[0, 0], cols=[1, 0], shape=(2, 2))

    def test_unsorted_rows_rejected(self):
        with pytest.raises(InvalidSparseInputError):
            SparseCOOMatrix(values=[1.0, 1.0], rows=[1, 0], cols=[0, 0], shape=(2, 2))

    def test_duplicates_rejected(self):
        with pytest.raises(InvalidSparseInputError):
            SparseCOOMatrix(values=[1.0, 2.0], rows=[0, 0], cols=[0, 0], shape=(2, 2))

    def test_out_of_range_rejected(self):
        with pytest.raises(DimensionMismatchError):
            SparseCOOMatrix(values=[1.0], rows=[3], cols=[0], shape=(2, 2))

    def test_length_mismatch_rejected(self):
        with pytest.raises(DimensionMismatchError):
            SparseCOOMatrix(values=[1.0, 2.0], rows=[0], cols=[0], shape=(2, 2))

    def test_from_triplets_sorts(self):
        coo = SparseCOOMatrix.from_triplets(
            values=[3.0, 1.0, 2.0], rows=[1, 0, 0], cols=[1, 0, 1], sort=True,
        )
        np.testing.assert_array_equal(coo.cols, [0, 1, 1])
        np.testing.assert_array_equal(coo.rows, [0, 0, 1])
        np.testing.assert_array_equal(coo.values, [1.0, 2.0, 3.0])
        assert coo.shape == (2, 2)

    def test_one_based_indices(self):
        coo = SparseCOOMatrix.from_triplets(
            values=[1.0, 1.0], rows=[1, 2], cols=[1, 2], shape=(3, 3), index_base=1,
        )
        np.testing.assert_array_equal(coo.rows, [0, 1])
        np.testing.assert_array_equal(coo.cols, [0, 1])

    def test_bad_index_base(self):
        with pytest.raises(DimensionMismatchError):
            SparseCOOMatrix.from_triplets([1.0], [0], [0], index_base=2)

    def test_from_scipy_sums_duplicates(self):
        mat = sparse.coo_matrix(([1.0, 2.0, 5.0], ([0, 0, 1], [1, 1, 0])), shape=(2, 2))
        coo = SparseCOOMatrix.from_scipy(mat)
        np.testing.assert_array_equal(coo.to_dense(), [[0.0, 3.0], [5.0, 0.0]])

    def test_to_dense_roundtrip_through_scipy(self):
        coo = _random_coo(10, 4)
        np.testing.assert_array_equal(coo.to_scipy().toarray(), coo.to_dense())


class TestColumnBounds:

    def test_runs_with_empty_columns(self):
        starts = column_bounds(np.array([0, 0, 2, 2, 2]), 4)
        np.testing.assert_array_equal(starts, [0, 2, 2, 5, 5])

    def test_no_triplets(self):
        np.testing.assert_array_equal(column_bounds(np.array([], dtype=np.int64), 3), [0, 0, 0, 0])


class TestSparseCosine:
    """Sorted-COO cosine similarity."""

    def test_empty_column_scenario(self):
        """3x3 with only (0,0) and (1,1) stored; column 2 is empty."""
        coo = SparseCOOMatrix(values=[1.0, 1.0], rows=[0, 1], cols=[0, 1], shape=(3, 3))
        c = sparse_cosine(coo)

        assert np.all(np.isnan(c[2, :]))
        assert np.all(np.isnan(c[:, 2]))
        assert c[0, 1] == 0.0
        assert c[1, 0] == 0.0
        assert c[0, 0] == 1.0
        assert c[1, 1] == 1.0

    def test_agrees_with_dense(self):
        coo = _random_coo()
        np.testing.assert_allclose(sparse_cosine(coo), cosine_mat(coo.to_dense()), atol=1e-12)

    def test_empty_column_matches_dense_nan_pattern(self):
        coo = SparseCOOMatrix(values=[1.0, 2.0, 3.0], rows=[0, 1, 2], cols=[0, 0, 2], shape=(3, 3))
        s = sparse_cosine(coo)
        d = cosine_mat(coo.to_dense())
        np.testing.assert_array_equal(np.isnan(s), np.isnan(d))

    def test_exactly_symmetric(self):
        c = sparse_cosine(_random_coo(40, 10))
        np.testing.assert_array_equal(c, c.T)

    def test_epsilon_suppression(self):
        """A dot product at or below epsilon is stored as exact zero."""
        coo = SparseCOOMatrix(
            values=[1.0, 1.0, 1e-11, 1.0],
            rows=[0, 1, 0, 2],
            cols=[0, 0, 1, 1],
            shape=(3, 2),
        )
        assert sparse_cosine(coo)[0, 1] == 0.0

        loose = CoopConfig(sparse_epsilon=0.0)
        assert sparse_cosine(coo, config=loose)[0, 1] > 0.0

    def test_out_buffer(self):
        coo = _random_coo(12, 3)
        out = np.zeros((3, 3))
        assert sparse_cosine(coo, out=out) is out
        np.testing.assert_allclose(out, cosine_mat(coo.to_dense()), atol=1e-12)

    def test_wrong_out_shape_untouched(self):
        coo = _random_coo(12, 3)
        out = np.full((4, 4), 9.0)
        with pytest.raises(DimensionMismatchError):
            sparse_cosine(coo, out=out)
        np.testing.assert_array_equal(out, np.full((4, 4), 9.0))

    def test_requires_coo_container(self):
        with pytest.raises(ValidationError):
            sparse_cosine(np.eye(3))

    def test_one_based_input_matches_zero_based(self):
        zero = SparseCOOMatrix.from_triplets([1.0, 2.0, 3.0], [0, 1, 1], [0, 0, 1], shape=(2, 2))
        one = SparseCOOMatrix.from_triplets([1.0, 2.0, 3.0], [1, 2, 2], [1, 1, 2], shape=(2, 2), index_base=1)
        np.testing.assert_array_equal(sparse_cosine(zero), sparse_cosine(one))


class TestSparseCrossprodCovariance:
    """Crossproduct, covariance and correlation without densifying."""

    def test_crossprod(self):
        coo = _random_coo(20, 5)
        x = coo.to_dense()
        np.testing.assert_allclose(sparse_crossprod(coo), x.T @ x, atol=1e-12)

    def test_weighted_crossprod(self, rng):
        coo = _random_coo(20, 5)
        x = coo.to_dense()
        w = rng.random(20)
        w /= w.sum()
        np.testing.assert_allclose(sparse_crossprod(coo, weights=w), x.T @ (w[:, np.newaxis] * x), atol=1e-12)

    def test_covar_matches_dense(self):
        coo = _random_coo()
        x = coo.to_dense()
        np.testing.assert_allclose(sparse_covar(coo), covar_mat(x), atol=1e-12)
        np.testing.assert_allclose(sparse_covar(coo, method='ml'), covar_mat(x, method='ml'), atol=1e-12)

    def test_weighted_covar_matches_dense(self, rng):
        coo = _random_coo(25, 6)
        w = rng.random(25)
        w /= w.sum()
        np.testing.assert_allclose(
            sparse_covar(coo, weights=w),
            covar_mat(coo.to_dense(), weights=w),
            atol=1e-12,
        )

    def test_pcor_matches_dense(self):
        coo = _random_coo()
        np.testing.assert_allclose(sparse_pcor(coo), pcor_mat(coo.to_dense()), atol=1e-12)

    def test_empty_column_covariance_and_correlation(self):
        coo = SparseCOOMatrix(values=[1.0, 2.0, 4.0], rows=[0, 1, 2], cols=[0, 0, 1], shape=(3, 3))
        cov = sparse_covar(coo)
        cor = sparse_pcor(coo)

        np.testing.assert_array_equal(cov[2, :], np.zeros(3))
        np.testing.assert_array_equal(cov[:, 2], np.zeros(3))
        assert np.all(np.isnan(cor[2, :]))
        assert np.all(np.isnan(cor[:, 2]))
        assert cor[0, 0] == 1.0


class TestColumnChunks:
    """Windows over later columns stay bounded by the budget."""

    def test_windows_cover_columns_in_order(self):
        starts = column_bounds(np.array([0, 0, 1, 2, 2, 2, 4, 5]), 6)
        chunks = list(column_chunks(starts, 1, 2))

        assert chunks[0][0] == 1
        assert chunks[-1][1] == 6
        for (_, stop), (start, _) in zip(chunks, chunks[1:]):
            assert stop == start

    def test_window_size_bounded(self):
        coo = _random_coo(m=6, n=40, density=0.5)
        starts = column_bounds(coo.cols, coo.n)
        for c0, c1 in column_chunks(starts, 0, coo.m):
            held = starts[c1] - starts[c0]
            assert held <= coo.m or c1 == c0 + 1

    def test_many_columns_few_rows(self):
        """Later columns span many windows; results still match dense."""
        coo = _random_coo(m=4, n=60, density=0.6, seed=11)
        x = coo.to_dense()
        np.testing.assert_allclose(sparse_cosine(coo), cosine_mat(x), atol=1e-12)
        np.testing.assert_allclose(sparse_crossprod(coo), x.T @ x, atol=1e-12)
        np.testing.assert_allclose(sparse_covar(coo), covar_mat(x), atol=1e-12)


class TestSparseCovarianceAccuracy:
    """Centered accumulation keeps precision for large means."""

    def test_large_offset_fully_stored(self, rng):
        x = rng.standard_normal((200, 3)) + 1e8
        coo = SparseCOOMatrix.from_scipy(sparse.csc_matrix(x))
        c = sparse_covar(coo)

        np.testing.assert_allclose(c, covar_mat(x), rtol=1e-6, atol=1e-6)
        np.testing.assert_allclose(c, np.cov(x, rowvar=False), rtol=1e-6, atol=1e-6)
        np.testing.assert_allclose(sparse_pcor(coo), np.corrcoef(x, rowvar=False), atol=1e-6)

    def test_large_offset_with_zeros(self, rng):
        x = rng.standard_normal((60, 4)) + 1e4
        x[rng.random((60, 4)) < 0.3] = 0.0
        coo = SparseCOOMatrix.from_scipy(sparse.csc_matrix(x))

        np.testing.assert_allclose(sparse_covar(coo), covar_mat(x), rtol=1e-9, atol=1e-4)
        np.testing.assert_allclose(sparse_pcor(coo), pcor_mat(x), rtol=1e-9, atol=1e-10)

    def test_large_offset_weighted(self, rng):
        x = rng.standard_normal((80, 3)) + 1e6
        x[rng.random((80, 3)) < 0.2] = 0.0
        w = rng.random(80)
        w /= w.sum()
        coo = SparseCOOMatrix.from_scipy(sparse.csc_matrix(x))

        np.testing.assert_allclose(
            sparse_covar(coo, weights=w),
            covar_mat(x, weights=w),
            rtol=1e-8,
            atol=1e-2,
        )

    @pytest.mark.parametrize('value', [0.1, 3.3, 2.5, 1e8 / 3])
    @pytest.mark.parametrize('m', [7, 13])
    def test_constant_stored_column(self, value, m):
        """A fully stored constant column has zero variance and NaN correlation."""
        x = np.column_stack([np.full(m, value), np.arange(1.0, m + 1.0)])
        coo = SparseCOOMatrix.from_scipy(sparse.csc_matrix(x))

        cov = sparse_covar(coo)
        assert cov[0, 0] == 0.0
        assert cov[0, 1] == 0.0
        assert cov[1, 1] == pytest.approx(np.var(x[:, 1], ddof=1))

        cor = sparse_pcor(coo)
        assert np.all(np.isnan(cor[0, :]))
        assert np.all(np.isnan(cor[:, 0]))
        assert cor[1, 1] == 1.0
        np.testing.assert_array_equal(np.isnan(cor), np.isnan(pcor_mat(x)))

    def test_variances_never_negative(self, rng):
        x = np.round(rng.standard_normal((30, 6)), 1) + 1e7
        x[rng.random((30, 6)) < 0.1] = 0.0
        coo = SparseCOOMatrix.from_scipy(sparse.csc_matrix(x))
        assert np.all(np.diagonal(sparse_covar(coo)) >= 0.0)


class TestSparseWeightValidation:
    """Bad weights fail before any work and leave out untouched."""

    @pytest.mark.parametrize('engine', [sparse_covar, sparse_pcor, sparse_crossprod])
    def test_sum_not_one_leaves_out_untouched(self, engine):
        coo = SparseCOOMatrix(values=[1.0, 2.0, 3.0], rows=[0, 1, 1], cols=[0, 0, 1], shape=(2, 2))
        out = np.full((2, 2), 7.0)

        with pytest.raises(InvalidWeightsError):
            engine(coo, weights=[0.5, 0.6], out=out)
        np.testing.assert_array_equal(out, np.full((2, 2), 7.0))

    @pytest.mark.parametrize('engine', [sparse_covar, sparse_pcor, sparse_crossprod])
    def test_negative_weight(self, engine):
        coo = SparseCOOMatrix(values=[1.0, 2.0], rows=[0, 1], cols=[0, 1], shape=(2, 2))
        with pytest.raises(InvalidWeightsError):
            engine(coo, weights=[1.5, -0.5])

    def test_length_mismatch(self):
        coo = SparseCOOMatrix(values=[1.0, 2.0], rows=[0, 1], cols=[0, 1], shape=(2, 2))
        out = np.full((2, 2), 7.0)
        with pytest.raises(DimensionMismatchError):
            sparse_covar(coo, weights=[0.25, 0.25, 0.5], out=out)
        np.testing.assert_array_equal(out, np.full((2, 2), 7.0))
