"""
Tests for the triangle mirror.
"""

import numpy as np
import pytest

from coop.core.symmetrize import symmetrize


class TestSymmetrize:

    def test_upper_to_lower(self):
        c = np.triu(np.arange(16.0).reshape(4, 4))
        symmetrize(c, 'upper')
        np.testing.assert_array_equal(c, c.T)
        assert c[3, 0] == 3.0

    def test_lower_to_upper(self):
        c = np.tril(np.arange(9.0).reshape(3, 3))
        symmetrize(c, 'lower')
        np.testing.assert_array_equal(c, c.T)
        assert c[0, 2] == 6.0

    def test_diagonal_untouched(self):
        c = np.triu(np.ones((3, 3)))
        np.fill_diagonal(c, [7.0, 8.0, 9.0])
        symmetrize(c)
        np.testing.assert_array_equal(np.diagonal(c), [7.0, 8.0, 9.0])

    def test_nan_is_mirrored(self):
        c = np.zeros((2, 2))
        c[0, 1] = np.nan
        symmetrize(c, 'upper')
        assert np.isnan(c[1, 0])

    def test_returns_same_array(self):
        c = np.eye(2)
        assert symmetrize(c) is c

    def test_rejects_non_square(self):
        with pytest.raises(ValueError):
            symmetrize(np.zeros((2, 3)))

    def test_rejects_bad_source(self):
        with pytest.raises(ValueError):
            symmetrize(np.zeros((2, 2)), 'diagonal')
