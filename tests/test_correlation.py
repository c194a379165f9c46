"""
test_correlation.py - Tests for Sample Correlation Estimation

Tests cover:
- Agreement with numpy's corrcoef
- Exact unit diagonal and symmetry
- Labels
- Input validation (shape, missing values, constant columns)
"""

import pytest
import numpy as np

from precision_lab import estimate_correlation, InvalidInputError


class TestEstimateCorrelation:
    """Tests for estimate_correlation()."""

    def test_matches_corrcoef(self, noise_returns, tolerance):
        corr = estimate_correlation(noise_returns)
        expected = np.corrcoef(noise_returns, rowvar=False)
        np.testing.assert_allclose(corr.matrix, expected, **tolerance)

    def test_unit_diagonal_and_symmetry(self, block_returns):
        returns, labels = block_returns
        corr = estimate_correlation(returns, labels)
        assert np.all(np.diag(corr.matrix) == 1.0)
        assert np.array_equal(corr.matrix, corr.matrix.T)
        assert np.max(np.abs(corr.matrix)) <= 1.0

    def test_labels_and_observations(self, block_returns):
        returns, labels = block_returns
        corr = estimate_correlation(returns, labels)
        assert corr.labels == tuple(labels)
        assert corr.n_observations == returns.shape[0]
        assert corr.size == returns.shape[1]

    def test_identical_columns(self, pair_returns):
        """Duplicated series have correlation exactly 1 after clipping."""
        returns, labels = pair_returns
        corr = estimate_correlation(returns, labels)
        assert corr.matrix[0, 1] == pytest.approx(1.0)
        assert corr.matrix[2, 3] == pytest.approx(1.0)
        assert abs(corr.matrix[0, 2]) < 0.2

    def test_scale_invariance(self, noise_returns, tolerance):
        scaled = noise_returns * np.arange(1, noise_returns.shape[1] + 1) + 3.0
        a = estimate_correlation(noise_returns).matrix
        b = estimate_correlation(scaled).matrix
        np.testing.assert_allclose(a, b, **tolerance)


class TestCorrelationValidation:
    """Tests for input validation."""

    def test_1d_rejected(self):
        with pytest.raises(InvalidInputError, match="2D"):
            estimate_correlation(np.ones(10))

    def test_single_observation_rejected(self):
        with pytest.raises(InvalidInputError, match="at least 2 observations"):
            estimate_correlation(np.ones((1, 3)))

    def test_single_series_rejected(self, rng):
        with pytest.raises(InvalidInputError, match="at least 2 series"):
            estimate_correlation(rng.standard_normal((10, 1)))

    def test_nan_rejected(self, noise_returns):
        returns = noise_returns.copy()
        returns[5, 2] = np.nan
        with pytest.raises(InvalidInputError, match="NaN"):
            estimate_correlation(returns)

    def test_constant_column_rejected(self, noise_returns):
        returns = noise_returns.copy()
        returns[:, 3] = 0.01
        labels = [f"X{i}" for i in range(returns.shape[1])]
        with pytest.raises(InvalidInputError, match="zero-variance.*X3"):
            estimate_correlation(returns, labels)

    def test_constant_column_default_labels(self, rng):
        """Columns equal to one repeated value are caught whatever the value."""
        returns = rng.standard_normal((1000, 3))
        returns[:, 0] = 0.1
        with pytest.raises(InvalidInputError, match="zero-variance.*S0"):
            estimate_correlation(returns)

    def test_label_length_mismatch(self, noise_returns):
        with pytest.raises(InvalidInputError, match="labels length"):
            estimate_correlation(noise_returns, ["a", "b"])
