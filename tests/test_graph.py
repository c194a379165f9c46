"""
test_graph.py - Tests for Quantile-Thresholded Graphs

Tests cover:
- Threshold value against numpy quantiles
- Strict cut on a hand-computed matrix
- Monotone sparsification as q grows
- No self-loops, i < j, weights above the threshold
- Off-diagonal quantile option
- Quantile validation
"""

import pytest
import numpy as np

from precision_lab import (
    estimate_correlation,
    spectral_decomposition,
    regularized_precision,
    quantile_threshold,
    build_graph,
    InvalidInputError,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def block_precision(block_returns):
    returns, labels = block_returns
    decomp = spectral_decomposition(estimate_correlation(returns, labels))
    return regularized_precision(decomp, rank=3)


@pytest.fixture
def noise_precision(noise_returns):
    decomp = spectral_decomposition(estimate_correlation(noise_returns))
    return regularized_precision(decomp, rank=noise_returns.shape[1])


@pytest.fixture
def tridiagonal_precision(tridiagonal_corr):
    """
    Normalized inverse: diagonal 1, P[0,1] = P[1,2] = -1/sqrt(3), P[0,2] = 1/3.
    """
    X, _ = tridiagonal_corr
    return regularized_precision(spectral_decomposition(X), rank=3)


# =============================================================================
# Tests
# =============================================================================

class TestQuantileThreshold:
    """Tests for quantile_threshold()."""

    def test_matches_numpy_quantile(self, block_precision):
        P = block_precision.matrix
        for q in (0.1, 0.5, 0.9):
            assert quantile_threshold(block_precision, q) == np.quantile(P.ravel(), q)

    def test_off_diagonal_sample(self, block_precision):
        P = block_precision.matrix
        off = P[~np.eye(12, dtype=bool)]
        t = quantile_threshold(block_precision, 0.8, include_diagonal=False)
        assert t == pytest.approx(np.quantile(off, 0.8))

    def test_diagonal_pulls_threshold_up(self, noise_precision):
        """Diagonal entries are the largest, so including them never lowers t."""
        for q in (0.2, 0.5, 0.9):
            with_diag = quantile_threshold(noise_precision, q)
            without = quantile_threshold(noise_precision, q, include_diagonal=False)
            assert with_diag >= without

    @pytest.mark.parametrize("q", [0.0, 1.0, -0.5, 2.0])
    def test_invalid_quantile(self, block_precision, q):
        with pytest.raises(InvalidInputError, match=r"quantile must be in \(0, 1\)"):
            quantile_threshold(block_precision, q)


class TestBuildGraph:
    """Tests for build_graph()."""

    def test_strict_cut(self, tridiagonal_precision):
        """
        Sorted entries: four -0.577, two 1/3, three 1.
        q=0.5 lands exactly on 1/3, which is not strictly above itself.
        """
        graph = build_graph(tridiagonal_precision, 0.5)
        assert graph.threshold == pytest.approx(1 / 3)
        assert graph.n_edges == 0

    def test_positive_pair_survives(self, tridiagonal_precision):
        graph = build_graph(tridiagonal_precision, 0.3)
        assert graph.edge_set() == {(0, 2)}
        assert graph.edges[0].weight == pytest.approx(1 / 3)

    def test_edge_invariants(self, noise_precision):
        graph = build_graph(noise_precision, 0.6)
        P = noise_precision.matrix
        assert graph.n_edges > 0
        for e in graph.edges:
            assert e.i < e.j
            assert e.weight > graph.threshold
            assert e.weight == P[e.i, e.j]

    def test_every_entry_above_threshold_is_kept(self, noise_precision):
        graph = build_graph(noise_precision, 0.7)
        P = noise_precision.matrix
        ii, jj = np.triu_indices(P.shape[0], k=1)
        expected = {(int(i), int(j)) for i, j in zip(ii, jj) if P[i, j] > graph.threshold}
        assert graph.edge_set() == expected

    def test_monotone_sparsification(self, noise_precision):
        """Raising q never adds an edge."""
        previous = None
        for q in np.linspace(0.1, 0.99, 15):
            edges = build_graph(noise_precision, float(q)).edge_set()
            if previous is not None:
                assert edges <= previous
            previous = edges

    def test_labels_and_metadata(self, block_precision):
        graph = build_graph(block_precision, 0.9)
        assert graph.labels == block_precision.labels
        assert graph.quantile == 0.9
        assert graph.n_nodes == 12

    def test_high_quantile_keeps_block_edges(self, block_precision):
        """At q=0.8 the surviving edges are within-block pairs."""
        graph = build_graph(block_precision, 0.8)
        assert graph.n_edges > 0
        for e in graph.edges:
            assert e.i // 4 == e.j // 4

    def test_invalid_quantile(self, block_precision):
        with pytest.raises(InvalidInputError):
            build_graph(block_precision, 1.0)
