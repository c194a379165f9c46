"""
conftest.py - Pytest Configuration and Shared Fixtures

This file contains fixtures used across all test modules. Fixtures are
organized by category:
- Random number generators (for reproducibility)
- Returns matrices with known block structure
- Small matrices with hand-computed inverses
"""

import pytest
import numpy as np


# =============================================================================
# RANDOM NUMBER GENERATORS
# =============================================================================

@pytest.fixture
def rng():
    """
    Provide a seeded random number generator for reproducible tests.

    All tests should use this fixture (or derive from it) to ensure
    reproducibility across runs.
    """
    return np.random.default_rng(seed=42)


# =============================================================================
# RETURNS DATA
# =============================================================================

@pytest.fixture
def pair_returns(rng):
    """
    Four series where A == B and C == D exactly.

    A/B and C/D are independent draws, so the cross correlation is close to
    (but not exactly) zero.
    """
    T = 500
    x = rng.standard_normal(T)
    y = rng.standard_normal(T)
    returns = np.column_stack([x, x, y, y])
    return returns, ["A", "B", "C", "D"]


@pytest.fixture
def block_returns(rng):
    """
    Twelve series in three blocks of four driven by one factor per block.

    Shape: (600, 12). Block b holds columns 4b..4b+3.
    """
    T, n_blocks, block_size = 600, 3, 4
    factors = rng.standard_normal((T, n_blocks))
    noise = rng.standard_normal((T, n_blocks * block_size)) * 0.5
    returns = np.repeat(factors, block_size, axis=1) + noise
    labels = [f"B{b}_{i}" for b in range(n_blocks) for i in range(block_size)]
    return returns, labels


@pytest.fixture
def noise_returns(rng):
    """Pure noise returns, shape (400, 15)."""
    return rng.standard_normal((400, 15))


# =============================================================================
# SMALL MATRICES
# =============================================================================

@pytest.fixture
def tridiagonal_corr():
    """
    3x3 correlation matrix with a hand-computed inverse.

        X = [[1, .5, 0], [.5, 1, .5], [0, .5, 1]],  det(X) = 0.5
        X^-1 = [[1.5, -1, .5], [-1, 2, -1], [.5, -1, 1.5]]
    """
    X = np.array([
        [1.0, 0.5, 0.0],
        [0.5, 1.0, 0.5],
        [0.0, 0.5, 1.0],
    ])
    X_inv = np.array([
        [1.5, -1.0, 0.5],
        [-1.0, 2.0, -1.0],
        [0.5, -1.0, 1.5],
    ])
    return X, X_inv


@pytest.fixture
def random_corr(rng):
    """A random 8x8 correlation matrix with distinct eigenvalues."""
    returns = rng.standard_normal((200, 8)) @ rng.standard_normal((8, 8))
    return np.corrcoef(returns, rowvar=False)


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def tolerance():
    """Standard numerical tolerance for float comparisons."""
    return {"rtol": 1e-7, "atol": 1e-9}
