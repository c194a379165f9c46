"""
correlation.py - Sample Correlation Estimation
===============================================

Turns a clean (T, S) returns matrix into a Pearson CorrelationMatrix.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
from loguru import logger

from .errors import InvalidInputError
from .types import CorrelationMatrix


def estimate_correlation(
    returns: np.ndarray,
    labels: Optional[Sequence[str]] = None,
) -> CorrelationMatrix:
    """
    Compute the Pearson correlation between every pair of columns.

    Parameters
    ----------
    returns : ndarray (T, S)
        Returns matrix with T observations of S series. Must not contain
        missing or infinite values.
    labels : sequence of str, optional
        Series identifiers. Defaults to "S0", "S1", ...

    Returns
    -------
    CorrelationMatrix
        Symmetric (S, S) matrix with an exact unit diagonal.

    Raises
    ------
    InvalidInputError
        If returns is not 2D, T < 2, S < 2, contains non-finite values, or a
        column has zero variance.
    """
    returns = np.asarray(returns, dtype=float)
    if returns.ndim != 2:
        raise InvalidInputError(f"Returns must be 2D array, got shape {returns.shape}")

    T, S = returns.shape
    if T < 2:
        raise InvalidInputError(f"Returns must have at least 2 observations, got T={T}")
    if S < 2:
        raise InvalidInputError(f"Returns must have at least 2 series, got S={S}")
    if labels is not None and len(labels) != S:
        raise InvalidInputError(
            f"labels length ({len(labels)}) does not match number of series ({S})"
        )
    if not np.all(np.isfinite(returns)):
        raise InvalidInputError("Returns contain NaN or infinite values")

    # Constant columns, compared exactly
    flat = np.flatnonzero(np.ptp(returns, axis=0) == 0)
    if flat.size:
        names = [labels[i] if labels is not None else f"S{i}" for i in flat[:5]]
        raise InvalidInputError(
            f"Correlation undefined for zero-variance columns: {names}"
        )

    logger.info(f"Estimating correlation: {T} observations, {S} series")

    X = returns - returns.mean(axis=0)
    X = X / np.sqrt(np.sum(X ** 2, axis=0))
    corr = X.T @ X

    # Round-off can push |rho| past 1 and break exact symmetry
    corr = 0.5 * (corr + corr.T)
    corr = np.clip(corr, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)

    return CorrelationMatrix(matrix=corr, labels=labels, n_observations=T)
