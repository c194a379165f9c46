"""
regularization.py - Rank-Truncated Precision Estimation
========================================================

Builds a PrecisionMatrix from the top-N eigenpairs of a correlation matrix:

    Raw = V_N diag(1 / lambda_1, ..., 1 / lambda_N) V_N^T
    P_ij = Raw_ij / sqrt(Raw_ii * Raw_jj)

Raw is the pseudo-inverse of the best rank-N approximation, so reciprocal
eigenvalue amplification is bounded by 1 / lambda_N instead of by the
smallest of all S eigenvalues. The rank helpers below suggest N from the
spectrum.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from . import config
from .errors import InvalidInputError, RankOutOfRangeError, RegularizationError
from .types import PrecisionMatrix, SpectralDecomposition


def regularized_precision(
    decomposition: SpectralDecomposition,
    rank: int,
    eigenvalue_floor: float = config.EIGENVALUE_FLOOR,
) -> PrecisionMatrix:
    """
    Normalized pseudo-inverse of the rank-`rank` truncation.

    Parameters
    ----------
    decomposition : SpectralDecomposition
        Eigenpairs of the correlation matrix, descending.
    rank : int
        Number of eigenpairs N to keep, 1 <= N <= S.
    eigenvalue_floor : float, default=1e-10
        Every retained eigenvalue must be at least this large.

    Returns
    -------
    PrecisionMatrix
        Symmetric (S, S) matrix with unit diagonal.

    Raises
    ------
    RankOutOfRangeError
        If rank is not an integer in [1, S].
    RegularizationError
        If a retained eigenvalue is below the floor, or a node has no weight
        in the retained subspace (zero Raw diagonal).
    InvalidInputError
        If eigenvalue_floor is not positive.
    """
    S = decomposition.size
    if isinstance(rank, bool) or not isinstance(rank, (int, np.integer)) or not 1 <= rank <= S:
        raise RankOutOfRangeError(f"rank must be in range [1, {S}], got rank={rank}")
    if not eigenvalue_floor > 0:
        raise InvalidInputError(f"eigenvalue_floor must be positive, got {eigenvalue_floor}")

    vals = decomposition.eigenvalues[:rank]
    if vals[-1] < eigenvalue_floor:
        below = int(np.sum(vals < eigenvalue_floor))
        raise RegularizationError(
            f"rank={rank} retains {below} eigenvalue(s) below the floor "
            f"{eigenvalue_floor:.1e} (lambda_{rank}={vals[-1]:.3e}); choose a smaller rank"
        )

    logger.info(
        f"Regularizing precision: S={S}, rank={rank}, "
        f"explained variance {decomposition.explained_variance(rank):.2%}"
    )

    V = decomposition.eigenvectors[:, :rank]  # (S, N)
    raw = (V / vals) @ V.T  # (S, S)

    d = np.diag(raw)
    if np.any(d <= 0):
        bad = [decomposition.labels[i] for i in np.flatnonzero(d <= 0)[:5]]
        raise RegularizationError(
            f"Series {bad} have no weight in the top-{rank} eigenvectors; "
            "precision normalization is undefined"
        )

    scale = np.sqrt(d)
    P = raw / np.outer(scale, scale)
    P = 0.5 * (P + P.T)
    np.fill_diagonal(P, 1.0)

    logger.success(f"Precision matrix built (rank={rank}, 1/lambda_N={1.0 / vals[-1]:.3e})")

    return PrecisionMatrix(
        matrix=P,
        rank=int(rank),
        labels=decomposition.labels,
        eigenvalue_floor=eigenvalue_floor,
    )


# =============================================================================
# RANK SELECTION
# =============================================================================

def select_rank_by_variance(
    decomposition: SpectralDecomposition,
    target_explained: float = 0.90,
) -> int:
    """
    Smallest rank whose eigenvalues explain `target_explained` of the trace.

    Raises
    ------
    InvalidInputError
        If target_explained is not in (0, 1].
    """
    if not 0.0 < target_explained <= 1.0:
        raise InvalidInputError(
            f"target_explained must be in (0, 1], got {target_explained}"
        )
    vals = decomposition.eigenvalues
    cum_ratio = np.cumsum(vals) / np.sum(vals)
    rank = int(np.searchsorted(cum_ratio, target_explained - 1e-12) + 1)
    rank = min(rank, decomposition.size)

    logger.info(f"Target {target_explained:.0%} variance requires rank={rank}")
    return rank


def marchenko_pastur_rank(
    decomposition: SpectralDecomposition,
    n_observations: int,
) -> int:
    """
    Count eigenvalues above the Marchenko-Pastur upper edge.

    For a pure-noise correlation matrix of S series and T observations the
    eigenvalues stay below (1 + sqrt(S / T))^2. Eigenvalues above that edge
    are treated as signal. Returns at least 1.
    """
    if n_observations < 2:
        raise InvalidInputError(f"n_observations must be >= 2, got {n_observations}")
    q = decomposition.size / n_observations
    edge = (1.0 + np.sqrt(q)) ** 2
    rank = max(1, int(np.sum(decomposition.eigenvalues > edge)))

    logger.info(f"Marchenko-Pastur edge {edge:.4f} (S/T={q:.3f}) suggests rank={rank}")
    return rank
