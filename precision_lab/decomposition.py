"""
decomposition.py - Symmetric Eigendecomposition
================================================

Eigendecomposes a symmetric PSD matrix (normally a CorrelationMatrix) and
returns the eigenpairs in descending order.

Two solvers are available:
- LAPACK: scipy.linalg.eigh, the dense symmetric driver.
- JACOBI: cyclic Jacobi rotations with an explicit sweep budget, for callers
  that need a hard bound on the convergence loop.

Ordering is reproducible: pairs are sorted by a stable sort on descending
eigenvalue (equal eigenvalues keep the solver's native order) and every
eigenvector is signed so its largest-magnitude entry is positive.
"""

from __future__ import annotations

import warnings
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import scipy.linalg
from loguru import logger

from . import config
from .errors import DecompositionError, InvalidInputError, NumericInstability
from .types import CorrelationMatrix, EigenMethod, SpectralDecomposition


# =============================================================================
# HELPER: LOW-LEVEL SOLVERS
# =============================================================================

def _off_diagonal_norm(A: np.ndarray) -> float:
    return float(np.sqrt(2.0 * np.sum(np.tril(A, -1) ** 2)))


def _jacobi_eigh(
    A: np.ndarray,
    max_sweeps: int,
    tol: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Cyclic Jacobi eigenvalue iteration for a symmetric matrix.

    Each sweep applies one plane rotation per (p, q) pair, p < q. Iteration
    stops once the off-diagonal Frobenius norm drops below tol * ||A||_F.

    Raises
    ------
    DecompositionError
        If the matrix has not converged after `max_sweeps` sweeps.
    """
    A = np.array(A, dtype=float, copy=True)
    n = A.shape[0]
    V = np.eye(n)
    target = tol * max(float(np.linalg.norm(A)), np.finfo(float).tiny)

    for sweep in range(max_sweeps):
        off = _off_diagonal_norm(A)
        if off <= target:
            logger.debug(f"Jacobi converged after {sweep} sweeps (off-norm {off:.2e})")
            return np.diag(A).copy(), V

        for p in range(n - 1):
            for q in range(p + 1, n):
                apq = A[p, q]
                if apq == 0.0:
                    continue
                theta = (A[q, q] - A[p, p]) / (2.0 * apq)
                t = 1.0 / (abs(theta) + np.sqrt(theta * theta + 1.0))
                if theta < 0:
                    t = -t
                c = 1.0 / np.sqrt(t * t + 1.0)
                s = t * c

                # A <- J^T A J, V <- V J
                col_p, col_q = A[:, p].copy(), A[:, q].copy()
                A[:, p] = c * col_p - s * col_q
                A[:, q] = s * col_p + c * col_q
                row_p, row_q = A[p, :].copy(), A[q, :].copy()
                A[p, :] = c * row_p - s * row_q
                A[q, :] = s * row_p + c * row_q
                vec_p, vec_q = V[:, p].copy(), V[:, q].copy()
                V[:, p] = c * vec_p - s * vec_q
                V[:, q] = s * vec_p + c * vec_q

    off = _off_diagonal_norm(A)
    if off <= target:
        return np.diag(A).copy(), V

    raise DecompositionError(
        f"Jacobi eigen-solver did not converge within {max_sweeps} sweeps "
        f"(off-diagonal norm {off:.3e} > {target:.3e})"
    )


def _order_eigenpairs(
    vals: np.ndarray,
    vecs: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Sort descending (stable) and fix eigenvector signs."""
    order = np.argsort(-vals, kind="stable")
    vals = vals[order]
    vecs = vecs[:, order]

    pivots = np.argmax(np.abs(vecs), axis=0)
    signs = np.sign(vecs[pivots, np.arange(vecs.shape[1])])
    signs[signs == 0] = 1.0
    return vals, vecs * signs


def _clamp_negative(vals: np.ndarray, psd_tolerance: float) -> Tuple[np.ndarray, int]:
    """
    Clamp round-off negatives to zero.

    Raises
    ------
    InvalidInputError
        If an eigenvalue is negative beyond round-off (input is not PSD).
    """
    scale = max(1.0, float(np.max(np.abs(vals))))
    if vals[-1] < -psd_tolerance * scale:
        raise InvalidInputError(
            f"Matrix is not positive semi-definite: smallest eigenvalue {vals[-1]:.3e}"
        )

    negative = vals < 0
    n_clamped = int(np.sum(negative))
    if n_clamped:
        msg = (
            f"Clamped {n_clamped} negative eigenvalue(s) to zero "
            f"(smallest {vals[-1]:.3e})"
        )
        logger.warning(msg)
        warnings.warn(msg, NumericInstability, stacklevel=3)
        vals = np.where(negative, 0.0, vals)
    return vals, n_clamped


# =============================================================================
# MAIN DECOMPOSITION FUNCTION
# =============================================================================

def spectral_decomposition(
    matrix: Union[CorrelationMatrix, np.ndarray],
    method: Union[EigenMethod, str] = EigenMethod.LAPACK,
    max_sweeps: int = config.CONVERGENCE_BUDGET,
    tol: float = config.JACOBI_TOLERANCE,
    psd_tolerance: float = config.PSD_TOLERANCE,
    labels: Optional[Sequence[str]] = None,
) -> SpectralDecomposition:
    """
    Eigendecompose a symmetric PSD matrix.

    Input that is clearly not PSD (an eigenvalue below
    -psd_tolerance * max(1, |lambda_max|)) is rejected with
    InvalidInputError; smaller negatives are clamped to zero.

    Parameters
    ----------
    matrix : CorrelationMatrix or ndarray (S, S)
        Symmetric matrix to decompose. Labels are taken from a
        CorrelationMatrix when one is given.
    method : EigenMethod or str, default='lapack'
        Solver to use: 'lapack' or 'jacobi'.
    max_sweeps : int, default=100
        Sweep budget for the Jacobi solver. Ignored by LAPACK.
    tol : float, default=1e-12
        Relative off-diagonal tolerance for the Jacobi solver.
    psd_tolerance : float, default=1e-8
        Negative eigenvalues down to -psd_tolerance * max(1, |lambda_max|)
        are treated as round-off and clamped to zero.
    labels : sequence of str, optional
        Series identifiers for a plain ndarray input.

    Returns
    -------
    SpectralDecomposition
        Eigenvalues (descending, non-negative) and orthonormal eigenvectors
        as columns.

    Raises
    ------
    InvalidInputError
        If the matrix is not square, symmetric, finite and PSD, or the
        method is unknown.
    DecompositionError
        If the solver fails or exhausts its sweep budget.

    Warns
    -----
    NumericInstability
        When round-off negative eigenvalues were clamped to zero.
    """
    if isinstance(matrix, CorrelationMatrix):
        labels = matrix.labels
        A = np.array(matrix.matrix, dtype=float)
    else:
        A = np.array(matrix, dtype=float)

    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise InvalidInputError(f"Matrix must be square 2D, got shape {A.shape}")
    if A.shape[0] == 0:
        raise InvalidInputError("Matrix must not be empty")
    if not np.all(np.isfinite(A)):
        raise InvalidInputError("Matrix contains NaN or infinite values")
    if not np.allclose(A, A.T, rtol=0.0, atol=config.SYMMETRY_TOLERANCE):
        raise InvalidInputError("Matrix must be symmetric")

    try:
        method = EigenMethod(method)
    except ValueError as exc:
        valid = [m.value for m in EigenMethod]
        raise InvalidInputError(
            f"Unknown method: '{method}'. Valid methods are: {valid}"
        ) from exc

    if max_sweeps < 1:
        raise InvalidInputError(f"max_sweeps must be positive, got {max_sweeps}")

    A = 0.5 * (A + A.T)
    S = A.shape[0]
    logger.info(f"Starting spectral decomposition: S={S}, method='{method.value}'")

    if method == EigenMethod.LAPACK:
        logger.debug(f"Using Dense Eigensolver (LAPACK) | Shape: {A.shape}")
        try:
            vals, vecs = scipy.linalg.eigh(A)
        except np.linalg.LinAlgError as exc:
            logger.exception("LAPACK eigensolver failed to converge.")
            raise DecompositionError(f"LAPACK eigensolver failed: {exc}") from exc
    else:
        logger.debug(f"Using Jacobi rotations | Shape: {A.shape}, budget: {max_sweeps} sweeps")
        vals, vecs = _jacobi_eigh(A, max_sweeps=max_sweeps, tol=tol)

    vals, vecs = _order_eigenpairs(np.real(vals), np.real(vecs))
    vals, n_clamped = _clamp_negative(vals, psd_tolerance)

    logger.success(
        f"Spectral decomposition complete. Top eigenvalue: {vals[0]:.4f}, "
        f"trace: {np.sum(vals):.4f}"
    )

    return SpectralDecomposition(
        eigenvalues=vals,
        eigenvectors=vecs,
        labels=labels,
        method=method.value,
        n_clamped=n_clamped,
    )
