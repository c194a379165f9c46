"""
graph.py - Quantile-Thresholded Precision Graphs
=================================================

Cuts a PrecisionMatrix at one of its own quantiles and keeps the surviving
off-diagonal entries as weighted, undirected edges.

By default the quantile is taken over all S^2 entries, diagonal included.
Diagonal entries are ~1 and usually above most off-diagonal entries, so this
pulls the cut slightly upward. Pass ``include_diagonal=False`` to take the
quantile over off-diagonal entries only.
"""

from __future__ import annotations

import numpy as np
from loguru import logger

from .errors import InvalidInputError
from .types import Edge, PrecisionMatrix, ThresholdedGraph


def _check_quantile(quantile: float) -> None:
    if not 0.0 < quantile < 1.0:
        raise InvalidInputError(f"quantile must be in (0, 1), got {quantile}")


def quantile_threshold(
    precision: PrecisionMatrix,
    quantile: float,
    include_diagonal: bool = True,
) -> float:
    """
    The q-quantile (linear interpolation) of the precision matrix entries.

    Parameters
    ----------
    precision : PrecisionMatrix
        Matrix to take the quantile of.
    quantile : float
        q in (0, 1).
    include_diagonal : bool, default=True
        Include the S diagonal entries in the sample.

    Raises
    ------
    InvalidInputError
        If quantile is not strictly inside (0, 1).
    """
    _check_quantile(quantile)
    P = precision.matrix
    if include_diagonal:
        values = P.ravel()
    else:
        values = P[~np.eye(precision.size, dtype=bool)]
    return float(np.quantile(values, quantile))


def build_graph(
    precision: PrecisionMatrix,
    quantile: float,
    include_diagonal: bool = True,
) -> ThresholdedGraph:
    """
    Keep every off-diagonal entry strictly above the q-quantile as an edge.

    Parameters
    ----------
    precision : PrecisionMatrix
        Symmetric precision matrix (S, S).
    quantile : float
        q in (0, 1). Larger q keeps fewer (or equally many) edges.
    include_diagonal : bool, default=True
        See ``quantile_threshold``.

    Returns
    -------
    ThresholdedGraph
        S nodes labelled like the precision matrix; edge (i, j), i < j, with
        weight P[i, j] for every P[i, j] > t. No self-loops.

    Raises
    ------
    InvalidInputError
        If quantile is not strictly inside (0, 1).
    """
    t = quantile_threshold(precision, quantile, include_diagonal=include_diagonal)

    P = precision.matrix
    ii, jj = np.triu_indices(precision.size, k=1)
    keep = P[ii, jj] > t
    edges = tuple(
        Edge(int(i), int(j), float(P[i, j]))
        for i, j in zip(ii[keep], jj[keep])
    )

    n_pairs = ii.size
    logger.debug(
        f"Thresholded precision at q={quantile:.3f} (t={t:.4f}): "
        f"kept {len(edges)}/{n_pairs} pairs"
    )

    return ThresholdedGraph(
        labels=precision.labels,
        edges=edges,
        quantile=float(quantile),
        threshold=t,
    )
