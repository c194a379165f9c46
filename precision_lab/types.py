"""
types.py - Core Data Structures and Type Definitions for Precision Lab

This module defines the value objects passed between pipeline stages:
- CorrelationMatrix: Sample Pearson correlation of a returns matrix
- SpectralDecomposition: Eigenpairs ordered by descending eigenvalue
- PrecisionMatrix: Normalized rank-N pseudo-inverse of a correlation matrix
- ThresholdedGraph / Edge: Sparse weighted graph over the series
- CommunityAssignment: Node -> group id partition plus group colors
- GraphSnapshot / NodeView: The renderer-facing graph object
- PipelineConfig: Explicit, immutable run configuration

Design Principles:
-----------------
1. Immutability (frozen dataclasses, read-only ndarray buffers)
2. Validation at construction time (fail-fast with InvalidInputError)
3. Explicit shape contracts (S x S, S x N) checked at every boundary
4. Numpy-style docstrings throughout

Example Usage:
-------------
    >>> import numpy as np
    >>> from precision_lab.types import PipelineConfig
    >>>
    >>> cfg = PipelineConfig(rank=3, threshold_quantile=0.9)
    >>> cfg.eigenvalue_floor
    1e-10
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Set, Tuple

import networkx as nx
import numpy as np

from . import config
from .errors import InvalidInputError, RankOutOfRangeError


# =============================================================================
# HELPERS
# =============================================================================

def _frozen_array(value: Any, name: str, ndim: int) -> np.ndarray:
    """Copy `value` into a read-only float64 array with `ndim` dimensions."""
    arr = np.array(value, dtype=float, copy=True)
    if arr.ndim != ndim:
        raise InvalidInputError(f"{name} must be {ndim}D, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


def _normalize_labels(labels: Optional[Sequence[Any]], n: int) -> Tuple[str, ...]:
    """Return labels as a tuple of unique strings of length `n`."""
    if labels is None:
        return tuple(f"S{i}" for i in range(n))
    out = tuple(str(label) for label in labels)
    if len(out) != n:
        raise InvalidInputError(
            f"labels length ({len(out)}) does not match number of series ({n})"
        )
    if len(set(out)) != n:
        raise InvalidInputError("labels must be unique")
    return out


def _check_square(matrix: np.ndarray, name: str) -> int:
    if matrix.shape[0] != matrix.shape[1]:
        raise InvalidInputError(f"{name} must be square, got shape {matrix.shape}")
    return matrix.shape[0]


def _check_symmetric(matrix: np.ndarray, name: str) -> None:
    if not np.allclose(matrix, matrix.T, rtol=0.0, atol=config.SYMMETRY_TOLERANCE):
        raise InvalidInputError(f"{name} must be symmetric")


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


# =============================================================================
# ENUMS
# =============================================================================

class EigenMethod(str, Enum):
    """Available symmetric eigen-solvers."""
    LAPACK = "lapack"
    JACOBI = "jacobi"


# =============================================================================
# CORRELATION
# =============================================================================

@dataclass(frozen=True, eq=False)
class CorrelationMatrix:
    """
    Sample Pearson correlation matrix of S series.

    Parameters
    ----------
    matrix : np.ndarray
        Correlation matrix with shape (S, S). Symmetric, unit diagonal,
        entries in [-1, 1].
    labels : tuple of str
        Series identifiers, one per row/column.
    n_observations : int
        Number of observations T the estimate was computed from.
    """
    matrix: np.ndarray
    labels: Tuple[str, ...]
    n_observations: int

    def __post_init__(self):
        matrix = _frozen_array(self.matrix, "matrix", 2)
        object.__setattr__(self, "matrix", matrix)
        object.__setattr__(self, "labels", _normalize_labels(self.labels, matrix.shape[0]))
        self.validate()

    @property
    def size(self) -> int:
        """Number of series S."""
        return self.matrix.shape[0]

    def validate(self) -> None:
        """
        Validate the correlation matrix contract.

        Raises
        ------
        InvalidInputError
            If the matrix is not square, not symmetric, has a non-unit
            diagonal, entries outside [-1, 1], or T < 2.
        """
        _check_square(self.matrix, "correlation matrix")
        if not np.all(np.isfinite(self.matrix)):
            raise InvalidInputError("correlation matrix contains non-finite entries")
        _check_symmetric(self.matrix, "correlation matrix")
        if not np.allclose(np.diag(self.matrix), 1.0, rtol=0.0, atol=1e-12):
            raise InvalidInputError("correlation matrix must have a unit diagonal")
        if np.max(np.abs(self.matrix)) > 1.0 + 1e-12:
            raise InvalidInputError("correlation entries must lie in [-1, 1]")
        if not _is_int(self.n_observations) or self.n_observations < 2:
            raise InvalidInputError(
                f"n_observations must be an integer >= 2, got {self.n_observations}"
            )


# =============================================================================
# SPECTRAL DECOMPOSITION
# =============================================================================

@dataclass(frozen=True, eq=False)
class SpectralDecomposition:
    """
    Eigendecomposition of a symmetric PSD matrix.

    Parameters
    ----------
    eigenvalues : np.ndarray
        Shape (S,), non-negative, sorted descending.
    eigenvectors : np.ndarray
        Shape (S, S). Column i is the unit eigenvector for eigenvalue i.
    labels : tuple of str
        Series identifiers carried over from the input matrix.
    method : str
        Name of the solver that produced the decomposition.
    n_clamped : int
        Number of eigenvalues that were clamped from tiny negatives to zero.

    Examples
    --------
    >>> decomp = spectral_decomposition(corr)
    >>> approx = decomp.reconstruct(rank=3)
    >>> decomp.explained_variance(3)
    0.71...
    """
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    labels: Tuple[str, ...]
    method: str = EigenMethod.LAPACK.value
    n_clamped: int = 0

    def __post_init__(self):
        vals = _frozen_array(self.eigenvalues, "eigenvalues", 1)
        vecs = _frozen_array(self.eigenvectors, "eigenvectors", 2)
        object.__setattr__(self, "eigenvalues", vals)
        object.__setattr__(self, "eigenvectors", vecs)
        object.__setattr__(self, "labels", _normalize_labels(self.labels, vals.shape[0]))
        self.validate()

    @property
    def size(self) -> int:
        """Number of eigenpairs S."""
        return self.eigenvalues.shape[0]

    @property
    def trace(self) -> float:
        """Sum of eigenvalues (equals S for a correlation matrix)."""
        return float(np.sum(self.eigenvalues))

    def validate(self) -> None:
        """Check shapes, ordering and non-negativity."""
        s = self.size
        if self.eigenvectors.shape != (s, s):
            raise InvalidInputError(
                f"eigenvectors shape mismatch: expected ({s}, {s}), "
                f"got {self.eigenvectors.shape}"
            )
        if np.any(np.diff(self.eigenvalues) > 0):
            raise InvalidInputError("eigenvalues must be sorted in descending order")
        if np.any(self.eigenvalues < 0):
            raise InvalidInputError("eigenvalues must be non-negative")

    def reconstruct(self, rank: Optional[int] = None) -> np.ndarray:
        """
        Rebuild V_N diag(lambda_N) V_N^T from the top `rank` eigenpairs.

        With rank=None all S pairs are used, recovering the input matrix.
        """
        n = self.size if rank is None else rank
        if not _is_int(n) or not 1 <= n <= self.size:
            raise RankOutOfRangeError(f"rank must be in range [1, {self.size}], got rank={rank}")
        vecs = self.eigenvectors[:, :n]
        return (vecs * self.eigenvalues[:n]) @ vecs.T

    def explained_variance(self, rank: int) -> float:
        """Share of the trace carried by the top `rank` eigenvalues."""
        if not _is_int(rank) or not 1 <= rank <= self.size:
            raise RankOutOfRangeError(f"rank must be in range [1, {self.size}], got rank={rank}")
        total = self.trace
        if total == 0:
            return 0.0
        return float(np.sum(self.eigenvalues[:rank]) / total)


# =============================================================================
# PRECISION MATRIX
# =============================================================================

@dataclass(frozen=True, eq=False)
class PrecisionMatrix:
    """
    Diagonally normalized pseudo-inverse of a rank-N truncated matrix.

    Parameters
    ----------
    matrix : np.ndarray
        Shape (S, S), symmetric, diagonal ~1.
    rank : int
        Truncation rank N, 1 <= N <= S.
    labels : tuple of str
        Series identifiers.
    eigenvalue_floor : float
        Floor the retained eigenvalues were checked against.

    Notes
    -----
    A different rank always yields a new instance; see
    ``regularized_precision``.
    """
    matrix: np.ndarray
    rank: int
    labels: Tuple[str, ...]
    eigenvalue_floor: float = config.EIGENVALUE_FLOOR

    def __post_init__(self):
        matrix = _frozen_array(self.matrix, "matrix", 2)
        object.__setattr__(self, "matrix", matrix)
        object.__setattr__(self, "labels", _normalize_labels(self.labels, matrix.shape[0]))
        self.validate()

    @property
    def size(self) -> int:
        """Number of series S."""
        return self.matrix.shape[0]

    def validate(self) -> None:
        s = _check_square(self.matrix, "precision matrix")
        if not np.all(np.isfinite(self.matrix)):
            raise InvalidInputError("precision matrix contains non-finite entries")
        _check_symmetric(self.matrix, "precision matrix")
        if not _is_int(self.rank) or not 1 <= self.rank <= s:
            raise RankOutOfRangeError(f"rank must be in range [1, {s}], got rank={self.rank}")


# =============================================================================
# GRAPH
# =============================================================================

@dataclass(frozen=True)
class Edge:
    """Undirected weighted edge between node indices i < j."""
    i: int
    j: int
    weight: float

    def __post_init__(self):
        if not self.i < self.j:
            raise InvalidInputError(f"edge endpoints must satisfy i < j, got ({self.i}, {self.j})")


@dataclass(frozen=True, eq=False)
class ThresholdedGraph:
    """
    Sparse undirected graph obtained by thresholding a precision matrix.

    Parameters
    ----------
    labels : tuple of str
        Node labels; node ids are the positions 0..S-1.
    edges : tuple of Edge
        Retained edges, stored sorted by (i, j). No self-loops.
    quantile : float
        Threshold quantile q the graph was built with.
    threshold : float
        The cut value t; every edge has weight > t.
    """
    labels: Tuple[str, ...]
    edges: Tuple[Edge, ...]
    quantile: float
    threshold: float

    def __post_init__(self):
        labels = _normalize_labels(self.labels, len(self.labels))
        edges = tuple(sorted(self.edges, key=lambda e: (e.i, e.j)))
        object.__setattr__(self, "labels", labels)
        object.__setattr__(self, "edges", edges)

        n = len(labels)
        seen: Set[Tuple[int, int]] = set()
        for edge in edges:
            if edge.i < 0 or edge.j >= n:
                raise InvalidInputError(f"edge ({edge.i}, {edge.j}) references a missing node")
            if (edge.i, edge.j) in seen:
                raise InvalidInputError(f"duplicate edge ({edge.i}, {edge.j})")
            seen.add((edge.i, edge.j))

    @property
    def n_nodes(self) -> int:
        return len(self.labels)

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    def edge_set(self) -> Set[Tuple[int, int]]:
        """Set of (i, j) index pairs, i < j."""
        return {(e.i, e.j) for e in self.edges}

    def adjacency(self) -> np.ndarray:
        """Dense symmetric weight matrix with zeros where there is no edge."""
        W = np.zeros((self.n_nodes, self.n_nodes))
        for e in self.edges:
            W[e.i, e.j] = W[e.j, e.i] = e.weight
        return W

    def to_networkx(self) -> nx.Graph:
        """Build a networkx Graph with `label` node and `weight` edge attributes."""
        G = nx.Graph()
        G.add_nodes_from((i, {"label": label}) for i, label in enumerate(self.labels))
        G.add_weighted_edges_from((e.i, e.j, e.weight) for e in self.edges)
        return G


# =============================================================================
# COMMUNITIES
# =============================================================================

@dataclass(frozen=True, eq=False)
class CommunityAssignment:
    """
    Partition of the graph nodes into numbered, colored groups.

    Parameters
    ----------
    membership : tuple of int
        Group id (1-based) of every node, indexed by node id.
    colors : tuple of str
        colors[g - 1] is the hex color of group g.
    unassociated_group : int or None
        Id of the bucket holding every pre-merge singleton. When present it
        is always the largest id. None when no node was left alone.

    Examples
    --------
    >>> assignment.groups()
    {1: (0, 1), 2: (2, 3)}
    >>> assignment.color_of(1)
    '#1f77b4'
    """
    membership: Tuple[int, ...]
    colors: Tuple[str, ...]
    unassociated_group: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "membership", tuple(int(g) for g in self.membership))
        object.__setattr__(self, "colors", tuple(str(c) for c in self.colors))
        self.validate()

    def validate(self) -> None:
        """
        Check that group ids form the contiguous range 1..G.

        Raises
        ------
        InvalidInputError
            If ids are missing or out of range, or the unassociated group is
            not the maximum id.
        """
        n_groups = len(self.colors)
        used = set(self.membership)
        if used != set(range(1, n_groups + 1)):
            raise InvalidInputError(
                f"group ids must cover 1..{n_groups} exactly, got {sorted(used)}"
            )
        if self.unassociated_group is not None and self.unassociated_group != n_groups:
            raise InvalidInputError(
                f"unassociated group must be the maximum id {n_groups}, "
                f"got {self.unassociated_group}"
            )

    @property
    def n_nodes(self) -> int:
        return len(self.membership)

    @property
    def n_groups(self) -> int:
        return len(self.colors)

    def groups(self) -> Dict[int, Tuple[int, ...]]:
        """Map each group id to its member node ids (ascending)."""
        out: Dict[int, list] = {g: [] for g in range(1, self.n_groups + 1)}
        for node, group in enumerate(self.membership):
            out[group].append(node)
        return {g: tuple(members) for g, members in out.items()}

    def members(self, group_id: int) -> Tuple[int, ...]:
        if not 1 <= group_id <= self.n_groups:
            raise KeyError(f"Unknown group id {group_id}")
        return tuple(i for i, g in enumerate(self.membership) if g == group_id)

    def group_of(self, node: int) -> int:
        return self.membership[node]

    def color_of(self, group_id: int) -> str:
        if not 1 <= group_id <= self.n_groups:
            raise KeyError(f"Unknown group id {group_id}")
        return self.colors[group_id - 1]

    def color_map(self) -> Dict[int, str]:
        """Group id -> color."""
        return {g: c for g, c in enumerate(self.colors, start=1)}


# =============================================================================
# RENDERER OUTPUT
# =============================================================================

@dataclass(frozen=True)
class NodeView:
    """One renderer node: id, label, group id and color."""
    id: int
    label: str
    group: int
    color: str


@dataclass(frozen=True, eq=False)
class GraphSnapshot:
    """
    Graph object handed to a renderer.

    Parameters
    ----------
    nodes : tuple of NodeView
        One entry per series, ordered by node id.
    edges : tuple of Edge
        Thresholded edges.
    assignment : CommunityAssignment
        Node -> group id mapping and group colors.
    quantile : float
        Threshold quantile used to build the graph.
    threshold : float
        Cut value the quantile resolved to.
    rank : int, optional
        Truncation rank of the precision matrix, if known.
    """
    nodes: Tuple[NodeView, ...]
    edges: Tuple[Edge, ...]
    assignment: CommunityAssignment
    quantile: float
    threshold: float
    rank: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))
        if len(self.nodes) != self.assignment.n_nodes:
            raise InvalidInputError(
                f"snapshot has {len(self.nodes)} nodes but assignment covers "
                f"{self.assignment.n_nodes}"
            )

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(node.label for node in self.nodes)

    def to_dict(self) -> Dict[str, Any]:
        """Plain, JSON-compatible representation."""
        return {
            "rank": self.rank,
            "quantile": float(self.quantile),
            "threshold": float(self.threshold),
            "nodes": [dataclasses.asdict(node) for node in self.nodes],
            "edges": [
                {"source": e.i, "target": e.j, "weight": float(e.weight)}
                for e in self.edges
            ],
            "groups": {
                str(g): [self.nodes[i].label for i in members]
                for g, members in self.assignment.groups().items()
            },
            "colors": list(self.assignment.colors),
            "unassociated_group": self.assignment.unassociated_group,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphSnapshot":
        """Rebuild a snapshot produced by ``to_dict``."""
        nodes = tuple(
            NodeView(id=int(n["id"]), label=str(n["label"]),
                     group=int(n["group"]), color=str(n["color"]))
            for n in data["nodes"]
        )
        assignment = CommunityAssignment(
            membership=tuple(n.group for n in nodes),
            colors=tuple(data["colors"]),
            unassociated_group=data.get("unassociated_group"),
        )
        edges = tuple(
            Edge(int(e["source"]), int(e["target"]), float(e["weight"]))
            for e in data["edges"]
        )
        rank = data.get("rank")
        return cls(
            nodes=nodes,
            edges=edges,
            assignment=assignment,
            quantile=float(data["quantile"]),
            threshold=float(data["threshold"]),
            rank=None if rank is None else int(rank),
        )


# =============================================================================
# CONFIGURATION
# =============================================================================

_CONFIG_ALIASES = {
    "thresholdQuantile": "threshold_quantile",
    "eigenvalueFloor": "eigenvalue_floor",
    "convergenceBudget": "convergence_budget",
    "eigenMethod": "eigen_method",
    "includeDiagonal": "include_diagonal",
    "maxLevels": "max_levels",
}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Immutable configuration for one pipeline run.

    Parameters
    ----------
    rank : int
        Truncation rank N (validated against S when the precision matrix
        is built).
    threshold_quantile : float
        Quantile q in (0, 1) used to cut the precision matrix.
    eigenvalue_floor : float, default=1e-10
        Smallest retained eigenvalue the regularizer accepts.
    convergence_budget : int, default=100
        Sweep budget of the Jacobi eigen-solver.
    eigen_method : EigenMethod, default=EigenMethod.LAPACK
        Eigen-solver to use.
    include_diagonal : bool, default=True
        Whether the threshold quantile is taken over all S^2 entries
        (diagonal included) or the off-diagonal entries only.
    resolution : float, default=1.0
        Louvain modularity resolution.
    seed : int, default=42
        Seed of the Louvain node ordering.
    max_levels : int, default=100
        Louvain aggregation level budget.

    Examples
    --------
    >>> PipelineConfig.from_mapping({"rank": 5, "thresholdQuantile": 0.95})
    PipelineConfig(rank=5, threshold_quantile=0.95, ...)
    """
    rank: int
    threshold_quantile: float
    eigenvalue_floor: float = config.EIGENVALUE_FLOOR
    convergence_budget: int = config.CONVERGENCE_BUDGET
    eigen_method: EigenMethod = EigenMethod.LAPACK
    include_diagonal: bool = True
    resolution: float = config.LOUVAIN_RESOLUTION
    seed: int = config.RANDOM_STATE
    max_levels: int = config.LOUVAIN_MAX_LEVELS

    def __post_init__(self):
        try:
            method = EigenMethod(self.eigen_method)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown eigen method: '{self.eigen_method}'") from exc
        object.__setattr__(self, "eigen_method", method)
        self.validate()

    def validate(self) -> None:
        if not _is_int(self.rank) or self.rank < 1:
            raise RankOutOfRangeError(f"rank must be a positive integer, got {self.rank}")
        if not 0.0 < self.threshold_quantile < 1.0:
            raise InvalidInputError(
                f"threshold_quantile must be in (0, 1), got {self.threshold_quantile}"
            )
        if not self.eigenvalue_floor > 0:
            raise InvalidInputError(
                f"eigenvalue_floor must be positive, got {self.eigenvalue_floor}"
            )
        if not _is_int(self.convergence_budget) or self.convergence_budget < 1:
            raise InvalidInputError(
                f"convergence_budget must be a positive integer, got {self.convergence_budget}"
            )
        if not self.resolution > 0:
            raise InvalidInputError(f"resolution must be positive, got {self.resolution}")
        if not _is_int(self.max_levels) or self.max_levels < 1:
            raise InvalidInputError(
                f"max_levels must be a positive integer, got {self.max_levels}"
            )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "PipelineConfig":
        """
        Build a config from a mapping with camelCase or snake_case keys.

        Raises
        ------
        InvalidInputError
            On unknown keys or missing ``rank`` / ``thresholdQuantile``.
        """
        fields = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = _CONFIG_ALIASES.get(key, key)
            if name not in fields:
                raise InvalidInputError(f"Unknown configuration key: '{key}'")
            kwargs[name] = value
        missing = {"rank", "threshold_quantile"} - kwargs.keys()
        if missing:
            raise InvalidInputError(f"Missing configuration keys: {sorted(missing)}")
        return cls(**kwargs)

    def replace(self, **changes: Any) -> "PipelineConfig":
        """Return a copy with some fields changed (validated again)."""
        return dataclasses.replace(self, **changes)
