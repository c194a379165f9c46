"""
community.py - Community Detection and Group Assignment
========================================================

Partitions a ThresholdedGraph with Louvain modularity maximization and turns
the raw partition into stable group ids and colors:

1. Louvain (networkx) over the positive-weight edges, fixed seed.
2. Groups sorted by size descending, ties broken by smallest member id.
3. Multi-node groups get ids 1..k in that order.
4. Every singleton group is merged into one "unassociated" group k + 1.
5. Groups 1..k cycle through the palette; the unassociated group is gray.

Edges with non-positive weight stay in the graph for rendering but are not
handed to Louvain, whose modularity is undefined for negative weights.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Set

import networkx as nx
from loguru import logger
from networkx.algorithms.community import louvain_partitions

from . import config
from .errors import CommunityDetectionError, InvalidInputError
from .types import (
    CommunityAssignment,
    GraphSnapshot,
    NodeView,
    ThresholdedGraph,
)


# =============================================================================
# HELPER: LOUVAIN
# =============================================================================

def _positive_graph(graph: ThresholdedGraph) -> nx.Graph:
    G = nx.Graph()
    G.add_nodes_from(range(graph.n_nodes))
    G.add_weighted_edges_from(
        (e.i, e.j, e.weight) for e in graph.edges if e.weight > 0
    )
    return G


def _louvain(
    graph: ThresholdedGraph,
    seed: int,
    resolution: float,
    max_levels: int,
) -> List[Set[int]]:
    """
    Final Louvain partition of the positive-weight subgraph.

    Raises
    ------
    CommunityDetectionError
        If Louvain still improves after `max_levels` aggregation levels.
    """
    G = _positive_graph(graph)
    dropped = graph.n_edges - G.number_of_edges()
    if dropped:
        logger.debug(f"Ignoring {dropped} non-positive edge(s) for community detection")

    if G.number_of_edges() == 0:
        logger.debug("Graph has no positive edges; every node is a singleton")
        return [{i} for i in range(graph.n_nodes)]

    partition: List[Set[int]] = []
    levels = louvain_partitions(
        G,
        weight="weight",
        resolution=resolution,
        threshold=config.LOUVAIN_THRESHOLD,
        seed=seed,
    )
    for level, partition in enumerate(levels, start=1):
        if level > max_levels:
            raise CommunityDetectionError(
                f"Louvain did not converge within {max_levels} levels"
            )
    logger.debug(f"Louvain finished with {len(partition)} communities")
    return partition


# =============================================================================
# MAIN API
# =============================================================================

def detect_communities(
    graph: ThresholdedGraph,
    seed: int = config.RANDOM_STATE,
    resolution: float = config.LOUVAIN_RESOLUTION,
    max_levels: int = config.LOUVAIN_MAX_LEVELS,
    palette: Sequence[str] = config.DEFAULT_PALETTE,
    unassociated_color: str = config.UNASSOCIATED_COLOR,
) -> CommunityAssignment:
    """
    Partition the graph into numbered, colored groups.

    Parameters
    ----------
    graph : ThresholdedGraph
        Graph to partition. An edgeless graph is valid.
    seed : int, default=42
        Seed for Louvain's node ordering; fixes the result.
    resolution : float, default=1.0
        Modularity resolution. Larger values favor smaller communities.
    max_levels : int, default=100
        Aggregation level budget for Louvain.
    palette : sequence of str
        Colors for groups 1..k, reused cyclically when k > len(palette).
    unassociated_color : str
        Color of the merged singleton group.

    Returns
    -------
    CommunityAssignment
        Every node in exactly one group. If any node ended up alone, all
        such nodes share the largest group id.

    Raises
    ------
    InvalidInputError
        If the palette is empty or resolution / max_levels are not positive.
    CommunityDetectionError
        If the level budget is exhausted.

    Examples
    --------
    >>> assignment = detect_communities(graph)
    >>> assignment.groups()
    {1: (0, 1, 4), 2: (2, 3), 3: (5,)}
    """
    if not palette:
        raise InvalidInputError("palette must contain at least one color")
    if not resolution > 0:
        raise InvalidInputError(f"resolution must be positive, got {resolution}")
    if max_levels < 1:
        raise InvalidInputError(f"max_levels must be positive, got {max_levels}")

    logger.info(
        f"Detecting communities: {graph.n_nodes} nodes, {graph.n_edges} edges"
    )

    partition = _louvain(graph, seed=seed, resolution=resolution, max_levels=max_levels)

    groups = [sorted(community) for community in partition]
    groups.sort(key=lambda members: (-len(members), members[0]))

    membership = [0] * graph.n_nodes
    colors: List[str] = []
    multi = [members for members in groups if len(members) > 1]
    singles = [members[0] for members in groups if len(members) == 1]

    for group_id, members in enumerate(multi, start=1):
        for node in members:
            membership[node] = group_id
        colors.append(palette[(group_id - 1) % len(palette)])

    unassociated: Optional[int] = None
    if singles:
        unassociated = len(multi) + 1
        for node in singles:
            membership[node] = unassociated
        colors.append(unassociated_color)

    logger.success(
        f"Found {len(multi)} communities and {len(singles)} unassociated node(s)"
    )

    return CommunityAssignment(
        membership=tuple(membership),
        colors=tuple(colors),
        unassociated_group=unassociated,
    )


def partition_modularity(
    graph: ThresholdedGraph,
    assignment: CommunityAssignment,
    resolution: float = config.LOUVAIN_RESOLUTION,
) -> float:
    """Modularity of the assignment on the positive-weight subgraph (0 if edgeless)."""
    G = _positive_graph(graph)
    if G.number_of_edges() == 0:
        return 0.0
    communities = [set(members) for members in assignment.groups().values()]
    return float(nx.community.modularity(G, communities, weight="weight", resolution=resolution))


def build_snapshot(
    graph: ThresholdedGraph,
    assignment: CommunityAssignment,
    rank: Optional[int] = None,
) -> GraphSnapshot:
    """Combine a graph and its assignment into the renderer-facing object."""
    if assignment.n_nodes != graph.n_nodes:
        raise InvalidInputError(
            f"assignment covers {assignment.n_nodes} nodes, graph has {graph.n_nodes}"
        )
    nodes = tuple(
        NodeView(
            id=i,
            label=label,
            group=assignment.group_of(i),
            color=assignment.color_of(assignment.group_of(i)),
        )
        for i, label in enumerate(graph.labels)
    )
    return GraphSnapshot(
        nodes=nodes,
        edges=graph.edges,
        assignment=assignment,
        quantile=graph.quantile,
        threshold=graph.threshold,
        rank=rank,
    )
