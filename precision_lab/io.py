"""
io.py - Snapshot Serialization and Returns Loading

This module handles saving and loading GraphSnapshot objects to/from disk and
reading returns matrices from CSV.
Supported snapshot formats:
- JSON: Human-readable, renderer-friendly (default)
- NPZ: NumPy's archive format

Example Usage:
-------------
    >>> from precision_lab.io import save_snapshot, load_snapshot
    >>>
    >>> save_snapshot(snapshot, "graph.json")
    >>> loaded = load_snapshot("graph.json")
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from .errors import InvalidInputError
from .types import CommunityAssignment, Edge, GraphSnapshot, NodeView


class SnapshotFormat(str, Enum):
    """Supported snapshot file formats."""
    JSON = "json"
    NPZ = "npz"


def save_snapshot(
    snapshot: GraphSnapshot,
    path: Union[str, Path],
    format: SnapshotFormat = SnapshotFormat.JSON,
) -> None:
    """
    Save a graph snapshot to disk.

    Parameters
    ----------
    snapshot : GraphSnapshot
        The snapshot to save.
    path : str or Path
        Destination file path.
    format : SnapshotFormat, default=SnapshotFormat.JSON
        Output format.
    """
    path = Path(path)

    if format == SnapshotFormat.JSON:
        with open(path, "w") as f:
            json.dump(snapshot.to_dict(), f, indent=2)
    elif format == SnapshotFormat.NPZ:
        _save_npz(snapshot, path)
    else:
        raise ValueError(f"Unsupported format: {format}")


def load_snapshot(path: Union[str, Path]) -> GraphSnapshot:
    """
    Load a graph snapshot from disk. Format is inferred from the extension.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file format is not recognized.
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")

    if path.suffix == ".json":
        with open(path, "r") as f:
            return GraphSnapshot.from_dict(json.load(f))
    elif path.suffix == ".npz":
        return _load_npz(path)
    else:
        raise ValueError(f"Unknown snapshot format: {path.suffix}")


def save_sweep(snapshots: Sequence[GraphSnapshot], path: Union[str, Path]) -> None:
    """Save a threshold sweep as one JSON list, in sweep order."""
    with open(Path(path), "w") as f:
        json.dump([s.to_dict() for s in snapshots], f, indent=2)


def load_sweep(path: Union[str, Path]) -> List[GraphSnapshot]:
    """Load a sweep written by ``save_sweep``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sweep file not found: {path}")
    with open(path, "r") as f:
        return [GraphSnapshot.from_dict(d) for d in json.load(f)]


def _save_npz(snapshot: GraphSnapshot, path: Path) -> None:
    """Save snapshot arrays; None rank / unassociated group stored as -1."""
    assignment = snapshot.assignment
    np.savez(
        path,
        labels=np.array(snapshot.labels, dtype=str),
        membership=np.array(assignment.membership, dtype=int),
        colors=np.array(assignment.colors, dtype=str),
        edge_i=np.array([e.i for e in snapshot.edges], dtype=int),
        edge_j=np.array([e.j for e in snapshot.edges], dtype=int),
        edge_w=np.array([e.weight for e in snapshot.edges], dtype=float),
        quantile=np.float64(snapshot.quantile),
        threshold=np.float64(snapshot.threshold),
        rank=np.int64(-1 if snapshot.rank is None else snapshot.rank),
        unassociated=np.int64(
            -1 if assignment.unassociated_group is None else assignment.unassociated_group
        ),
    )


def _load_npz(path: Path) -> GraphSnapshot:
    """Load snapshot from NPZ format."""
    with np.load(path, allow_pickle=False) as data:
        unassociated = int(data["unassociated"])
        rank = int(data["rank"])
        assignment = CommunityAssignment(
            membership=tuple(int(g) for g in data["membership"]),
            colors=tuple(str(c) for c in data["colors"]),
            unassociated_group=None if unassociated < 0 else unassociated,
        )
        nodes = tuple(
            NodeView(
                id=i,
                label=str(label),
                group=assignment.group_of(i),
                color=assignment.color_of(assignment.group_of(i)),
            )
            for i, label in enumerate(data["labels"])
        )
        edges = tuple(
            Edge(int(i), int(j), float(w))
            for i, j, w in zip(data["edge_i"], data["edge_j"], data["edge_w"])
        )
        return GraphSnapshot(
            nodes=nodes,
            edges=edges,
            assignment=assignment,
            quantile=float(data["quantile"]),
            threshold=float(data["threshold"]),
            rank=None if rank < 0 else rank,
        )


def load_returns_csv(
    path: Union[str, Path],
    index_col: bool = False,
) -> Tuple[np.ndarray, List[str]]:
    """
    Read a returns CSV: header row of series labels, then numeric rows.

    Parameters
    ----------
    path : str or Path
        CSV file (rows = time, columns = series).
    index_col : bool, default=False
        Skip the first column (e.g. dates).

    Returns
    -------
    returns : ndarray (T, S)
    labels : list of str

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    InvalidInputError
        If the header is missing or a column holds non-numeric text.
        Empty cells are read as NaN.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Returns file not found: {path}")

    with open(path, "r") as f:
        header = [h.strip() for h in f.readline().strip().split(",")]
    if not header or header == [""]:
        raise InvalidInputError(f"Missing header row in {path}")

    first = 1 if index_col else 0
    labels = header[first:]
    try:
        # Try numpy first (handles simple CSVs)
        returns = np.loadtxt(
            path,
            delimiter=",",
            skiprows=1,
            usecols=range(first, len(header)),
            ndmin=2,
        )
    except ValueError:
        # Fall back to pandas for CSVs with empty cells
        returns, labels = _read_csv_with_gaps(path, index_col)

    return returns, labels


def _read_csv_with_gaps(path: Path, index_col: bool) -> Tuple[np.ndarray, List[str]]:
    """Read with pandas; empty cells become NaN, any other text is an error."""
    df = pd.read_csv(path, index_col=0 if index_col else None, skipinitialspace=True)
    text = [str(c) for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if text:
        raise InvalidInputError(f"Non-numeric data in {path}: columns {text}")

    n_missing = int(df.isna().to_numpy().sum())
    if n_missing:
        logger.debug(f"Read {n_missing} empty cell(s) from {path} as NaN")
    return df.to_numpy(dtype=float), [str(c).strip() for c in df.columns]
