"""
pipeline.py - End-to-End Precision Graph Pipeline

This module chains the five stages:

    returns -> CorrelationMatrix -> SpectralDecomposition
            -> PrecisionMatrix -> ThresholdedGraph -> CommunityAssignment

and exposes the threshold sweep, which runs stages 4-5 for many quantiles
against one shared (immutable) PrecisionMatrix.

Example Usage:
-------------
    >>> from precision_lab import PipelineConfig, PrecisionGraphPipeline
    >>>
    >>> cfg = PipelineConfig(rank=5, threshold_quantile=0.9)
    >>> pipeline = PrecisionGraphPipeline(cfg)
    >>> result = pipeline.fit(returns, labels=tickers)
    >>> snapshot = pipeline.graph(result)
    >>>
    >>> # Same precision matrix, several cuts, in parallel
    >>> snapshots = pipeline.sweep(result, [0.8, 0.9, 0.95], max_workers=4)
    >>>
    >>> # Another rank without recomputing correlation/eigenpairs
    >>> result_r3 = pipeline.with_rank(result, 3)
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from .community import build_snapshot, detect_communities
from .config import LOUVAIN_MAX_LEVELS, LOUVAIN_RESOLUTION, RANDOM_STATE
from .correlation import estimate_correlation
from .decomposition import spectral_decomposition
from .errors import InvalidInputError
from .graph import build_graph
from .regularization import regularized_precision
from .types import (
    CorrelationMatrix,
    GraphSnapshot,
    PipelineConfig,
    PrecisionMatrix,
    SpectralDecomposition,
)


# =============================================================================
# RESULT TYPE
# =============================================================================

@dataclass(frozen=True, eq=False)
class PipelineResult:
    """
    Output of stages 1-3.

    Parameters
    ----------
    correlation : CorrelationMatrix
    decomposition : SpectralDecomposition
    precision : PrecisionMatrix
    """
    correlation: CorrelationMatrix
    decomposition: SpectralDecomposition
    precision: PrecisionMatrix

    @property
    def labels(self) -> Tuple[str, ...]:
        return self.correlation.labels

    @property
    def rank(self) -> int:
        return self.precision.rank


# =============================================================================
# PARALLEL SWEEP
# =============================================================================

def _graph_task(
    precision: PrecisionMatrix,
    quantile: float,
    include_diagonal: bool,
    seed: int,
    resolution: float,
    max_levels: int,
) -> GraphSnapshot:
    """Stages 4-5 for a single quantile. Top-level so process pools can pickle it."""
    graph = build_graph(precision, quantile, include_diagonal=include_diagonal)
    assignment = detect_communities(
        graph, seed=seed, resolution=resolution, max_levels=max_levels
    )
    return build_snapshot(graph, assignment, rank=precision.rank)


def sweep_thresholds(
    precision: PrecisionMatrix,
    quantiles: Sequence[float],
    *,
    include_diagonal: bool = True,
    seed: int = RANDOM_STATE,
    resolution: float = LOUVAIN_RESOLUTION,
    max_levels: int = LOUVAIN_MAX_LEVELS,
    max_workers: Optional[int] = None,
    executor: str = "thread",
) -> List[GraphSnapshot]:
    """
    Build one graph snapshot per quantile from the same precision matrix.

    Tasks share nothing but the read-only precision matrix and may finish in
    any order; the returned list follows the order of `quantiles`.

    Parameters
    ----------
    precision : PrecisionMatrix
        Shared input of every task.
    quantiles : sequence of float
        Threshold quantiles, each in (0, 1). Duplicates are allowed.
    include_diagonal, seed, resolution, max_levels
        Forwarded to ``build_graph`` / ``detect_communities``.
    max_workers : int, optional
        Pool size. 1 runs every task inline in the calling thread.
    executor : {'thread', 'process'}, default='thread'
        Pool type.

    Returns
    -------
    list of GraphSnapshot
        ``result[k]`` was built with ``quantiles[k]``.

    Raises
    ------
    InvalidInputError
        If a quantile is outside (0, 1), the executor is unknown or
        max_workers is not positive. Errors raised inside a task propagate.
    """
    quantiles = [float(q) for q in quantiles]
    for q in quantiles:
        if not 0.0 < q < 1.0:
            raise InvalidInputError(f"quantile must be in (0, 1), got {q}")
    if executor not in ("thread", "process"):
        raise InvalidInputError(f"executor must be 'thread' or 'process', got '{executor}'")
    if max_workers is not None and max_workers < 1:
        raise InvalidInputError(f"max_workers must be positive, got {max_workers}")

    task_args: Tuple[Any, ...] = (include_diagonal, seed, resolution, max_levels)
    logger.info(
        f"Sweeping {len(quantiles)} quantile(s) over rank-{precision.rank} precision "
        f"(executor={executor}, max_workers={max_workers})"
    )

    if max_workers == 1 or len(quantiles) <= 1:
        return [_graph_task(precision, q, *task_args) for q in quantiles]

    results: List[Optional[GraphSnapshot]] = [None] * len(quantiles)
    Pool = ThreadPoolExecutor if executor == "thread" else ProcessPoolExecutor
    with Pool(max_workers=max_workers) as ex:
        futures = {
            ex.submit(_graph_task, precision, q, *task_args): idx
            for idx, q in enumerate(quantiles)
        }
        for fut in as_completed(futures):
            results[futures[fut]] = fut.result()

    logger.success(f"Sweep complete: {len(results)} snapshot(s)")
    return results


# =============================================================================
# PIPELINE
# =============================================================================

class PrecisionGraphPipeline:
    """
    Runs the five-stage pipeline under one immutable PipelineConfig.

    The pipeline keeps no state besides its config; every call returns new
    value objects.

    Parameters
    ----------
    config : PipelineConfig
        Rank, threshold quantile, solver and community settings.
    """

    def __init__(self, config: PipelineConfig):
        if not isinstance(config, PipelineConfig):
            raise InvalidInputError(
                f"config must be a PipelineConfig, got {type(config).__name__}"
            )
        self.config = config

    def __repr__(self) -> str:
        return f"PrecisionGraphPipeline({self.config!r})"

    def fit(
        self,
        returns: np.ndarray,
        labels: Optional[Sequence[str]] = None,
    ) -> PipelineResult:
        """
        Stages 1-3: correlation, eigendecomposition, regularized precision.

        Raises
        ------
        InvalidInputError, DecompositionError, RegularizationError
            Propagated unchanged from the stage that failed.
        """
        cfg = self.config
        correlation = estimate_correlation(returns, labels)
        decomposition = spectral_decomposition(
            correlation,
            method=cfg.eigen_method,
            max_sweeps=cfg.convergence_budget,
        )
        precision = regularized_precision(
            decomposition, cfg.rank, eigenvalue_floor=cfg.eigenvalue_floor
        )
        return PipelineResult(correlation, decomposition, precision)

    def with_rank(self, result: PipelineResult, rank: int) -> PipelineResult:
        """New result with the precision matrix rebuilt at another rank."""
        precision = regularized_precision(
            result.decomposition, rank, eigenvalue_floor=self.config.eigenvalue_floor
        )
        return PipelineResult(result.correlation, result.decomposition, precision)

    def graph(
        self,
        result: PipelineResult,
        quantile: Optional[float] = None,
    ) -> GraphSnapshot:
        """Stages 4-5 at `quantile` (default: the configured quantile)."""
        cfg = self.config
        q = cfg.threshold_quantile if quantile is None else quantile
        return _graph_task(
            result.precision, q, cfg.include_diagonal, cfg.seed, cfg.resolution, cfg.max_levels
        )

    def sweep(
        self,
        result: PipelineResult,
        quantiles: Sequence[float],
        max_workers: Optional[int] = None,
        executor: str = "thread",
    ) -> List[GraphSnapshot]:
        """Stages 4-5 for several quantiles; see ``sweep_thresholds``."""
        cfg = self.config
        return sweep_thresholds(
            result.precision,
            quantiles,
            include_diagonal=cfg.include_diagonal,
            seed=cfg.seed,
            resolution=cfg.resolution,
            max_levels=cfg.max_levels,
            max_workers=max_workers,
            executor=executor,
        )

    def run(
        self,
        returns: np.ndarray,
        labels: Optional[Sequence[str]] = None,
    ) -> GraphSnapshot:
        """All five stages at the configured quantile."""
        return self.graph(self.fit(returns, labels))


def run_pipeline(
    returns: np.ndarray,
    labels: Optional[Sequence[str]] = None,
    config: Optional[PipelineConfig] = None,
    **kwargs: Any,
) -> GraphSnapshot:
    """
    One-shot helper: returns matrix in, graph snapshot out.

    Parameters
    ----------
    returns : ndarray (T, S)
    labels : sequence of str, optional
    config : PipelineConfig, optional
        If omitted, built from ``kwargs`` (e.g. rank=3,
        threshold_quantile=0.9).

    Examples
    --------
    >>> snapshot = run_pipeline(returns, tickers, rank=4, threshold_quantile=0.9)
    """
    if config is None:
        config = PipelineConfig(**kwargs)
    elif kwargs:
        config = config.replace(**kwargs)
    return PrecisionGraphPipeline(config).run(returns, labels)
