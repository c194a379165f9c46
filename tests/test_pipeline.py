"""
test_pipeline.py - Tests for the End-to-End Pipeline and Threshold Sweep

Tests cover:
- Two-block scenario (A == B, C == D) end to end
- Three-block factor scenario recovering its blocks
- Determinism across runs
- with_rank reusing the decomposition
- Sweep ordering and thread / process / inline agreement
- Config handling and error propagation
"""

import warnings

import pytest
import numpy as np

from precision_lab import (
    PipelineConfig,
    PrecisionGraphPipeline,
    PipelineResult,
    run_pipeline,
    sweep_thresholds,
    build_graph,
    InvalidInputError,
    RankOutOfRangeError,
    RegularizationError,
    NumericInstability,
)
from precision_lab.config import UNASSOCIATED_COLOR


def snapshot_key(snapshot):
    """Hashable summary used to compare snapshots."""
    return (
        snapshot.quantile,
        snapshot.threshold,
        tuple((e.i, e.j, e.weight) for e in snapshot.edges),
        snapshot.assignment.membership,
        snapshot.assignment.colors,
    )


class TestTwoBlockScenario:
    """A == B, C == D, the two pairs nearly uncorrelated."""

    @pytest.fixture
    def result(self, pair_returns):
        returns, labels = pair_returns
        pipeline = PrecisionGraphPipeline(PipelineConfig(rank=2, threshold_quantile=0.5))
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", NumericInstability)
            return pipeline, pipeline.fit(returns, labels)

    def test_spectrum(self, result):
        _, res = result
        np.testing.assert_allclose(res.decomposition.eigenvalues[:2], 2.0, atol=0.2)
        np.testing.assert_allclose(res.decomposition.eigenvalues[2:], 0.0, atol=1e-8)

    def test_precision_structure(self, result):
        _, res = result
        P = res.precision.matrix
        assert P[0, 1] == pytest.approx(1.0, abs=1e-6)
        assert P[2, 3] == pytest.approx(1.0, abs=1e-6)
        for i, j in [(0, 2), (0, 3), (1, 2), (1, 3)]:
            assert abs(P[i, j]) < 0.1

    def test_graph_and_communities(self, result):
        pipeline, res = result
        snapshot = pipeline.graph(res)

        assert {(e.i, e.j) for e in snapshot.edges} == {(0, 1), (2, 3)}
        assert snapshot.assignment.groups() == {1: (0, 1), 2: (2, 3)}
        assert snapshot.assignment.unassociated_group is None
        assert snapshot.labels == ("A", "B", "C", "D")
        assert snapshot.rank == 2

    def test_rank_three_rejected(self, result):
        pipeline, res = result
        with pytest.raises(RegularizationError, match="below the floor"):
            pipeline.with_rank(res, 3)


class TestBlockFactorScenario:
    """Three blocks of four series, each driven by its own factor."""

    def test_blocks_recovered(self, block_returns):
        returns, labels = block_returns
        snapshot = run_pipeline(returns, labels, rank=3, threshold_quantile=0.6)

        groups = snapshot.assignment.groups()
        assert snapshot.assignment.unassociated_group is None
        assert sorted(groups.values()) == [
            (0, 1, 2, 3),
            (4, 5, 6, 7),
            (8, 9, 10, 11),
        ]
        assert all(node.color != UNASSOCIATED_COLOR for node in snapshot.nodes)

    def test_deterministic(self, block_returns):
        returns, labels = block_returns
        a = run_pipeline(returns, labels, rank=3, threshold_quantile=0.7)
        b = run_pipeline(returns, labels, rank=3, threshold_quantile=0.7)
        assert snapshot_key(a) == snapshot_key(b)
        assert a.to_dict() == b.to_dict()

    def test_jacobi_matches_lapack(self, block_returns):
        returns, labels = block_returns
        cfg = PipelineConfig(rank=3, threshold_quantile=0.8)
        lapack = PrecisionGraphPipeline(cfg).fit(returns, labels)
        jacobi = PrecisionGraphPipeline(cfg.replace(eigen_method="jacobi")).fit(returns, labels)
        np.testing.assert_allclose(
            jacobi.precision.matrix, lapack.precision.matrix, atol=1e-8
        )

    def test_with_rank_reuses_decomposition(self, block_returns):
        returns, labels = block_returns
        pipeline = PrecisionGraphPipeline(PipelineConfig(rank=3, threshold_quantile=0.9))
        result = pipeline.fit(returns, labels)
        other = pipeline.with_rank(result, 5)

        assert isinstance(other, PipelineResult)
        assert other.decomposition is result.decomposition
        assert other.correlation is result.correlation
        assert other.rank == 5
        assert result.rank == 3
        assert other.labels == tuple(labels)


class TestSweep:
    """Tests for sweep_thresholds() and PrecisionGraphPipeline.sweep()."""

    QUANTILES = [0.95, 0.5, 0.8, 0.6, 0.99, 0.7]

    @pytest.fixture
    def fitted(self, block_returns):
        returns, labels = block_returns
        pipeline = PrecisionGraphPipeline(PipelineConfig(rank=3, threshold_quantile=0.9))
        return pipeline, pipeline.fit(returns, labels)

    def test_results_follow_request_order(self, fitted):
        pipeline, result = fitted
        snapshots = pipeline.sweep(result, self.QUANTILES, max_workers=3)
        assert [s.quantile for s in snapshots] == self.QUANTILES

    def test_matches_individual_graphs(self, fitted):
        pipeline, result = fitted
        snapshots = pipeline.sweep(result, self.QUANTILES, max_workers=4)
        for q, snap in zip(self.QUANTILES, snapshots):
            assert snapshot_key(snap) == snapshot_key(pipeline.graph(result, q))

    def test_thread_inline_process_agree(self, fitted):
        _, result = fitted
        inline = sweep_thresholds(result.precision, self.QUANTILES, max_workers=1)
        threaded = sweep_thresholds(result.precision, self.QUANTILES, max_workers=4)
        processes = sweep_thresholds(
            result.precision, self.QUANTILES, max_workers=2, executor="process"
        )
        assert [snapshot_key(s) for s in inline] == [snapshot_key(s) for s in threaded]
        assert [snapshot_key(s) for s in inline] == [snapshot_key(s) for s in processes]

    def test_shared_precision_untouched(self, fitted):
        _, result = fitted
        before = result.precision.matrix.copy()
        sweep_thresholds(result.precision, self.QUANTILES, max_workers=4)
        assert np.array_equal(result.precision.matrix, before)

    def test_edges_shrink_with_quantile(self, fitted):
        _, result = fitted
        qs = [0.5, 0.6, 0.7, 0.8, 0.9, 0.95]
        counts = [len(s.edges) for s in sweep_thresholds(result.precision, qs)]
        assert counts == sorted(counts, reverse=True)

    def test_duplicate_quantiles(self, fitted):
        _, result = fitted
        snapshots = sweep_thresholds(result.precision, [0.9, 0.9], max_workers=2)
        assert snapshot_key(snapshots[0]) == snapshot_key(snapshots[1])

    def test_empty_sweep(self, fitted):
        _, result = fitted
        assert sweep_thresholds(result.precision, []) == []

    def test_invalid_quantile_fails_fast(self, fitted):
        _, result = fitted
        with pytest.raises(InvalidInputError, match="quantile"):
            sweep_thresholds(result.precision, [0.5, 1.0])

    def test_invalid_executor(self, fitted):
        _, result = fitted
        with pytest.raises(InvalidInputError, match="executor"):
            sweep_thresholds(result.precision, [0.5, 0.9], executor="gpu")

    def test_invalid_workers(self, fitted):
        _, result = fitted
        with pytest.raises(InvalidInputError, match="max_workers"):
            sweep_thresholds(result.precision, [0.5, 0.9], max_workers=0)


class TestPipelineConfigHandling:
    """Tests for config plumbing and error propagation."""

    def test_requires_config(self):
        with pytest.raises(InvalidInputError, match="PipelineConfig"):
            PrecisionGraphPipeline({"rank": 3, "threshold_quantile": 0.9})

    def test_run_pipeline_overrides(self, block_returns):
        returns, labels = block_returns
        cfg = PipelineConfig(rank=3, threshold_quantile=0.9)
        snapshot = run_pipeline(returns, labels, config=cfg, threshold_quantile=0.8)
        assert snapshot.quantile == 0.8

    def test_off_diagonal_option(self, block_returns):
        returns, labels = block_returns
        cfg = PipelineConfig(rank=3, threshold_quantile=0.8, include_diagonal=False)
        pipeline = PrecisionGraphPipeline(cfg)
        result = pipeline.fit(returns, labels)
        snapshot = pipeline.graph(result)
        expected = build_graph(result.precision, 0.8, include_diagonal=False)
        assert snapshot.threshold == expected.threshold

    def test_rank_larger_than_series(self, block_returns):
        returns, labels = block_returns
        with pytest.raises(RankOutOfRangeError):
            run_pipeline(returns, labels, rank=13, threshold_quantile=0.9)

    def test_bad_returns_propagate(self):
        with pytest.raises(InvalidInputError):
            run_pipeline(np.ones((10, 3)), rank=2, threshold_quantile=0.9)
