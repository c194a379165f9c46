"""
test_examples.py - Tests for the Examples Package

Tests cover:
- run_example dispatch and unknown names
- block_sweep and rank_selection end to end
"""

import sys
from pathlib import Path

import pytest

project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from examples import list_examples, run_example  # noqa: E402
from precision_lab import GraphSnapshot  # noqa: E402


class TestRunExample:
    """Test that examples run end-to-end via the wrapper."""

    def test_block_sweep(self):
        snapshots = run_example("block_sweep", T=300, quantiles=(0.6, 0.9), workers=2)
        assert len(snapshots) == 2
        assert all(isinstance(s, GraphSnapshot) for s in snapshots)
        assert [s.quantile for s in snapshots] == [0.6, 0.9]

    def test_block_sweep_recovers_blocks(self):
        snapshots = run_example("block_sweep", quantiles=(0.6,))
        groups = snapshots[0].assignment.groups()
        assert len(groups) == 4
        assert all(len(members) == 6 for members in groups.values())

    def test_rank_selection(self):
        result = run_example("rank_selection")
        assert result["mp_rank"] == 3
        assert 1 in result["groups"]

    def test_list_examples(self):
        assert set(list_examples()) == {"block_sweep", "rank_selection"}

    def test_unknown_example(self):
        with pytest.raises(ValueError, match="Unknown example"):
            run_example("optimize_portfolio")
