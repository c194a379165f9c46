"""
precision_lab - Regularized Precision Graphs and Community Detection
"""

__version__ = "1.0.0"

# =============================================================================
# ERRORS
# =============================================================================
from .errors import (
    PrecisionLabError,
    InvalidInputError,
    DecompositionError,
    RegularizationError,
    RankOutOfRangeError,
    CommunityDetectionError,
    NumericInstability,
)

# =============================================================================
# CORE TYPES
# =============================================================================
from .types import (
    CorrelationMatrix,
    SpectralDecomposition,
    PrecisionMatrix,
    Edge,
    ThresholdedGraph,
    CommunityAssignment,
    NodeView,
    GraphSnapshot,
    PipelineConfig,
    EigenMethod,
)

# =============================================================================
# PIPELINE STAGES
# =============================================================================
from .correlation import estimate_correlation
from .decomposition import spectral_decomposition
from .regularization import (
    regularized_precision,
    select_rank_by_variance,
    marchenko_pastur_rank,
)
from .graph import (
    quantile_threshold,
    build_graph,
)
from .community import (
    detect_communities,
    partition_modularity,
    build_snapshot,
)

# =============================================================================
# ORCHESTRATION
# =============================================================================
from .pipeline import (
    PipelineResult,
    PrecisionGraphPipeline,
    run_pipeline,
    sweep_thresholds,
)

# =============================================================================
# PREPROCESSING & I/O
# =============================================================================
from .preprocessing import (
    forward_fill,
    log_returns,
    prices_to_returns,
)
from .io import (
    save_snapshot,
    load_snapshot,
    save_sweep,
    load_sweep,
    load_returns_csv,
    SnapshotFormat,
)

# PUBLIC API
# =============================================================================
__all__ = [
    "__version__",
    "PrecisionLabError",
    "InvalidInputError",
    "DecompositionError",
    "RegularizationError",
    "RankOutOfRangeError",
    "CommunityDetectionError",
    "NumericInstability",
    "CorrelationMatrix",
    "SpectralDecomposition",
    "PrecisionMatrix",
    "Edge",
    "ThresholdedGraph",
    "CommunityAssignment",
    "NodeView",
    "GraphSnapshot",
    "PipelineConfig",
    "EigenMethod",
    "estimate_correlation",
    "spectral_decomposition",
    "regularized_precision",
    "select_rank_by_variance",
    "marchenko_pastur_rank",
    "quantile_threshold",
    "build_graph",
    "detect_communities",
    "partition_modularity",
    "build_snapshot",
    "PipelineResult",
    "PrecisionGraphPipeline",
    "run_pipeline",
    "sweep_thresholds",
    "forward_fill",
    "log_returns",
    "prices_to_returns",
    "save_snapshot",
    "load_snapshot",
    "save_sweep",
    "load_sweep",
    "load_returns_csv",
    "SnapshotFormat",
]
