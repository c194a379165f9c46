"""
config.py - Default Hyperparameters for Precision Lab

Module-level constants only. Per-run settings travel in the immutable
``PipelineConfig`` (see types.py), which falls back to these defaults.
"""

# Regularization
EIGENVALUE_FLOOR = 1e-10

# Eigen-solver
CONVERGENCE_BUDGET = 100  # Jacobi sweeps
JACOBI_TOLERANCE = 1e-12
SYMMETRY_TOLERANCE = 1e-8
PSD_TOLERANCE = 1e-8  # relative to the largest |eigenvalue|

# Community detection
LOUVAIN_RESOLUTION = 1.0
LOUVAIN_THRESHOLD = 1e-7
LOUVAIN_MAX_LEVELS = 100
RANDOM_STATE = 42

# Colors (D3 category10 without its gray, which is reserved)
DEFAULT_PALETTE = (
    "#1f77b4",
    "#ff7f0e",
    "#2ca02c",
    "#d62728",
    "#9467bd",
    "#8c564b",
    "#e377c2",
    "#bcbd22",
    "#17becf",
)
UNASSOCIATED_COLOR = "#7f7f7f"
