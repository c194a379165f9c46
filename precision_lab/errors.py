"""
errors.py - Exception and Warning Types for Precision Lab

Every failure raised by the pipeline derives from PrecisionLabError so callers
can catch the whole family at once. InvalidInputError also derives from
ValueError, keeping plain ``except ValueError`` handlers working.
"""


class PrecisionLabError(Exception):
    """Base exception for precision_lab errors."""
    pass


class InvalidInputError(PrecisionLabError, ValueError):
    """Raised when a matrix, rank, quantile or config value is malformed."""
    pass


class DecompositionError(PrecisionLabError):
    """Raised when the eigen-solver fails or exhausts its sweep budget."""
    pass


class RegularizationError(PrecisionLabError):
    """Raised when a rank choice retains an eigenvalue below the floor."""
    pass


class RankOutOfRangeError(RegularizationError, InvalidInputError):
    """Raised when the truncation rank lies outside [1, S]."""
    pass


class CommunityDetectionError(PrecisionLabError):
    """Raised when community detection exhausts its level budget."""
    pass


class NumericInstability(RuntimeWarning):
    """Non-fatal warning, e.g. an eigenvalue clamped from -1e-17 to zero."""
    pass
