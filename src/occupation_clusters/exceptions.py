"""
Errors and warnings raised by the clustering pipeline.
"""

from typing import List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .builder import ClusteringResult


class OccupationClusterError(Exception):
    """Base class for pipeline errors."""


class DegenerateColumnError(OccupationClusterError):
    """A skill column has zero variance and cannot be standardized."""
    
    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)
        super().__init__(
            f"Cannot standardize zero-variance column(s): {', '.join(self.columns)}"
        )


class InsufficientDimensionsError(OccupationClusterError):
    """More principal components requested than the matrix can provide."""
    
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Requested {requested} components but only {available} are available"
        )


class ConvergenceError(OccupationClusterError):
    """
    An iterative algorithm hit its iteration cap.
    
    The last-known assignment is kept on ``result`` so callers can inspect it
    (or opt in to it with ``accept_unconverged=True`` on the builder).
    """
    
    def __init__(
        self,
        message: str,
        labels=None,
        n_iter: int = 0,
        result: Optional["ClusteringResult"] = None,
    ):
        super().__init__(message)
        self.labels = labels
        self.n_iter = n_iter
        self.result = result


class UnmappedCodeError(OccupationClusterError):
    """Baseline occupation codes had no counterpart in the target scheme."""
    
    def __init__(self, codes: List[str]):
        self.codes = list(codes)
        preview = ", ".join(self.codes[:10])
        more = f" (+{len(self.codes) - 10} more)" if len(self.codes) > 10 else ""
        super().__init__(f"{len(self.codes)} unmapped code(s): {preview}{more}")


class EmptyClusterWarning(UserWarning):
    """A clustering produced empty or singleton clusters."""
