"""
Registration Errors

Error types raised by the registration pipeline. Errors that are fatal for a
single pair (empty input, degenerate geometry) are caught by the sequence
driver so that one bad scan never aborts the whole sequence.
"""

from typing import Optional


class RegistrationError(Exception):
    """Base class for all registration failures."""


class EmptyInputError(RegistrationError, ValueError):
    """Raised when a spatial index or a pair alignment receives zero points."""


class InsufficientNeighborsError(RegistrationError):
    """Raised when a point has too few neighbors for a stable covariance."""

    def __init__(self, n_neighbors: int, required: int, point_index: Optional[int] = None):
        self.n_neighbors = n_neighbors
        self.required = required
        self.point_index = point_index
        where = f" for point {point_index}" if point_index is not None else ""
        super().__init__(
            f"Found {n_neighbors} neighbors{where}; at least {required} are required "
            "to estimate a normal."
        )


class DegenerateCorrespondenceSetError(RegistrationError):
    """Raised when too few independent correspondences constrain a rigid transform."""

    def __init__(self, n_independent: int, required: int = 6):
        self.n_independent = n_independent
        self.required = required
        super().__init__(
            f"Only {n_independent} independent correspondences; "
            f"{required} are required to solve for a rigid transform."
        )


class ConvergenceNotReached(RegistrationError):
    """
    Informational: alignment stopped before meeting its convergence criteria.

    Attached to an alignment result rather than raised; callers who want a hard
    failure can raise it themselves.
    """

    def __init__(self, state: str, iterations: int, reason: str = ""):
        self.state = state
        self.iterations = iterations
        self.reason = reason
        msg = f"Alignment ended in state {state} after {iterations} iterations"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
