"""
Per-row value transforms applied before residual statistics are computed.

Each transform rewrites a dense float64 buffer holding one gene's values
across all cells, in place, so that the buffer ends up in the value domain
the linear model was fit against.
"""

import numba
import numpy as np

from .._validate import validate_ncells, validate_size_factors


@numba.njit(error_model="numpy")
def _log_normalize(x: np.ndarray, size_factors: np.ndarray, pseudo_count: float):
    for j in range(x.shape[0]):
        x[j] = np.log2(x[j] / size_factors[j] + pseudo_count)


class RowTransform:
    """Base class for in-place row transforms."""

    def check(self, ncells: int) -> None:
        """Raise ``ValueError`` if the transform cannot be applied to rows of length ``ncells``."""
        return

    def apply(self, x: np.ndarray) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    def params(self) -> dict:
        return dict(transform=type(self).__name__)


class Identity(RowTransform):
    """Leaves the values as provided."""

    def apply(self, x: np.ndarray) -> None:
        return

    def __repr__(self) -> str:
        return "Identity()"


class LogNormalize(RowTransform):
    """
    Size-factor scaling followed by a log2 transform.

    Every value ``v`` in cell ``j`` is replaced with
    ``log2(v / size_factors[j] + pseudo_count)``.

    Non-positive arguments to the logarithm are not checked. A zero argument
    gives ``-inf`` and a negative one gives ``nan``, and either value flows
    into the statistics of the affected gene. Supplying a positive
    ``pseudo_count`` together with non-negative counts and positive size
    factors is the caller's responsibility.

    Args:
        size_factors: One positive scaling factor per cell, in column order.
        pseudo_count: Non-negative value added before taking the logarithm.
    """

    def __init__(self, size_factors, pseudo_count: float = 1.0):
        if not pseudo_count >= 0:
            raise ValueError(f"'pseudo_count' must be non-negative: {pseudo_count}")
        self.size_factors = np.array(validate_size_factors(size_factors), dtype=np.float64)
        self.size_factors.setflags(write=False)
        self.pseudo_count = float(pseudo_count)

    def check(self, ncells: int) -> None:
        validate_ncells("size factors", self.size_factors.shape[0], ncells)

    def apply(self, x: np.ndarray) -> None:
        _log_normalize(x, self.size_factors, self.pseudo_count)

    def params(self) -> dict:
        return dict(transform=type(self).__name__, pseudo_count=self.pseudo_count)

    def __repr__(self) -> str:
        return (
            f"LogNormalize(n_cells={self.size_factors.shape[0]}, "
            f"pseudo_count={self.pseudo_count})"
        )


__all__ = [
    "RowTransform",
    "Identity",
    "LogNormalize",
]
