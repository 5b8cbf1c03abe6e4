"""
Shared fixtures for the registration tests.
"""

from pathlib import Path
import sys

import numpy as np
import pytest

# Ensure src is importable
sys.path.append(str(Path(__file__).parent.parent / "src"))


def _jittered_lattice(shape=(8, 8, 4), spacing: float = 1.0, jitter: float = 0.15, seed: int = 0) -> np.ndarray:
    """Regular lattice with small random offsets, centered on the origin.

    Neighboring points stay at least spacing - 2 * jitter apart, so nearest
    neighbor matches are unambiguous for displacements below half of that.
    """
    rng = np.random.default_rng(seed)
    axes = [np.arange(n) * spacing for n in shape]
    grid = np.stack(np.meshgrid(*axes, indexing="ij"), axis=-1).reshape(-1, 3)
    grid = grid + rng.uniform(-jitter, jitter, size=grid.shape)
    return grid - grid.mean(axis=0)


@pytest.fixture
def lattice_points() -> np.ndarray:
    return _jittered_lattice()


@pytest.fixture
def make_lattice():
    """Factory for lattices with custom shape or seed."""
    return _jittered_lattice


@pytest.fixture
def plane_points() -> np.ndarray:
    """Points on the z = 0 plane with no noise."""
    x, y = np.meshgrid(np.arange(10, dtype=float), np.arange(10, dtype=float))
    return np.column_stack([x.ravel(), y.ravel(), np.zeros(x.size)])
