"""
Pose-Seeded Initial Guess

Converts two approximate planar poses (odometry: x, y, heading) into a 3D
rigid transform that seeds the alignment of the corresponding scans. The
result only has to be close enough to keep the alignment out of local
minima; it is not expected to be accurate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..utils.logging import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class Pose2D:
    """Planar sensor pose; heading in radians, counter-clockwise from +x."""

    x: float
    y: float
    heading: float

    @classmethod
    def from_degrees(cls, x: float, y: float, heading_deg: float) -> "Pose2D":
        return cls(float(x), float(y), float(np.deg2rad(heading_deg)))

    def basis(self) -> np.ndarray:
        """Local frame axes as rows: x-axis, y-axis, z-axis (3 x 3)."""
        x_axis = np.array([np.cos(self.heading), np.sin(self.heading), 0.0])
        y_axis = np.array([-np.sin(self.heading), np.cos(self.heading), 0.0])
        z_axis = np.array([0.0, 0.0, 1.0])
        x_axis /= np.linalg.norm(x_axis)
        y_axis /= np.linalg.norm(y_axis)
        return np.vstack([x_axis, y_axis, z_axis])


def pose_seeded_guess(source: Optional[Pose2D], target: Optional[Pose2D]) -> np.ndarray:
    """
    Initial source->target transform from two planar poses.

    The rotation block holds the dot products of the target's basis vectors
    with the source's (the relative heading, z untouched); the translation is
    the planar offset source - target expressed in the target's frame.

    Args:
        source: Pose of the source scan, or None.
        target: Pose of the target scan, or None.

    Returns:
        Transformation matrix (4 x 4); identity if either pose is missing.
    """
    if source is None or target is None:
        return np.eye(4)

    tgt_basis = target.basis()
    src_basis = source.basis()
    offset = np.array([source.x - target.x, source.y - target.y, 0.0])

    guess = np.eye(4)
    guess[:3, :3] = tgt_basis @ src_basis.T
    guess[:3, 3] = tgt_basis @ offset

    logger.debug(
        "Pose-seeded guess: dheading=%.4f rad, offset=(%.4f, %.4f)",
        target.heading - source.heading,
        guess[0, 3],
        guess[1, 3],
    )
    return guess
