"""
Point Cloud Container

An immutable point set plus the identifier of the scan it came from, with
optional per-point normals and curvature. Every operation returns a new
cloud; arrays are marked read-only so a stage cannot modify a cloud it
received from another stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

import numpy as np

from .utils.transforms import apply_transform


def _frozen(array: Optional[np.ndarray], shape_tail: tuple, name: str, n: Optional[int] = None) -> Optional[np.ndarray]:
    if array is None:
        return None
    out = np.array(array, dtype=np.float64)
    if out.ndim == 1 and shape_tail == (3,) and out.size == 0:
        out = out.reshape(0, 3)
    if out.shape[1:] != shape_tail:
        raise ValueError(f"{name} must have shape (N, {', '.join(map(str, shape_tail))}), got {out.shape}")
    if n is not None and len(out) != n:
        raise ValueError(f"{name} has {len(out)} rows but the cloud has {n} points")
    out.setflags(write=False)
    return out


@dataclass(frozen=True, eq=False)
class PointCloud:
    """
    Ordered point set with a stable identifier.

    Attributes:
        points: (N, 3) float64 coordinates.
        identifier: Source filename or scan index.
        normals: Optional (N, 3) unit normals (sign unconstrained).
        curvature: Optional (N,) surface variation in [0, 1].
    """

    points: np.ndarray
    identifier: Union[str, int] = ""
    normals: Optional[np.ndarray] = field(default=None, repr=False)
    curvature: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        points = _frozen(self.points, (3,), "points")
        n = len(points)
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "normals", _frozen(self.normals, (3,), "normals", n))
        object.__setattr__(self, "curvature", _frozen(self.curvature, (), "curvature", n))

    def __len__(self) -> int:
        return len(self.points)

    def __add__(self, other: "PointCloud") -> "PointCloud":
        return PointCloud.concatenate([self, other], identifier=self.identifier)

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @property
    def has_normals(self) -> bool:
        return self.normals is not None and self.curvature is not None

    def with_features(self, normals: np.ndarray, curvature: np.ndarray) -> "PointCloud":
        """Return a copy augmented with normals and curvature."""
        return PointCloud(self.points, self.identifier, normals=normals, curvature=curvature)

    def without_features(self) -> "PointCloud":
        return PointCloud(self.points, self.identifier)

    def select(self, mask_or_indices: np.ndarray) -> "PointCloud":
        """Return the subset selected by a boolean mask or an index array."""
        return PointCloud(
            self.points[mask_or_indices],
            self.identifier,
            normals=None if self.normals is None else self.normals[mask_or_indices],
            curvature=None if self.curvature is None else self.curvature[mask_or_indices],
        )

    def transformed(self, transform: np.ndarray) -> "PointCloud":
        """
        Apply a rigid transform and return the new cloud.

        Normals are rotated; curvature is invariant under rigid motion and is
        carried over unchanged.
        """
        normals = None
        if self.normals is not None:
            normals = self.normals @ np.asarray(transform)[:3, :3].T
        return PointCloud(
            apply_transform(self.points, np.asarray(transform, dtype=float)),
            self.identifier,
            normals=normals,
            curvature=self.curvature,
        )

    @staticmethod
    def concatenate(clouds: Iterable["PointCloud"], identifier: Union[str, int] = "") -> "PointCloud":
        """
        Merge clouds in order. Normals and curvature survive only when every
        input carries them.
        """
        clouds = list(clouds)
        if not clouds:
            return PointCloud(np.empty((0, 3)), identifier)
        points = np.vstack([c.points for c in clouds])
        if all(c.has_normals for c in clouds):
            normals = np.vstack([c.normals for c in clouds])
            curvature = np.concatenate([c.curvature for c in clouds])
            return PointCloud(points, identifier, normals=normals, curvature=curvature)
        return PointCloud(points, identifier)
