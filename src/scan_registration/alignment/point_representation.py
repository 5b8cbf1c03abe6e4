"""
Point Feature Representation

Maps a cloud to the weighted feature vectors used for matching and for the
solver's error. The default feature is (x, y, z, curvature): weighting the
curvature axis makes similarly curved regions pair up in addition to being
close in space.
"""

from typing import Callable, Optional, Sequence

import numpy as np

from ..point_cloud import PointCloud

FeatureFunction = Callable[[PointCloud], np.ndarray]


def xyz_curvature_features(cloud: PointCloud) -> np.ndarray:
    """(N x 4) feature matrix <x, y, z, curvature>; missing curvature counts as 0."""
    if cloud.curvature is None:
        curvature = np.zeros(len(cloud))
    else:
        curvature = np.nan_to_num(cloud.curvature, nan=0.0)
    return np.column_stack([cloud.points, curvature])


def xyz_features(cloud: PointCloud) -> np.ndarray:
    return np.asarray(cloud.points, dtype=np.float64)


class PointRepresentation:
    """
    Pluggable feature strategy with per-axis rescale weights.

    The first three feature axes must be the point coordinates; the solver
    relies on that to move them with the candidate transform while the
    remaining axes are treated as invariant under rigid motion.
    """

    def __init__(
        self,
        feature_fn: FeatureFunction = xyz_curvature_features,
        weights: Optional[Sequence[float]] = None,
    ):
        self.feature_fn = feature_fn
        self.weights = None if weights is None else np.asarray(weights, dtype=np.float64)

    def features(self, cloud: PointCloud) -> np.ndarray:
        """Unweighted feature matrix (N x D)."""
        features = np.asarray(self.feature_fn(cloud), dtype=np.float64)
        if features.ndim != 2 or features.shape[0] != len(cloud) or features.shape[1] < 3:
            raise ValueError(
                f"Feature function must return (N x D>=3) for {len(cloud)} points, got {features.shape}"
            )
        if self.weights is not None and len(self.weights) != features.shape[1]:
            raise ValueError(
                f"{len(self.weights)} weights given for {features.shape[1]}-dimensional features"
            )
        return features

    def weighted(self, cloud: PointCloud) -> np.ndarray:
        """Feature matrix with each axis multiplied by its weight."""
        features = self.features(cloud)
        if self.weights is None:
            return features
        return features * self.weights

    @property
    def spatial_weights(self) -> np.ndarray:
        """Weights of the x, y, z axes (ones when unweighted)."""
        if self.weights is None:
            return np.ones(3)
        return self.weights[:3]
