"""
Correspondence Search

Pairs each source point with its nearest target point in the weighted
feature space and keeps the pairs within a maximum distance. An empty result
is a valid outcome that the alignment loop treats as a stall.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from .normals import valid_feature_mask
from .point_representation import PointRepresentation
from .spatial_index import SpatialIndex

logger = setup_logger(__name__)


@dataclass
class Correspondences:
    """
    Accepted point pairs as parallel arrays.

    Attributes:
        source_indices: Indices into the source cloud.
        target_indices: Indices into the target cloud.
        distances: Euclidean (x, y, z) distance of each pair.
        feature_distances: Distance in the weighted feature space, the value
            compared against the maximum correspondence distance.
    """

    source_indices: np.ndarray
    target_indices: np.ndarray
    distances: np.ndarray
    feature_distances: np.ndarray

    def __len__(self) -> int:
        return len(self.source_indices)

    @classmethod
    def empty(cls) -> "Correspondences":
        return cls(
            source_indices=np.empty(0, dtype=np.intp),
            target_indices=np.empty(0, dtype=np.intp),
            distances=np.empty(0),
            feature_distances=np.empty(0),
        )

    @property
    def rmse(self) -> float:
        if len(self) == 0:
            return float("inf")
        return float(np.sqrt(np.mean(self.distances ** 2)))


class CorrespondenceFinder:
    """
    Nearest-neighbor correspondence search against a fixed target cloud.

    The target index is built once; find() is called every iteration with the
    source cloud moved by the current transform estimate.
    """

    def __init__(
        self,
        target: PointCloud,
        representation: Optional[PointRepresentation] = None,
        *,
        reciprocal: bool = False,
        leaf_size: int = 30,
        n_jobs: Optional[int] = None,
    ):
        """
        Args:
            target: Target cloud; points without estimated features are skipped.
            representation: Feature strategy; defaults to (x, y, z, curvature) unweighted.
            reciprocal: Keep only pairs that are mutual nearest neighbors.
            leaf_size: KD-tree leaf size.
            n_jobs: Parallel jobs for the per-point queries.

        Raises:
            EmptyInputError: If the target has no usable points.
        """
        self.target = target
        self.representation = representation or PointRepresentation()
        self.reciprocal = reciprocal
        self.leaf_size = leaf_size
        self.n_jobs = n_jobs

        mask = valid_feature_mask(target)
        self._target_ids = np.nonzero(mask)[0]
        self._target_features = self.representation.weighted(target)[mask]
        self._index = SpatialIndex(self._target_features, leaf_size=leaf_size, n_jobs=n_jobs)

    def find(self, source: PointCloud, max_correspondence_distance: float) -> Correspondences:
        """
        Find correspondences for a (possibly already transformed) source cloud.

        Args:
            source: Source cloud in the target's frame under the current estimate.
            max_correspondence_distance: Pairs farther apart (in feature space) are rejected.

        Returns:
            Accepted correspondences; may be empty.
        """
        mask = valid_feature_mask(source)
        source_ids = np.nonzero(mask)[0]
        if len(source_ids) == 0:
            return Correspondences.empty()

        source_features = self.representation.weighted(source)[mask]
        feature_dist, nearest = self._index.nearest(source_features)

        accepted = feature_dist <= max_correspondence_distance
        if self.reciprocal and np.any(accepted):
            accepted &= self._mutual_mask(source_features, nearest)

        src_idx = source_ids[accepted]
        tgt_idx = self._target_ids[nearest[accepted]]
        distances = np.linalg.norm(source.points[src_idx] - self.target.points[tgt_idx], axis=1)

        logger.debug(
            "Correspondences: %d of %d source points within %.4f.",
            len(src_idx),
            len(source_ids),
            max_correspondence_distance,
        )
        return Correspondences(
            source_indices=src_idx,
            target_indices=tgt_idx,
            distances=distances,
            feature_distances=feature_dist[accepted],
        )

    def _mutual_mask(self, source_features: np.ndarray, nearest: np.ndarray) -> np.ndarray:
        # Reverse search: for each matched target point, which source point is closest?
        source_index = SpatialIndex(source_features, leaf_size=self.leaf_size, n_jobs=self.n_jobs)
        _, back = source_index.nearest(self._target_features[nearest])
        return back == np.arange(len(source_features))
