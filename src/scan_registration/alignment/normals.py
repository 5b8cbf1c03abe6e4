"""
Surface Normal and Curvature Estimation

For each point, the covariance of its neighborhood is decomposed; the
eigenvector of the smallest eigenvalue is the normal and
lambda_min / (lambda_0 + lambda_1 + lambda_2) is the curvature (surface
variation, 0 for a perfect plane, 1/3 for an isotropic blob).
"""

from typing import Optional, Tuple

import numpy as np

from ..exceptions import EmptyInputError, InsufficientNeighborsError
from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from .spatial_index import SpatialIndex

logger = setup_logger(__name__)


def normal_from_neighbors(neighbors: np.ndarray, min_neighbors: int = 4) -> Tuple[np.ndarray, float]:
    """
    Estimate the normal and curvature of a single neighborhood.

    Args:
        neighbors: Neighbor positions (K x 3), the query point usually included.
        min_neighbors: Smallest K for which the covariance is considered stable.

    Returns:
        Tuple of (unit normal (3,), curvature).

    Raises:
        InsufficientNeighborsError: If K < min_neighbors.
    """
    if len(neighbors) < min_neighbors:
        raise InsufficientNeighborsError(len(neighbors), min_neighbors)

    centered = neighbors - neighbors.mean(axis=0)
    covariance = centered.T @ centered / len(neighbors)
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)  # ascending

    total = float(np.sum(eigenvalues))
    # Coincident points give a zero covariance; treat them as flat
    curvature = float(eigenvalues[0]) / total if total > 0 else 0.0
    normal = eigenvectors[:, 0]
    return normal, min(max(curvature, 0.0), 1.0)


class NormalEstimator:
    """
    Per-point normal and curvature estimation from k nearest neighbors
    (or a fixed search radius).

    Normal orientation is not made consistent across the cloud; the
    registration only uses curvature, which is sign independent.
    """

    def __init__(
        self,
        k_search: int = 30,
        radius_search: Optional[float] = None,
        min_neighbors: int = 4,
        n_jobs: Optional[int] = None,
    ):
        """
        Args:
            k_search: Neighbors per point (the point itself counts as one).
            radius_search: If set, use all neighbors within this radius instead.
            min_neighbors: Points with fewer neighbors are excluded.
            n_jobs: Parallel jobs for the neighbor queries.
        """
        if k_search < 1:
            raise ValueError(f"k_search must be >= 1, got {k_search}")
        self.k_search = k_search
        self.radius_search = radius_search
        self.min_neighbors = min_neighbors
        self.n_jobs = n_jobs

    def compute(self, cloud: PointCloud, index: Optional[SpatialIndex] = None) -> PointCloud:
        """
        Return a copy of the cloud carrying normals and curvature.

        Points whose neighborhood is too small get NaN normal and curvature;
        use PointCloud.select(valid_feature_mask(cloud)) to drop them.

        Raises:
            EmptyInputError: If the cloud has no points.
            InsufficientNeighborsError: If no point at all has enough neighbors.
        """
        if cloud.is_empty:
            raise EmptyInputError(f"Cannot estimate normals for empty cloud '{cloud.identifier}'.")

        if index is None:
            index = SpatialIndex(cloud.points, n_jobs=self.n_jobs)

        n = len(cloud)
        normals = np.full((n, 3), np.nan)
        curvature = np.full(n, np.nan)

        excluded = 0
        if self.radius_search is None:
            _, indices = index.query_k_nearest_batch(cloud.points, self.k_search)
            if indices.shape[1] >= self.min_neighbors:
                normals, curvature = _batch_normals(cloud.points[indices])
            else:
                excluded = n
        else:
            neighborhoods = index.query_radius_batch(cloud.points, self.radius_search)
            for i, (_, neighbor_idx) in enumerate(neighborhoods):
                try:
                    normals[i], curvature[i] = normal_from_neighbors(
                        cloud.points[neighbor_idx], self.min_neighbors
                    )
                except InsufficientNeighborsError:
                    excluded += 1

        if excluded == n:
            raise InsufficientNeighborsError(
                min(n, self.k_search) if self.radius_search is None else 0,
                self.min_neighbors,
            )
        if excluded:
            logger.warning(
                "Normal estimation for '%s': %d of %d points have fewer than %d neighbors "
                "and are excluded.",
                cloud.identifier,
                excluded,
                n,
                self.min_neighbors,
            )
        logger.debug(
            "Estimated normals for '%s' (%d points, mean curvature %.4f).",
            cloud.identifier,
            n,
            float(np.nanmean(curvature)),
        )
        return cloud.with_features(normals, curvature)


def _batch_normals(neighborhoods: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorized normal_from_neighbors over equally sized neighborhoods (N x K x 3)."""
    centered = neighborhoods - neighborhoods.mean(axis=1, keepdims=True)
    covariance = np.einsum("nki,nkj->nij", centered, centered) / neighborhoods.shape[1]
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)

    total = eigenvalues.sum(axis=1)
    safe_total = np.where(total > 0, total, 1.0)
    curvature = np.where(total > 0, eigenvalues[:, 0] / safe_total, 0.0)
    return eigenvectors[:, :, 0], np.clip(curvature, 0.0, 1.0)


def valid_feature_mask(cloud: PointCloud) -> np.ndarray:
    """Boolean mask of points whose normal and curvature were estimated."""
    if not cloud.has_normals:
        return np.ones(len(cloud), dtype=bool)
    return np.isfinite(cloud.curvature) & np.all(np.isfinite(cloud.normals), axis=1)
