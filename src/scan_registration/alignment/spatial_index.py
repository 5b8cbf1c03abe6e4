"""
Spatial Index

Immutable nearest-neighbor index over a fixed point set, backed by a
scikit-learn KD-tree. Answers k-nearest and radius queries; equal distances
are ordered by insertion index so results are deterministic.
"""

from typing import Optional, Tuple

import numpy as np
from sklearn.neighbors import NearestNeighbors

from ..exceptions import EmptyInputError
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


class SpatialIndex:
    """
    KD-tree nearest-neighbor index.

    The index is built once over an (N, D) array and never modified; build a
    new index for a new point set. D is usually 3, but weighted feature
    vectors (x, y, z, curvature) are indexed the same way.
    """

    def __init__(self, points: np.ndarray, *, leaf_size: int = 30, n_jobs: Optional[int] = None):
        """
        Build the index.

        Args:
            points: Point set (N x D), N > 0, all values finite.
            leaf_size: KD-tree leaf size.
            n_jobs: Parallel jobs for batched queries (None = 1, -1 = all cores).

        Raises:
            EmptyInputError: If the point set is empty.
            ValueError: If points are not a finite 2D array.
        """
        points = np.asarray(points, dtype=np.float64)
        if points.size == 0:
            raise EmptyInputError("Cannot build a spatial index on zero points.")
        if points.ndim != 2:
            raise ValueError(f"points must be a 2D array (N x D), got shape {points.shape}")
        if not np.all(np.isfinite(points)):
            raise ValueError("points contain non-finite coordinates; filter them before indexing")

        self._points = points.copy()
        self._points.setflags(write=False)
        self._nbrs = NearestNeighbors(algorithm="kd_tree", leaf_size=leaf_size, n_jobs=n_jobs)
        self._nbrs.fit(self._points)
        logger.debug("Built KD-tree over %d points (dim=%d).", len(points), points.shape[1])

    @classmethod
    def build(cls, points: np.ndarray, **kwargs) -> "SpatialIndex":
        return cls(points, **kwargs)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def dimension(self) -> int:
        return self._points.shape[1]

    def _as_queries(self, queries: np.ndarray) -> np.ndarray:
        queries = np.asarray(queries, dtype=np.float64)
        if queries.ndim == 1:
            queries = queries.reshape(1, -1)
        if queries.shape[1] != self.dimension:
            raise ValueError(
                f"Query dimension {queries.shape[1]} does not match index dimension {self.dimension}"
            )
        return queries

    def query_k_nearest_batch(self, queries: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        k nearest neighbors for each query row.

        Args:
            queries: Query points (M x D).
            k: Number of neighbors; clipped to the index size.

        Returns:
            Tuple of (distances, indices), both (M x k'), with k' = min(k, N),
            sorted by distance and then by insertion index.
        """
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        queries = self._as_queries(queries)
        n = len(self._points)
        k_eff = min(k, n)
        if len(queries) == 0:
            return np.empty((0, k_eff)), np.empty((0, k_eff), dtype=np.intp)

        # One extra neighbor reveals ties straddling the k-th position
        k_probe = min(k_eff + 1, n)
        distances, indices = self._nbrs.kneighbors(queries, n_neighbors=k_probe)

        if k_probe > k_eff:
            boundary_ties = np.nonzero(distances[:, k_eff - 1] == distances[:, k_eff])[0]
        else:
            boundary_ties = np.empty(0, dtype=np.intp)

        distances = distances[:, :k_eff].copy()
        indices = indices[:, :k_eff].copy()

        for row in boundary_ties:
            # Everything at the k-th distance is a candidate; keep the earliest inserted
            ties_d, ties_i = self.query_radius(queries[row], float(distances[row, -1]))
            if len(ties_d) < k_eff:
                continue
            distances[row] = ties_d[:k_eff]
            indices[row] = ties_i[:k_eff]

        order = np.lexsort((indices, distances), axis=-1)
        distances = np.take_along_axis(distances, order, axis=1)
        indices = np.take_along_axis(indices, order, axis=1)
        return distances, indices

    def query_k_nearest(self, point: np.ndarray, k: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        k nearest neighbors of a single point.

        Returns:
            Tuple of (distances, indices), each of length min(k, N).
        """
        distances, indices = self.query_k_nearest_batch(point, k)
        return distances[0], indices[0]

    def nearest(self, queries: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Closest indexed point for each query row: (distances (M,), indices (M,))."""
        distances, indices = self.query_k_nearest_batch(queries, 1)
        return distances[:, 0], indices[:, 0]

    def query_radius(self, point: np.ndarray, radius: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        All indexed points within a radius (inclusive) of a single point.

        Returns:
            Tuple of (distances, indices), sorted by distance then insertion index.
        """
        if radius < 0:
            raise ValueError(f"radius must be non-negative, got {radius}")
        query = self._as_queries(point)[:1]
        dist_arr, ind_arr = self._nbrs.radius_neighbors(query, radius=radius)
        distances = np.asarray(dist_arr[0], dtype=np.float64)
        indices = np.asarray(ind_arr[0], dtype=np.intp)
        order = np.lexsort((indices, distances))
        return distances[order], indices[order]

    def query_radius_batch(self, queries: np.ndarray, radius: float):
        """Radius query for many points; returns lists of (distances, indices) arrays."""
        queries = self._as_queries(queries)
        dist_arr, ind_arr = self._nbrs.radius_neighbors(queries, radius=radius)
        results = []
        for d, i in zip(dist_arr, ind_arr):
            d = np.asarray(d, dtype=np.float64)
            i = np.asarray(i, dtype=np.intp)
            order = np.lexsort((i, d))
            results.append((d[order], i[order]))
        return results
