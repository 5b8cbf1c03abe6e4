"""
Voxel Grid Downsampling

Replaces all points falling in the same cubic voxel by their centroid, which
evens out scan density and speeds up alignment on large scans.
"""

import numpy as np

from ..point_cloud import PointCloud
from ..utils.logging import setup_logger

logger = setup_logger(__name__)


def voxel_downsample(cloud: PointCloud, leaf_size: float) -> PointCloud:
    """
    Voxel-grid centroid filter.

    Args:
        cloud: Input cloud.
        leaf_size: Voxel edge length (same units as the points).

    Returns:
        New cloud with one point per occupied voxel, ordered by voxel key.
        Normals and curvature are dropped; they must be re-estimated.
    """
    if leaf_size <= 0:
        raise ValueError(f"leaf_size must be positive, got {leaf_size}")
    if cloud.is_empty:
        return cloud.without_features()

    points = cloud.points
    keys = np.floor((points - points.min(axis=0)) / leaf_size).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)

    sums = np.zeros((len(counts), 3))
    np.add.at(sums, inverse, points)
    centroids = sums / counts[:, None]

    logger.debug(
        "Voxel downsampling '%s' (leaf %.4f): %d -> %d points",
        cloud.identifier,
        leaf_size,
        len(points),
        len(centroids),
    )
    return PointCloud(centroids, cloud.identifier)
