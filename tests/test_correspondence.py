"""
Tests for feature-space correspondence search.
"""

import numpy as np
import pytest

from scan_registration.alignment.correspondence import CorrespondenceFinder, Correspondences
from scan_registration.alignment.normals import NormalEstimator
from scan_registration.alignment.point_representation import PointRepresentation, xyz_features
from scan_registration.exceptions import EmptyInputError
from scan_registration.point_cloud import PointCloud


def _with_curvature(points, curvature):
    points = np.asarray(points, dtype=float)
    normals = np.tile([0.0, 0.0, 1.0], (len(points), 1))
    return PointCloud(points).with_features(normals, np.asarray(curvature, dtype=float))


def test_identical_clouds_pair_every_point(lattice_points):
    cloud = NormalEstimator().compute(PointCloud(lattice_points))
    result = CorrespondenceFinder(cloud).find(cloud, 0.5)

    assert len(result) == len(cloud)
    assert np.array_equal(result.source_indices, result.target_indices)
    assert np.allclose(result.distances, 0.0)
    assert result.rmse == pytest.approx(0.0)


def test_distant_pairs_rejected(lattice_points):
    target = PointCloud(lattice_points)
    source = PointCloud(lattice_points + np.array([0.3, 0.0, 0.0]))
    finder = CorrespondenceFinder(target, PointRepresentation(xyz_features))

    assert len(finder.find(source, 0.5)) == len(source)
    empty = finder.find(source, 0.1)
    assert len(empty) == 0
    assert empty.rmse == float("inf")


def test_curvature_axis_changes_the_match():
    target = _with_curvature([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]], [0.0, 0.3])
    source = _with_curvature([[0.0, 0.0, 0.0]], [0.3])

    # With curvature weighted, the similarly curved point wins despite being farther
    weighted = CorrespondenceFinder(target, PointRepresentation(weights=(1, 1, 1, 1))).find(source, 1.0)
    assert weighted.target_indices.tolist() == [1]
    assert weighted.distances[0] == pytest.approx(0.1)
    assert weighted.feature_distances[0] == pytest.approx(0.1)

    spatial = CorrespondenceFinder(target, PointRepresentation(weights=(1, 1, 1, 0))).find(source, 1.0)
    assert spatial.target_indices.tolist() == [0]


def test_acceptance_uses_feature_distance():
    target = _with_curvature([[0.0, 0.0, 0.0]], [0.0])
    source = _with_curvature([[0.05, 0.0, 0.0]], [0.3])
    finder = CorrespondenceFinder(target)

    # Spatially close, but the curvature gap pushes the feature distance above 0.2
    assert len(finder.find(source, 0.2)) == 0
    assert len(finder.find(source, 0.4)) == 1


def test_reciprocal_keeps_mutual_pairs_only():
    target = PointCloud(np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 0.0]]))
    source = PointCloud(np.array([[0.1, 0.0, 0.0], [0.3, 0.0, 0.0]]))

    plain = CorrespondenceFinder(target).find(source, 1.0)
    assert plain.target_indices.tolist() == [0, 0]

    mutual = CorrespondenceFinder(target, reciprocal=True).find(source, 1.0)
    assert mutual.source_indices.tolist() == [0]
    assert mutual.target_indices.tolist() == [0]


def test_points_without_features_are_skipped():
    normals = np.array([[0.0, 0.0, 1.0], [np.nan, np.nan, np.nan], [0.0, 0.0, 1.0]])
    curvature = np.array([0.0, np.nan, 0.0])
    target = PointCloud(np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])).with_features(
        normals, curvature
    )
    source = PointCloud(np.array([[1.0, 0.0, 0.0]]))

    result = CorrespondenceFinder(target).find(source, 5.0)
    assert result.target_indices[0] in (0, 2)
    assert result.distances[0] == pytest.approx(1.0)


def test_empty_target_raises():
    with pytest.raises(EmptyInputError):
        CorrespondenceFinder(PointCloud(np.empty((0, 3))))


def test_empty_correspondences():
    empty = Correspondences.empty()
    assert len(empty) == 0
    assert empty.source_indices.dtype == np.intp
