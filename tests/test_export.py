"""
Tests for export utilities.

Tests point cloud export and transformation matrix persistence.
"""

import numpy as np
import pytest

from scan_registration.point_cloud import PointCloud
from scan_registration.preprocessing.loader import PointCloudLoader
from scan_registration.utils.export import (
    load_transform_matrix,
    load_transform_stack,
    save_transform_matrix,
    save_transform_stack,
    write_point_cloud,
)
from scan_registration.utils.transforms import make_transform, rotation_about_z


@pytest.fixture
def sample_cloud():
    """Generate sample point cloud data."""
    rng = np.random.default_rng(42)
    return PointCloud(rng.uniform(0, 100, (100, 3)), "sample")


def test_write_xyz_round_trip(tmp_path, sample_cloud):
    path = tmp_path / "nested" / "1.xyz"
    written = write_point_cloud(sample_cloud, path)

    assert written == str(path)
    loaded = PointCloudLoader().load(path)
    np.testing.assert_allclose(loaded.points, sample_cloud.points, atol=1e-8)


def test_write_las(tmp_path, sample_cloud):
    path = tmp_path / "1.las"
    write_point_cloud(sample_cloud, path)

    loaded = PointCloudLoader().load(path)
    assert len(loaded) == len(sample_cloud)
    np.testing.assert_allclose(loaded.points, sample_cloud.points, atol=1e-3)


def test_unsupported_output_format(tmp_path, sample_cloud):
    with pytest.raises(ValueError):
        write_point_cloud(sample_cloud, tmp_path / "1.obj")


def test_transform_matrix_round_trip(tmp_path):
    T = make_transform(rotation_about_z(0.3), [1.0, 2.0, 3.0])
    path = tmp_path / "transform.txt"

    save_transform_matrix(T, path)
    np.testing.assert_allclose(load_transform_matrix(path), T)

    with pytest.raises(ValueError):
        save_transform_matrix(np.eye(3), path)


def test_transform_stack(tmp_path):
    transforms = [np.eye(4), make_transform(rotation_about_z(0.1), [0.5, 0.0, 0.0])]
    path = tmp_path / "global_transforms.txt"

    save_transform_stack(transforms, path)
    loaded = load_transform_stack(path)

    assert len(loaded) == 2
    for expected, actual in zip(transforms, loaded):
        np.testing.assert_allclose(actual, expected)


def test_single_transform_stack(tmp_path):
    path = tmp_path / "one.txt"
    save_transform_stack([np.eye(4)], path)
    assert len(load_transform_stack(path)) == 1
