"""
Test suite for scan and pose loading
"""

import tempfile
import unittest
import numpy as np
from pathlib import Path
import sys

# Import the loader module
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))
from scan_registration.preprocessing.loader import PointCloudLoader, load_pose, remove_non_finite
from scan_registration.utils.export import write_point_cloud
from scan_registration.point_cloud import PointCloud


class TestPointCloudLoader(unittest.TestCase):
    """Test cases for the PointCloudLoader class."""

    def setUp(self):
        """Set up a scratch directory with small scan files."""
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)
        self.loader = PointCloudLoader()
        self.points = np.array([
            [0.0, 0.0, 0.0],
            [1.0, 2.0, 3.0],
            [-1.5, 0.25, 10.0],
        ])

    def tearDown(self):
        self._tmp.cleanup()

    def test_load_xyz(self):
        path = self.tmp_dir / "scan000.xyz"
        np.savetxt(path, self.points)

        cloud = self.loader.load(path)

        self.assertIsInstance(cloud, PointCloud)
        self.assertEqual(cloud.points.dtype, np.float64)
        np.testing.assert_allclose(cloud.points, self.points)
        self.assertEqual(cloud.identifier, str(path))

    def test_load_csv_with_extra_columns(self):
        path = self.tmp_dir / "scan000.csv"
        data = np.column_stack([self.points, np.arange(3)])
        np.savetxt(path, data, delimiter=",")

        cloud = self.loader.load(path, identifier="scan000")

        np.testing.assert_allclose(cloud.points, self.points)
        self.assertEqual(cloud.identifier, "scan000")

    def test_load_npy(self):
        path = self.tmp_dir / "scan000.npy"
        np.save(path, self.points)
        np.testing.assert_allclose(self.loader.load(path).points, self.points)

    def test_single_point_file(self):
        path = self.tmp_dir / "one.xyz"
        path.write_text("1 2 3\n", encoding="utf-8")
        self.assertEqual(self.loader.load(path).points.shape, (1, 3))

    def test_non_finite_points_removed(self):
        path = self.tmp_dir / "scan000.npy"
        data = np.vstack([self.points, [[np.nan, 0.0, 0.0], [0.0, np.inf, 1.0]]])
        np.save(path, data)

        self.assertEqual(len(self.loader.load(path)), 3)
        self.assertEqual(len(PointCloudLoader(remove_nan=False).load(path)), 5)

    def test_las_round_trip(self):
        path = self.tmp_dir / "scan000.las"
        write_point_cloud(PointCloud(self.points), path)

        cloud = self.loader.load(path)
        np.testing.assert_allclose(cloud.points, self.points, atol=1e-3)

    def test_unsupported_format(self):
        path = self.tmp_dir / "scan000.e57"
        path.write_text("", encoding="utf-8")
        with self.assertRaises(ValueError):
            self.loader.load(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            self.loader.load(self.tmp_dir / "missing.xyz")

    def test_validate_file(self):
        good = self.tmp_dir / "good.xyz"
        np.savetxt(good, self.points)
        self.assertTrue(self.loader.validate_file(good))
        self.assertFalse(self.loader.validate_file(self.tmp_dir / "missing.xyz"))

        only_nan = self.tmp_dir / "nan.npy"
        np.save(only_nan, np.full((2, 3), np.nan))
        self.assertFalse(self.loader.validate_file(only_nan))

    def test_remove_non_finite(self):
        pts = np.array([[0.0, 0.0, 0.0], [np.nan, 1.0, 1.0]])
        self.assertEqual(remove_non_finite(pts).shape, (1, 3))


class TestLoadPose(unittest.TestCase):
    """Test cases for odometry pose parsing."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_reads_x_y_and_heading(self):
        path = self.tmp_dir / "scan000.pose"
        path.write_text("12.5 -3.0 0.1 0.0 0.0 90.0\n", encoding="utf-8")

        pose = load_pose(path)

        self.assertAlmostEqual(pose.x, 12.5)
        self.assertAlmostEqual(pose.y, -3.0)
        self.assertAlmostEqual(pose.heading, np.pi / 2)

    def test_multiline_pose(self):
        path = self.tmp_dir / "scan001.pose"
        path.write_text("1 2 0\n0 0 -45\n", encoding="utf-8")
        self.assertAlmostEqual(load_pose(path).heading, -np.pi / 4)

    def test_too_few_values(self):
        path = self.tmp_dir / "short.pose"
        path.write_text("1 2 3\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_pose(path)

    def test_malformed_values(self):
        path = self.tmp_dir / "bad.pose"
        path.write_text("a b c d e f\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_pose(path)

    def test_missing_pose(self):
        with self.assertRaises(FileNotFoundError):
            load_pose(self.tmp_dir / "missing.pose")


if __name__ == "__main__":
    unittest.main()
