"""
Test suite for scan sequence discovery
"""

import tempfile
import unittest
import numpy as np
from pathlib import Path
import sys

# Import the data discovery module
sys.path.append(str(Path(__file__).parent.parent.parent / "src"))
from scan_registration.preprocessing.data_discovery import discover_scans, load_scan_sequence


class TestDiscoverScans(unittest.TestCase):
    """Test cases for discover_scans and load_scan_sequence."""

    def setUp(self):
        """Create scan000..scan003 with scan002 missing and a pose for scan000 and scan001."""
        self._tmp = tempfile.TemporaryDirectory()
        self.scan_dir = Path(self._tmp.name)
        rng = np.random.default_rng(0)
        for i in (0, 1, 3):
            np.savetxt(self.scan_dir / f"scan{i:03d}.xyz", rng.normal(size=(10, 3)))
        for i in (0, 1):
            (self.scan_dir / f"scan{i:03d}.pose").write_text(f"{i}.0 0.0 0 0 0 {5 * i}\n", encoding="utf-8")

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_indices_skipped(self):
        entries = discover_scans(self.scan_dir, 0, 3, cloud_extension=".xyz")

        self.assertEqual([e.index for e in entries], [0, 1, 3])
        self.assertEqual(entries[0].cloud_file.name, "scan000.xyz")
        self.assertIsNotNone(entries[1].pose_file)
        self.assertIsNone(entries[2].pose_file)

    def test_any_supported_extension(self):
        entries = discover_scans(self.scan_dir, 0, 1, cloud_extension=None)
        self.assertEqual(len(entries), 2)

    def test_wrong_extension_finds_nothing(self):
        self.assertEqual(discover_scans(self.scan_dir, 0, 3, cloud_extension=".pcd"), [])

    def test_custom_pattern(self):
        np.savetxt(self.scan_dir / "frame_7.xyz", np.zeros((3, 3)))
        entries = discover_scans(self.scan_dir, 7, 7, pattern="frame_{index}", cloud_extension=".xyz")
        self.assertEqual([e.index for e in entries], [7])

    def test_invalid_range(self):
        with self.assertRaises(ValueError):
            discover_scans(self.scan_dir, 3, 0)

    def test_missing_directory(self):
        with self.assertRaises(FileNotFoundError):
            discover_scans(self.scan_dir / "nope", 0, 1)

    def test_load_sequence_with_poses(self):
        entries = discover_scans(self.scan_dir, 0, 3, cloud_extension=".xyz")
        sequence = load_scan_sequence(entries)

        self.assertEqual(len(sequence), 3)
        self.assertEqual(sequence.indices, [0, 1, 3])
        self.assertEqual(sequence.scans[0].identifier, "scan000.xyz")
        self.assertTrue(sequence.has_poses)
        self.assertAlmostEqual(sequence.poses[1].x, 1.0)
        self.assertAlmostEqual(sequence.poses[1].heading, np.deg2rad(5.0))
        self.assertIsNone(sequence.poses[2])

    def test_load_sequence_without_poses(self):
        entries = discover_scans(self.scan_dir, 0, 1, cloud_extension=".xyz")
        sequence = load_scan_sequence(entries, load_poses=False)
        self.assertFalse(sequence.has_poses)

    def test_broken_files_are_left_out(self):
        (self.scan_dir / "scan004.xyz").write_text("not numbers\n", encoding="utf-8")
        (self.scan_dir / "scan003.pose").write_text("1 2\n", encoding="utf-8")

        entries = discover_scans(self.scan_dir, 3, 4, cloud_extension=".xyz")
        sequence = load_scan_sequence(entries)

        self.assertEqual(sequence.indices, [3])
        self.assertIsNone(sequence.poses[0])


if __name__ == "__main__":
    unittest.main()
