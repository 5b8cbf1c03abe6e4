"""
Scan and Pose Loading

This module loads range scans into PointCloud objects and reads the
odometry pose stored next to each scan. Non-finite points are removed here
so that nothing downstream has to deal with NaN coordinates.

Supported point formats:
- .pcd / .ply via Open3D (optional dependency)
- .las / .laz via laspy
- .xyz / .txt / .csv (whitespace or comma separated, first three columns) and .npy via numpy
"""

from pathlib import Path
from typing import Optional, Union

import laspy
import numpy as np

from ..alignment.initial_guess import Pose2D
from ..point_cloud import PointCloud
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

OPEN3D_FORMATS = ('.pcd', '.ply')
LAS_FORMATS = ('.las', '.laz')
TEXT_FORMATS = ('.xyz', '.txt', '.csv')
NUMPY_FORMATS = ('.npy',)
SUPPORTED_FORMATS = OPEN3D_FORMATS + LAS_FORMATS + TEXT_FORMATS + NUMPY_FORMATS


def remove_non_finite(points: np.ndarray) -> np.ndarray:
    """Drop rows containing NaN or infinite coordinates."""
    mask = np.all(np.isfinite(points), axis=1)
    return points[mask]


class PointCloudLoader:
    """
    Loads scan files into PointCloud objects.

    Features:
    - Dispatch on file extension
    - Removal of non-finite points
    - Optional identifier override (defaults to the file path)
    """

    def __init__(self, *, remove_nan: bool = True):
        """
        Args:
            remove_nan: If True, drop points with non-finite coordinates (default True)
        """
        self.remove_nan = remove_nan

    def load(self, file_path: Union[str, Path], identifier: Optional[Union[str, int]] = None) -> PointCloud:
        """
        Load a scan file.

        Args:
            file_path: Path to the scan file
            identifier: Identifier stored on the cloud (default: the file path)

        Returns:
            PointCloud with (N, 3) float64 points

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file format is unsupported or the content is malformed
            ImportError: If a .pcd/.ply file is given and Open3D is not installed
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        logger.info(f"Loading point cloud data from {file_path}")

        try:
            if suffix in OPEN3D_FORMATS:
                points = self._read_open3d(file_path)
            elif suffix in LAS_FORMATS:
                points = self._read_las(file_path)
            elif suffix in NUMPY_FORMATS:
                points = np.load(file_path)
            else:
                points = self._read_text(file_path)
        except (ImportError, FileNotFoundError):
            raise
        except Exception as e:
            logger.error(f"Error loading point cloud data from {file_path}: {e}")
            raise

        points = np.asarray(points, dtype=np.float64)
        if points.size == 0:
            points = points.reshape(0, 3)
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError(f"Expected an (N, 3) point array in {file_path}, got shape {points.shape}")
        points = points[:, :3]

        total = len(points)
        if self.remove_nan:
            points = remove_non_finite(points)
            removed = total - len(points)
            if removed:
                logger.info(f"Removed {removed} non-finite points out of {total} from {file_path.name}")

        if len(points) == 0:
            logger.warning(f"No valid points found in file: {file_path}")

        return PointCloud(points, str(file_path) if identifier is None else identifier)

    def validate_file(self, file_path: Union[str, Path]) -> bool:
        """
        Validate a scan file.

        Args:
            file_path: Path to the scan file

        Returns:
            True if the file exists, has a supported format and contains at
            least one finite point, False otherwise
        """
        try:
            cloud = self.load(file_path)
        except Exception as e:
            logger.warning(f"File validation failed for {file_path}: {e}")
            return False
        if cloud.is_empty:
            return False
        logger.info(f"File validated successfully: {file_path}")
        return True

    @staticmethod
    def _read_open3d(file_path: Path) -> np.ndarray:
        try:
            import open3d as o3d  # type: ignore
        except Exception as e:
            raise ImportError(f"Open3D is required to read {file_path.suffix} files") from e
        pcd = o3d.io.read_point_cloud(str(file_path))
        return np.asarray(pcd.points, dtype=np.float64)

    @staticmethod
    def _read_las(file_path: Path) -> np.ndarray:
        las = laspy.read(file_path)
        return np.column_stack([
            np.array(las.x, dtype=np.float64),
            np.array(las.y, dtype=np.float64),
            np.array(las.z, dtype=np.float64),
        ])

    @staticmethod
    def _read_text(file_path: Path) -> np.ndarray:
        delimiter = ',' if file_path.suffix.lower() == '.csv' else None
        data = np.loadtxt(file_path, delimiter=delimiter, comments='#', ndmin=2)
        return data


def load_pose(file_path: Union[str, Path]) -> Pose2D:
    """
    Read an odometry pose file.

    The file holds whitespace-separated values "x y f2 f3 f4 heading", heading
    in degrees; only x, y and the heading are used. The heading is converted
    to radians.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If fewer than six values are present
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Pose file not found: {file_path}")

    values = file_path.read_text(encoding='utf-8').split()
    if len(values) < 6:
        raise ValueError(f"Pose file {file_path} must contain at least 6 values, found {len(values)}")
    try:
        x, y, heading_deg = float(values[0]), float(values[1]), float(values[5])
    except ValueError as e:
        raise ValueError(f"Malformed pose file {file_path}: {e}") from e

    pose = Pose2D.from_degrees(x, y, heading_deg)
    logger.info(f"Odometry pose from {file_path.name} (x, y, theta): ({x:f}, {y:f}, {heading_deg:f} deg)")
    return pose
