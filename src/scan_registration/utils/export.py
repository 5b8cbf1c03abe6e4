"""
Export utilities for registration results.

Provides functions to write:
- Registered point clouds (PCD/PLY via Open3D, LAS/LAZ via laspy, XYZ text via numpy)
- Transformation matrices as plain text (one 4x4 matrix or a stack of them)
"""

from pathlib import Path
from typing import List, Sequence, Union, TYPE_CHECKING

import numpy as np

from .logging import setup_logger

if TYPE_CHECKING:
    from ..point_cloud import PointCloud

logger = setup_logger(__name__)

PathLike = Union[str, Path]


def write_point_cloud(cloud: "PointCloud", output_path: PathLike, *, binary: bool = True) -> str:
    """
    Write a point cloud; the format follows the file extension.

    Args:
        cloud: Cloud to write
        output_path: Destination (.pcd, .ply, .las, .laz, .xyz or .txt)
        binary: Binary encoding for PCD/PLY (ignored for other formats)

    Returns:
        Path to created file

    Raises:
        ValueError: If the extension is not supported
        ImportError: If Open3D is needed and not installed
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = output_path.suffix.lower()
    points = np.asarray(cloud.points, dtype=np.float64)

    if suffix in (".pcd", ".ply"):
        _write_open3d(points, output_path, binary=binary)
    elif suffix in (".las", ".laz"):
        _write_las(points, output_path)
    elif suffix in (".xyz", ".txt"):
        np.savetxt(output_path, points, fmt="%.9f")
    else:
        raise ValueError(f"Unsupported output format: {output_path.suffix}")

    logger.info(f"Exported {len(points):,} points to {output_path}")
    return str(output_path)


def _write_open3d(points: np.ndarray, output_path: Path, *, binary: bool) -> None:
    try:
        import open3d as o3d  # type: ignore
    except Exception as e:
        raise ImportError(f"Open3D is required to write {output_path.suffix} files") from e

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points)
    if not o3d.io.write_point_cloud(str(output_path), pcd, write_ascii=not binary):
        raise OSError(f"Open3D failed to write {output_path}")


def _write_las(points: np.ndarray, output_path: Path) -> None:
    import laspy

    header = laspy.LasHeader(point_format=3, version="1.2")
    if len(points):
        header.offsets = points.min(axis=0)
    # Millimeter resolution is plenty for range scans
    header.scales = np.array([0.001, 0.001, 0.001])

    las = laspy.LasData(header)
    las.x = points[:, 0]
    las.y = points[:, 1]
    las.z = points[:, 2]
    las.write(str(output_path))


def save_transform_matrix(transform: np.ndarray, output_file: PathLike) -> None:
    """Save a transformation matrix to a text file.

    Args:
        transform: 4x4 transformation matrix
        output_file: Path to output file
    """
    transform = np.asarray(transform, dtype=float)
    if transform.shape != (4, 4):
        raise ValueError(f"Transform must be 4x4 matrix, got {transform.shape}")
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(output_file, transform, fmt='%.18e', header='4x4 transformation matrix')
    logger.info(f"Saved transformation matrix to {output_file}")


def load_transform_matrix(input_file: PathLike) -> np.ndarray:
    """Load a transformation matrix from a text file.

    Args:
        input_file: Path to input file

    Returns:
        4x4 transformation matrix
    """
    transform = np.loadtxt(input_file)
    if transform.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {transform.shape}")
    logger.info(f"Loaded transformation matrix from {input_file}")
    return transform


def save_transform_stack(transforms: Sequence[np.ndarray], output_file: PathLike) -> None:
    """Save several 4x4 matrices (e.g. one global transform per scan) to one text file."""
    stack = np.asarray(transforms, dtype=float).reshape(-1, 4)
    if stack.shape[0] % 4 != 0:
        raise ValueError("Transforms must all be 4x4 matrices")
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(
        output_file,
        stack,
        fmt='%.18e',
        header=f'{stack.shape[0] // 4} stacked 4x4 transformation matrices',
    )
    logger.info(f"Saved {stack.shape[0] // 4} transformation matrices to {output_file}")


def load_transform_stack(input_file: PathLike) -> List[np.ndarray]:
    """Inverse of save_transform_stack."""
    stack = np.loadtxt(input_file, ndmin=2)
    if stack.shape[1] != 4 or stack.shape[0] % 4 != 0:
        raise ValueError(f"Expected stacked 4x4 matrices, got shape {stack.shape}")
    return [stack[i:i + 4] for i in range(0, stack.shape[0], 4)]
