"""
Scan Sequence Discovery and Batch Loading

This module locates a numbered scan sequence in a directory, e.g.

data/scans/
├── scan000.pcd
├── scan000.pose
├── scan001.pcd
├── scan001.pose
└── ...

and loads the scans and their odometry poses for an inclusive index range.
Missing indices are logged and skipped; a missing pose only disables pose
seeding for the pairs that involve that scan.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from ..alignment.initial_guess import Pose2D
from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from .loader import SUPPORTED_FORMATS, PointCloudLoader, load_pose

logger = setup_logger(__name__)


@dataclass
class ScanEntry:
    """Files belonging to one scan index."""
    index: int
    cloud_file: Path
    pose_file: Optional[Path] = None


@dataclass
class ScanSequence:
    """Loaded scans in index order, with an optional pose per scan."""
    entries: List[ScanEntry] = field(default_factory=list)
    scans: List[PointCloud] = field(default_factory=list)
    poses: List[Optional[Pose2D]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.scans)

    @property
    def indices(self) -> List[int]:
        return [e.index for e in self.entries]

    @property
    def has_poses(self) -> bool:
        return any(p is not None for p in self.poses)


def discover_scans(
    scan_dir: Union[str, Path],
    start_index: int,
    end_index: int,
    *,
    pattern: str = "scan{index:03d}",
    cloud_extension: Optional[str] = ".pcd",
    pose_extension: str = ".pose",
) -> List[ScanEntry]:
    """
    Find scan files for an inclusive index range.

    Args:
        scan_dir: Directory holding the scans.
        start_index: First index (inclusive).
        end_index: Last index (inclusive).
        pattern: File stem pattern, formatted with index=<int>.
        cloud_extension: Scan file extension; None tries every supported format.
        pose_extension: Pose file extension.

    Returns:
        ScanEntry list in index order (missing scans are skipped).
    """
    scan_dir = Path(scan_dir)
    if not scan_dir.is_dir():
        raise FileNotFoundError(f"Scan directory not found: {scan_dir}")
    if end_index < start_index:
        raise ValueError(f"end index {end_index} is before start index {start_index}")

    extensions = [cloud_extension] if cloud_extension else list(SUPPORTED_FORMATS)
    entries: List[ScanEntry] = []
    for index in range(start_index, end_index + 1):
        stem = pattern.format(index=index)
        cloud_file = next(
            (scan_dir / f"{stem}{ext}" for ext in extensions if (scan_dir / f"{stem}{ext}").exists()),
            None,
        )
        if cloud_file is None:
            logger.warning(f"No scan file for index {index} ({stem}) in {scan_dir}; skipping")
            continue
        pose_file = scan_dir / f"{stem}{pose_extension}"
        entries.append(ScanEntry(index, cloud_file, pose_file if pose_file.exists() else None))

    logger.info(f"Discovered {len(entries)} scans in {scan_dir} for indices {start_index}-{end_index}")
    return entries


def load_scan_sequence(
    entries: List[ScanEntry],
    *,
    loader: Optional[PointCloudLoader] = None,
    load_poses: bool = True,
) -> ScanSequence:
    """
    Load discovered scans (and poses) into memory.

    Scans that fail to load are logged and left out; poses that fail to load
    are replaced by None.
    """
    loader = loader or PointCloudLoader()
    sequence = ScanSequence()
    for entry in entries:
        try:
            cloud = loader.load(entry.cloud_file, identifier=entry.cloud_file.name)
        except (OSError, ValueError, ImportError) as e:
            logger.error(f"Failed to load scan {entry.cloud_file}: {e}")
            continue

        pose = None
        if load_poses and entry.pose_file is not None:
            try:
                pose = load_pose(entry.pose_file)
            except (OSError, ValueError) as e:
                logger.warning(f"Ignoring pose {entry.pose_file}: {e}")

        sequence.entries.append(entry)
        sequence.scans.append(cloud)
        sequence.poses.append(pose)

    logger.info(f"Loaded {len(sequence)} datasets.")
    return sequence
