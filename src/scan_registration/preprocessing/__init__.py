"""
Scan Preprocessing Module

This module contains functions for getting scans into the registration core:
- Loading scans (PCD/PLY, LAS/LAZ, XYZ) with non-finite point removal
- Reading odometry pose files
- Discovering numbered scan sequences
- Voxel-grid downsampling
"""

from .loader import PointCloudLoader, load_pose, remove_non_finite
from .data_discovery import ScanEntry, ScanSequence, discover_scans, load_scan_sequence
from .downsampling import voxel_downsample

__all__ = [
    "PointCloudLoader",
    "load_pose",
    "remove_non_finite",
    "ScanEntry",
    "ScanSequence",
    "discover_scans",
    "load_scan_sequence",
    "voxel_downsample",
]
