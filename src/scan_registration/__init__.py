"""
Scan Registration Package

A Python package for pairwise incremental registration of 3D range scans.
Consecutive scans are aligned with an ICP loop that matches points on
(x, y, z, curvature) features, optionally seeded from odometry poses, and the
pairwise transforms are chained into the coordinate frame of the first scan.
"""

__version__ = "0.1.0"

from .exceptions import (
    RegistrationError,
    EmptyInputError,
    InsufficientNeighborsError,
    DegenerateCorrespondenceSetError,
    ConvergenceNotReached,
)
from .point_cloud import PointCloud
from .alignment import *
from .preprocessing import *
from .utils import *
from .workflow import WorkflowOutput, run_from_directory

__all__ = [
    "RegistrationError",
    "EmptyInputError",
    "InsufficientNeighborsError",
    "DegenerateCorrespondenceSetError",
    "ConvergenceNotReached",
    "PointCloud",
    "alignment",
    "preprocessing",
    "utils",
    "WorkflowOutput",
    "run_from_directory",
]
