"""
Utility Functions Module

This module provides common utility functions used across the scan registration project.
- Logging setup
- Typed YAML configuration
- Rigid transform helpers
- Export of registered clouds and transformation matrices
"""

from .logging import setup_logger, set_log_level
from .transforms import (
    apply_transform,
    invert_transform,
    is_rigid_transform,
    make_transform,
    rotation_about_z,
    rotation_angle,
    transform_delta,
    validate_rigid_transform,
)
from .export import (
    write_point_cloud,
    save_transform_matrix,
    load_transform_matrix,
    save_transform_stack,
    load_transform_stack,
)

__all__ = [
    "setup_logger",
    "set_log_level",
    "apply_transform",
    "invert_transform",
    "is_rigid_transform",
    "make_transform",
    "rotation_about_z",
    "rotation_angle",
    "transform_delta",
    "validate_rigid_transform",
    "write_point_cloud",
    "save_transform_matrix",
    "load_transform_matrix",
    "save_transform_stack",
    "load_transform_stack",
]
