"""
Rigid Transform Helpers

Rigid transforms are plain 4x4 float64 numpy arrays throughout the package:
the top-left 3x3 block is a rotation (orthonormal, det = +1) and the last
column holds the translation. These helpers build, invert, apply and compare
such matrices.
"""

from typing import Tuple

import numpy as np


def make_transform(rotation: np.ndarray, translation: np.ndarray) -> np.ndarray:
    """
    Assemble a homogeneous transform from a rotation and a translation.

    Args:
        rotation: Rotation matrix (3 x 3).
        translation: Translation vector (3,).

    Returns:
        Transformation matrix (4 x 4).
    """
    transform = np.eye(4)
    transform[:3, :3] = np.asarray(rotation, dtype=float)
    transform[:3, 3] = np.asarray(translation, dtype=float).reshape(3)
    return transform


def rotation_about_z(theta: float) -> np.ndarray:
    """Rotation matrix (3 x 3) for an angle in radians about the z-axis."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array(
        [
            [c, -s, 0.0],
            [s, c, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )


def invert_transform(transform: np.ndarray) -> np.ndarray:
    """Closed-form inverse of a rigid transform: (R, t) -> (R^T, -R^T t)."""
    R = transform[:3, :3]
    t = transform[:3, 3]
    inverse = np.eye(4)
    inverse[:3, :3] = R.T
    inverse[:3, 3] = -R.T @ t
    return inverse


def apply_transform(points: np.ndarray, transform: np.ndarray) -> np.ndarray:
    """
    Apply a transformation matrix to a set of points.

    Args:
        points: Point cloud (N x 3).
        transform: Transformation matrix (4 x 4).

    Returns:
        Transformed point cloud (N x 3).
    """
    if points.size == 0:
        return points.copy()

    # Direct affine form avoids building homogeneous coordinates
    R = transform[:3, :3]
    t = transform[:3, 3]
    return points @ R.T + t


def rotation_angle(rotation: np.ndarray) -> float:
    """Angle (radians) of a rotation matrix, from its trace."""
    # Clamp argument to arccos to valid range to avoid NaNs
    cos_theta = max(min((float(np.trace(rotation)) - 1.0) * 0.5, 1.0), -1.0)
    return float(np.arccos(cos_theta))


def transform_magnitude(transform: np.ndarray) -> Tuple[float, float]:
    """Return (translation norm, rotation angle in radians) of a transform."""
    return float(np.linalg.norm(transform[:3, 3])), rotation_angle(transform[:3, :3])


def transform_delta(a: np.ndarray, b: np.ndarray) -> Tuple[float, float]:
    """
    Separate translation and rotation differences between two transforms.

    Translation and rotation are compared independently so that neither unit
    dominates the other: the translation difference is the norm of the
    difference of the translation columns, the rotation difference is the
    angle of R_a^T R_b.
    """
    trans_diff = float(np.linalg.norm(a[:3, 3] - b[:3, 3]))
    rot_diff = rotation_angle(a[:3, :3].T @ b[:3, :3])
    return trans_diff, rot_diff


def is_rigid_transform(transform: np.ndarray, atol: float = 1e-6) -> bool:
    """Check shape, the homogeneous last row and orthonormality with det = +1."""
    transform = np.asarray(transform)
    if transform.shape != (4, 4) or not np.all(np.isfinite(transform)):
        return False
    if not np.allclose(transform[3], [0.0, 0.0, 0.0, 1.0], atol=atol):
        return False
    R = transform[:3, :3]
    if not np.allclose(R.T @ R, np.eye(3), atol=atol):
        return False
    return bool(abs(np.linalg.det(R) - 1.0) <= atol)


def validate_rigid_transform(transform: np.ndarray, atol: float = 1e-6) -> np.ndarray:
    """Return the transform as a float array, or raise ValueError if it is not rigid."""
    transform = np.asarray(transform, dtype=float)
    if transform.shape != (4, 4):
        raise ValueError(f"Transform must be 4x4 matrix, got {transform.shape}")
    if not is_rigid_transform(transform, atol=atol):
        raise ValueError("Transform rotation block is not orthonormal with determinant +1")
    return transform


def orthonormalize(transform: np.ndarray) -> np.ndarray:
    """Project the rotation block back onto SO(3) to remove accumulated drift."""
    U, _, Vt = np.linalg.svd(transform[:3, :3])
    R = U @ Vt
    if np.linalg.det(R) < 0:
        U[:, -1] *= -1
        R = U @ Vt
    out = transform.copy()
    out[:3, :3] = R
    return out
