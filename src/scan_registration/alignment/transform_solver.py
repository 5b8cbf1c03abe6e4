"""
Rigid Transform Estimation

Given correspondences between a source and a target cloud, estimate the
rigid transform minimizing the weighted sum of squared feature-space
distances.

Two estimators are available:
- gauss_newton: iterative linearization of a 6-DoF (rotation vector,
  translation) update, honoring per-axis weights.
- svd: closed-form least squares (Kabsch). With equal x, y, z weights the
  weighted minimum is the unweighted one, so only that case is accepted.

Feature axes beyond x, y, z (curvature by default) do not change under rigid
motion: they contribute a constant to the error, and their effect on the
result comes through which points were paired.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.spatial.transform import Rotation

from ..exceptions import DegenerateCorrespondenceSetError
from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from ..utils.transforms import apply_transform, make_transform, orthonormalize
from .correspondence import Correspondences
from .point_representation import PointRepresentation

logger = setup_logger(__name__)


@dataclass
class SolverResult:
    """
    Outcome of one solver call.

    Attributes:
        transform: Transform (4 x 4) mapping the given source onto the target.
        last_increment: Update applied by the final internal step (4 x 4).
        iterations: Internal steps performed.
        cost: Mean weighted squared feature-space distance after the update.
        rmse: Euclidean RMSE of the correspondences after the update.
        converged: True if the final update norm fell below the epsilon.
    """

    transform: np.ndarray
    last_increment: np.ndarray
    iterations: int
    cost: float
    rmse: float
    converged: bool


def skew(v: np.ndarray) -> np.ndarray:
    """Cross-product matrices for an array of vectors (N x 3) -> (N x 3 x 3)."""
    v = np.atleast_2d(v)
    out = np.zeros((len(v), 3, 3))
    out[:, 0, 1] = -v[:, 2]
    out[:, 0, 2] = v[:, 1]
    out[:, 1, 0] = v[:, 2]
    out[:, 1, 2] = -v[:, 0]
    out[:, 2, 0] = -v[:, 1]
    out[:, 2, 1] = v[:, 0]
    return out


class RigidTransformSolver:
    """
    Weighted rigid transform estimation from point correspondences.
    """

    def __init__(
        self,
        representation: Optional[PointRepresentation] = None,
        *,
        method: str = "gauss_newton",
        max_iterations: int = 2,
        transformation_epsilon: float = 1e-6,
        min_correspondences: int = 6,
    ):
        """
        Args:
            representation: Feature strategy and per-axis weights.
            method: "gauss_newton" or "svd" (equal x, y, z weights only).
            max_iterations: Internal steps per call (gauss_newton only).
            transformation_epsilon: Stop when the parameter update norm drops below this.
            min_correspondences: Independent pairs required for a well-posed problem.
        """
        if method not in ("gauss_newton", "svd"):
            raise ValueError(f"Unknown solver method '{method}'")
        self.representation = representation or PointRepresentation()
        spatial = self.representation.spatial_weights
        if method == "svd" and not np.all(spatial == spatial[0]):
            raise ValueError(
                f"Solver method 'svd' needs equal x, y, z weights, got {spatial.tolist()}; use 'gauss_newton'"
            )
        self.method = method
        self.max_iterations = max_iterations
        self.transformation_epsilon = transformation_epsilon
        self.min_correspondences = min_correspondences

    def solve(
        self,
        source: PointCloud,
        target: PointCloud,
        correspondences: Correspondences,
        initial_transform: Optional[np.ndarray] = None,
    ) -> SolverResult:
        """
        Estimate the transform aligning the paired source points to their targets.

        Args:
            source: Source cloud (as used for the correspondence search).
            target: Target cloud.
            correspondences: Pairs to fit.
            initial_transform: Starting estimate (4 x 4); identity if None.

        Returns:
            SolverResult with an orthonormal transform.

        Raises:
            DegenerateCorrespondenceSetError: If fewer than min_correspondences
                distinct source or target points are paired.
        """
        n_independent = min(
            len(np.unique(correspondences.source_indices)),
            len(np.unique(correspondences.target_indices)),
        )
        if n_independent < self.min_correspondences:
            raise DegenerateCorrespondenceSetError(n_independent, self.min_correspondences)

        src_feat = self.representation.features(source)[correspondences.source_indices]
        tgt_feat = self.representation.features(target)[correspondences.target_indices]
        transform = np.eye(4) if initial_transform is None else np.asarray(initial_transform, dtype=float).copy()

        if self.method == "svd":
            result = self._solve_svd(src_feat, tgt_feat, transform)
        else:
            result = self._solve_gauss_newton(src_feat, tgt_feat, transform)

        logger.debug(
            "Solver (%s): %d pairs, %d steps, cost=%.6e, rmse=%.6e",
            self.method,
            len(correspondences),
            result.iterations,
            result.cost,
            result.rmse,
        )
        return result

    # ------------------------ Estimators ------------------------
    def _solve_gauss_newton(self, src_feat: np.ndarray, tgt_feat: np.ndarray, transform: np.ndarray) -> SolverResult:
        w = self.representation.spatial_weights
        src_xyz = src_feat[:, :3]
        tgt_xyz = tgt_feat[:, :3]
        last_increment = np.eye(4)
        converged = False
        iterations = 0

        for _ in range(self.max_iterations):
            moved = apply_transform(src_xyz, transform)
            # Linearize about the centroid so rotation and translation stay decoupled
            center = moved.mean(axis=0)
            residual = (moved - tgt_xyz) * w  # (N, 3)

            # d(residual)/d(omega, tau) for a rotation about `center`
            J = np.zeros((len(moved), 3, 6))
            J[:, :, :3] = -skew(moved - center)
            J[:, :, 3:] = np.eye(3)
            J *= w[None, :, None]

            J_flat = J.reshape(-1, 6)
            delta, *_ = np.linalg.lstsq(J_flat, -residual.reshape(-1), rcond=None)

            R_step = Rotation.from_rotvec(delta[:3]).as_matrix()
            t_step = center - R_step @ center + delta[3:]
            last_increment = make_transform(R_step, t_step)
            transform = orthonormalize(last_increment @ transform)
            iterations += 1

            if np.linalg.norm(delta) < self.transformation_epsilon:
                converged = True
                break

        return self._result(src_feat, tgt_feat, transform, last_increment, iterations, converged)

    def _solve_svd(self, src_feat: np.ndarray, tgt_feat: np.ndarray, transform: np.ndarray) -> SolverResult:
        moved = apply_transform(src_feat[:, :3], transform)
        target_points = tgt_feat[:, :3]

        # Center the point sets
        source_centroid = np.mean(moved, axis=0)
        target_centroid = np.mean(target_points, axis=0)
        source_centered = moved - source_centroid
        target_centered = target_points - target_centroid

        # Cross-covariance and its SVD
        H = source_centered.T @ target_centered
        U, _, Vt = np.linalg.svd(H)
        R = Vt.T @ U.T

        # Ensure proper rotation (det(R) should be 1)
        if np.linalg.det(R) < 0:
            Vt[-1, :] *= -1
            R = Vt.T @ U.T

        t = target_centroid - R @ source_centroid
        increment = make_transform(R, t)
        transform = orthonormalize(increment @ transform)

        step = np.linalg.norm(Rotation.from_matrix(R).as_rotvec()) + np.linalg.norm(t)
        return self._result(
            src_feat, tgt_feat, transform, increment, 1, bool(step < self.transformation_epsilon)
        )

    def _result(
        self,
        src_feat: np.ndarray,
        tgt_feat: np.ndarray,
        transform: np.ndarray,
        last_increment: np.ndarray,
        iterations: int,
        converged: bool,
    ) -> SolverResult:
        moved = src_feat.copy()
        moved[:, :3] = apply_transform(src_feat[:, :3], transform)
        diff = moved - tgt_feat
        spatial = np.linalg.norm(diff[:, :3], axis=1)
        weights = self.representation.weights
        if weights is not None:
            diff = diff * weights
        return SolverResult(
            transform=transform,
            last_increment=last_increment,
            iterations=iterations,
            cost=float(np.mean(np.sum(diff ** 2, axis=1))),
            rmse=float(np.sqrt(np.mean(spatial ** 2))),
            converged=converged,
        )
