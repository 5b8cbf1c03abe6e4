"""
Incremental Pairwise Alignment

Aligns one scan pair with an ICP loop built from the normal estimator, the
correspondence search and the rigid transform solver. Each round runs a
short solve on fresh correspondences; whenever successive rounds agree, the
maximum correspondence distance is tightened to settle into a fine
alignment.

States: INIT -> ITERATING -> CONVERGED | STALLED | MAX_ITERATIONS_REACHED.
STALLED and MAX_ITERATIONS_REACHED are reported outcomes, not exceptions:
the latest estimate is always returned.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np

from ..exceptions import ConvergenceNotReached, DegenerateCorrespondenceSetError, EmptyInputError
from ..point_cloud import PointCloud
from ..preprocessing.downsampling import voxel_downsample
from ..utils.config import AlignmentContext, AppConfig, SolverConfig
from ..utils.logging import setup_logger
from ..utils.transforms import invert_transform, transform_delta, transform_magnitude
from .correspondence import CorrespondenceFinder
from .normals import NormalEstimator, valid_feature_mask
from .point_representation import PointRepresentation, xyz_curvature_features
from .transform_solver import RigidTransformSolver

logger = setup_logger(__name__)


class AlignmentState(str, Enum):
    INIT = "INIT"
    ITERATING = "ITERATING"
    CONVERGED = "CONVERGED"
    STALLED = "STALLED"
    MAX_ITERATIONS_REACHED = "MAX_ITERATIONS_REACHED"


@dataclass
class IterationReport:
    """Snapshot handed to the observer after every round."""

    iteration: int
    state: AlignmentState
    transform: np.ndarray
    round_transform: np.ndarray
    correspondence_count: int
    max_correspondence_distance: float
    rmse: float
    source: PointCloud
    target: PointCloud


Observer = Callable[[IterationReport], None]


@dataclass
class ConvergenceTracker:
    """
    Convergence state threaded through the rounds of one alignment.

    Rotation and translation are compared separately against their own
    epsilons. Two successive round transforms that agree within the shrink
    epsilons shrink the correspondence distance by a fixed decrement down to
    a floor. The loop has converged when the round transform is within the
    convergence epsilons of identity for two consecutive rounds, or when,
    right after a shrink, the correspondence count is unchanged and the round
    transform is within epsilon of identity. Either rule only applies once a
    round has searched under a tightened distance, unless the distance cannot
    shrink at all.
    """

    max_correspondence_distance: float
    distance_decrement: float
    min_correspondence_distance: float
    translation_epsilon: float
    rotation_epsilon: float
    shrink_translation_epsilon: float
    shrink_rotation_epsilon: float
    previous_round: Optional[np.ndarray] = field(default=None, repr=False)
    previous_count: Optional[int] = None
    identity_streak: int = 0
    shrunk_last_round: bool = False
    shrink_count: int = 0

    @classmethod
    def from_context(cls, context: AlignmentContext) -> "ConvergenceTracker":
        return cls(
            max_correspondence_distance=context.initial_max_correspondence_distance,
            distance_decrement=context.distance_decrement,
            min_correspondence_distance=context.min_correspondence_distance,
            translation_epsilon=context.convergence_translation_epsilon,
            rotation_epsilon=context.convergence_rotation_epsilon_rad,
            shrink_translation_epsilon=context.shrink_translation_epsilon,
            shrink_rotation_epsilon=context.shrink_rotation_epsilon_rad,
        )

    @property
    def can_shrink(self) -> bool:
        return self.distance_decrement > 0 and self.max_correspondence_distance > self.min_correspondence_distance

    def _small(self, translation: float, rotation: float) -> bool:
        return translation < self.translation_epsilon and rotation < self.rotation_epsilon

    def _agrees(self, translation: float, rotation: float) -> bool:
        return translation < self.shrink_translation_epsilon and rotation < self.shrink_rotation_epsilon

    def update(self, round_transform: np.ndarray, correspondence_count: int) -> bool:
        """Record one round; return True once the convergence criteria are met."""
        near_identity = self._small(*transform_magnitude(round_transform))
        self.identity_streak = self.identity_streak + 1 if near_identity else 0

        # This round's search ran under the distance left by earlier shrinks
        tightened = self.shrink_count > 0 or not self.can_shrink
        converged = tightened and (
            self.identity_streak >= 2
            or (
                self.shrunk_last_round
                and near_identity
                and correspondence_count == self.previous_count
            )
        )

        self.shrunk_last_round = False
        if self.previous_round is not None and self._agrees(*transform_delta(self.previous_round, round_transform)):
            tightened_distance = max(
                self.max_correspondence_distance - self.distance_decrement,
                self.min_correspondence_distance,
            )
            if tightened_distance < self.max_correspondence_distance:
                self.max_correspondence_distance = tightened_distance
                self.shrunk_last_round = True
                self.shrink_count += 1

        self.previous_round = round_transform
        self.previous_count = correspondence_count
        return converged


@dataclass
class AlignmentResult:
    """
    Outcome of aligning one scan pair.

    Attributes:
        state: Terminal state.
        source_to_target: Accumulated transform mapping source onto target (4 x 4).
        target_to_source: Its inverse; the pair's relative pose.
        aligned: Target re-expressed in the source frame, followed by the source points.
        iterations: Rounds started.
        correspondence_count: Pairs used in the last successful round.
        rmse: Correspondence RMSE after the last successful round (inf if none).
        final_max_correspondence_distance: Correspondence distance after shrinking.
        initial_guess: Seed the loop started from.
        reason: Human readable cause for non-converged states.
    """

    state: AlignmentState
    source_to_target: np.ndarray
    target_to_source: np.ndarray
    aligned: PointCloud
    iterations: int
    correspondence_count: int
    rmse: float
    final_max_correspondence_distance: float
    initial_guess: np.ndarray
    reason: str = ""

    @property
    def converged(self) -> bool:
        return self.state == AlignmentState.CONVERGED

    @property
    def stalled(self) -> bool:
        return self.state == AlignmentState.STALLED

    @property
    def diagnostic(self) -> Optional[ConvergenceNotReached]:
        """ConvergenceNotReached for non-converged outcomes, else None."""
        if self.converged:
            return None
        return ConvergenceNotReached(self.state.value, self.iterations, self.reason)

    def raise_if_not_converged(self) -> None:
        diagnostic = self.diagnostic
        if diagnostic is not None:
            raise diagnostic


class IncrementalAligner:
    """
    ICP alignment of one source/target pair with adaptive correspondence distance.

    The aligner holds no per-pair state between calls; the same instance can
    align any number of pairs.
    """

    def __init__(
        self,
        context: Optional[AlignmentContext] = None,
        *,
        normal_estimator: Optional[NormalEstimator] = None,
        solver_config: Optional[SolverConfig] = None,
        representation: Optional[PointRepresentation] = None,
        downsample_leaf_size: Optional[float] = None,
        index_leaf_size: int = 30,
        n_jobs: Optional[int] = None,
        observer: Optional[Observer] = None,
    ):
        """
        Args:
            context: Immutable alignment parameters (distances, epsilons, caps, weights).
            normal_estimator: Normal/curvature estimator (k=30 by default).
            solver_config: Solver method and internal steps per round.
            representation: Feature strategy; defaults to (x, y, z, curvature)
                with the context's feature weights.
            downsample_leaf_size: Voxel size applied to both clouds before
                alignment, or None to use the clouds as given.
            index_leaf_size: KD-tree leaf size.
            n_jobs: Parallel jobs for per-point neighbor queries.
            observer: Called with an IterationReport after every round.
        """
        self.context = context or AlignmentContext()
        self.normal_estimator = normal_estimator or NormalEstimator(n_jobs=n_jobs)
        self.solver_config = solver_config or SolverConfig()
        self.representation = representation or PointRepresentation(
            xyz_curvature_features, self.context.feature_weights
        )
        self.downsample_leaf_size = downsample_leaf_size
        self.index_leaf_size = index_leaf_size
        self.n_jobs = n_jobs
        self.observer = observer
        self.solver = RigidTransformSolver(
            self.representation,
            method=self.solver_config.method,
            max_iterations=self.solver_config.max_iterations,
            transformation_epsilon=self.context.transformation_epsilon,
            min_correspondences=self.solver_config.min_correspondences,
        )

    @classmethod
    def from_config(cls, cfg: AppConfig, observer: Optional[Observer] = None) -> "IncrementalAligner":
        return cls(
            cfg.alignment,
            normal_estimator=NormalEstimator(
                k_search=cfg.normals.k_search,
                radius_search=cfg.normals.radius_search,
                min_neighbors=cfg.normals.min_neighbors,
                n_jobs=cfg.spatial_index.n_jobs,
            ),
            solver_config=cfg.solver,
            downsample_leaf_size=cfg.downsample.leaf_size if cfg.downsample.enabled else None,
            index_leaf_size=cfg.spatial_index.leaf_size,
            n_jobs=cfg.spatial_index.n_jobs,
            observer=observer,
        )

    def align(
        self,
        source: PointCloud,
        target: PointCloud,
        initial_guess: Optional[np.ndarray] = None,
    ) -> AlignmentResult:
        """
        Align source onto target.

        Args:
            source: Source cloud (the earlier scan of the pair).
            target: Target cloud.
            initial_guess: Seed source->target transform (4 x 4); identity if None.

        Returns:
            AlignmentResult; non-converged outcomes are reported, not raised.

        Raises:
            EmptyInputError: If either cloud has no points.
            InsufficientNeighborsError: If no point of a cloud has enough
                neighbors for a normal estimate.
        """
        if source.is_empty or target.is_empty:
            raise EmptyInputError(
                f"Cannot align empty clouds (source '{source.identifier}'={len(source)}, "
                f"target '{target.identifier}'={len(target)})."
            )

        ctx = self.context
        seed = np.eye(4) if initial_guess is None else np.asarray(initial_guess, dtype=float).copy()
        start = time.monotonic()

        # INIT: features are computed once per pair, not per round
        src, tgt = source, target
        if self.downsample_leaf_size:
            src = voxel_downsample(source, self.downsample_leaf_size)
            tgt = voxel_downsample(target, self.downsample_leaf_size)
        src = self.normal_estimator.compute(src)
        tgt = self.normal_estimator.compute(tgt)
        src = src.select(valid_feature_mask(src))
        tgt = tgt.select(valid_feature_mask(tgt))

        logger.info(
            "Aligning '%s' (%d points) with '%s' (%d points).",
            source.identifier,
            len(src),
            target.identifier,
            len(tgt),
        )

        finder = CorrespondenceFinder(
            tgt,
            self.representation,
            reciprocal=ctx.reciprocal_correspondences,
            leaf_size=self.index_leaf_size,
            n_jobs=self.n_jobs,
        )
        tracker = ConvergenceTracker.from_context(ctx)
        current = seed.copy()
        state = AlignmentState.ITERATING
        reason = ""
        iterations = 0
        correspondence_count = 0
        rmse = float("inf")

        for iteration in range(ctx.max_iterations):
            if ctx.max_duration_s is not None and time.monotonic() - start > ctx.max_duration_s:
                state = AlignmentState.MAX_ITERATIONS_REACHED
                reason = f"deadline of {ctx.max_duration_s:.3f} s exceeded"
                break

            iterations = iteration + 1
            moved = src.transformed(current)
            correspondences = finder.find(moved, tracker.max_correspondence_distance)
            if len(correspondences) == 0:
                state = AlignmentState.STALLED
                reason = (
                    f"no correspondences within {tracker.max_correspondence_distance:.4f}"
                )
                break

            try:
                solved = self.solver.solve(moved, tgt, correspondences)
            except DegenerateCorrespondenceSetError as e:
                state = AlignmentState.STALLED
                reason = str(e)
                break

            current = solved.transform @ current
            correspondence_count = len(correspondences)
            rmse = solved.rmse
            converged = tracker.update(solved.transform, correspondence_count)

            trans_step, rot_step = transform_magnitude(solved.transform)
            logger.debug(
                "Iteration %d: pairs=%d, max_dist=%.4f, RMSE=%.6f, |dt|=%.3e, dtheta=%.3e rad",
                iterations,
                correspondence_count,
                tracker.max_correspondence_distance,
                rmse,
                trans_step,
                rot_step,
            )

            if converged:
                state = AlignmentState.CONVERGED

            if self.observer is not None:
                self.observer(
                    IterationReport(
                        iteration=iterations,
                        state=state,
                        transform=current.copy(),
                        round_transform=solved.transform.copy(),
                        correspondence_count=correspondence_count,
                        max_correspondence_distance=tracker.max_correspondence_distance,
                        rmse=rmse,
                        source=moved,
                        target=tgt,
                    )
                )

            if converged:
                break
        else:
            state = AlignmentState.MAX_ITERATIONS_REACHED
            reason = f"iteration cap of {ctx.max_iterations} reached"

        if state == AlignmentState.CONVERGED:
            logger.info(
                "Alignment converged after %d iterations (RMSE %.6f, %d pairs).",
                iterations,
                rmse,
                correspondence_count,
            )
        else:
            logger.warning("Alignment ended in %s after %d iterations: %s", state.value, iterations, reason)

        target_to_source = invert_transform(current)
        # Target re-expressed in the source frame, merged with the source
        aligned = PointCloud.concatenate(
            [target.without_features().transformed(target_to_source), source.without_features()],
            identifier=source.identifier,
        )
        logger.debug("Pair alignment took %.4f s.", time.monotonic() - start)

        return AlignmentResult(
            state=state,
            source_to_target=current,
            target_to_source=target_to_source,
            aligned=aligned,
            iterations=iterations,
            correspondence_count=correspondence_count,
            rmse=rmse,
            final_max_correspondence_distance=tracker.max_correspondence_distance,
            initial_guess=seed,
            reason=reason,
        )
