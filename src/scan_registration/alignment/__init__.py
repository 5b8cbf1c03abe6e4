"""
Pairwise Alignment Module

This module registers consecutive scans with an incremental ICP loop
(normals and curvature, feature-space correspondences, weighted rigid
transform estimation) and composes the pairwise results into the frame of
the first scan.
"""

from .spatial_index import SpatialIndex
from .normals import NormalEstimator, valid_feature_mask
from .point_representation import PointRepresentation, xyz_curvature_features, xyz_features
from .correspondence import Correspondences, CorrespondenceFinder
from .transform_solver import RigidTransformSolver, SolverResult
from .initial_guess import Pose2D, pose_seeded_guess
from .incremental_alignment import (
    AlignmentResult,
    AlignmentState,
    ConvergenceTracker,
    IncrementalAligner,
    IterationReport,
)
from .global_composer import GlobalTransformComposer
from .sequence import PairRecord, SequenceRegistration, SequenceResult

__all__ = [
    "SpatialIndex",
    "NormalEstimator",
    "valid_feature_mask",
    "PointRepresentation",
    "xyz_curvature_features",
    "xyz_features",
    "Correspondences",
    "CorrespondenceFinder",
    "RigidTransformSolver",
    "SolverResult",
    "Pose2D",
    "pose_seeded_guess",
    "AlignmentResult",
    "AlignmentState",
    "ConvergenceTracker",
    "IncrementalAligner",
    "IterationReport",
    "GlobalTransformComposer",
    "PairRecord",
    "SequenceRegistration",
    "SequenceResult",
]
