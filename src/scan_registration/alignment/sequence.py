"""
Sequential Scan Registration

Batch driver over a scan sequence: aligns each consecutive pair (seeded from
odometry poses when available) and folds the result into the global frame
of the first scan. Pairs are processed strictly in order because each
global transform depends on the previous one.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import numpy as np

from ..exceptions import EmptyInputError, InsufficientNeighborsError
from ..point_cloud import PointCloud
from ..utils.config import AppConfig
from ..utils.logging import setup_logger
from .global_composer import GlobalTransformComposer
from .incremental_alignment import AlignmentResult, IncrementalAligner, Observer
from .initial_guess import Pose2D, pose_seeded_guess

logger = setup_logger(__name__)

PairWriter = Callable[[int, PointCloud], None]


@dataclass
class PairRecord:
    """Outcome of one consecutive pair (scan index-1 -> scan index)."""

    index: int
    source_id: object
    target_id: object
    emitted: PointCloud
    result: Optional[AlignmentResult] = None
    error: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.result is None


@dataclass
class SequenceResult:
    pairs: List[PairRecord] = field(default_factory=list)
    global_transforms: List[np.ndarray] = field(default_factory=list)
    merged: Optional[PointCloud] = None

    @property
    def skipped_pairs(self) -> List[int]:
        return [p.index for p in self.pairs if p.skipped]

    @property
    def final_transform(self) -> np.ndarray:
        return self.global_transforms[-1] if self.global_transforms else np.eye(4)


class SequenceRegistration:
    """
    Registers a sequence of scans into the frame of the first one.
    """

    def __init__(self, aligner: Optional[IncrementalAligner] = None, *, use_pose_seed: bool = True):
        self.aligner = aligner or IncrementalAligner()
        self.use_pose_seed = use_pose_seed

    @classmethod
    def from_config(
        cls,
        cfg: AppConfig,
        *,
        use_pose_seed: bool = True,
        observer: Optional[Observer] = None,
    ) -> "SequenceRegistration":
        return cls(IncrementalAligner.from_config(cfg, observer=observer), use_pose_seed=use_pose_seed)

    def run(
        self,
        scans: Sequence[PointCloud],
        poses: Optional[Sequence[Optional[Pose2D]]] = None,
        writer: Optional[PairWriter] = None,
    ) -> SequenceResult:
        """
        Register consecutive pairs and compose them into the first scan's frame.

        Args:
            scans: Scan clouds in acquisition order.
            poses: Optional odometry pose per scan (None entries allowed).
            writer: Called once per processed pair with (pair index, emitted cloud).

        Returns:
            SequenceResult with per-pair records, the global transform of every
            scan and the merged cloud.

        Raises:
            EmptyInputError: If the sequence contains no scans.
        """
        if len(scans) == 0:
            raise EmptyInputError("No scans to register.")
        if poses is not None and len(poses) != len(scans):
            raise ValueError(f"Got {len(poses)} poses for {len(scans)} scans")

        logger.info("Registering sequence of %d scans.", len(scans))
        composer = GlobalTransformComposer()
        records: List[PairRecord] = []
        start = time.time()

        for i in range(1, len(scans)):
            source, target = scans[i - 1], scans[i]
            guess = np.eye(4)
            if self.use_pose_seed and poses is not None:
                guess = pose_seeded_guess(poses[i - 1], poses[i])

            try:
                result = self.aligner.align(source, target, initial_guess=guess)
            except (EmptyInputError, InsufficientNeighborsError) as e:
                logger.warning(
                    "Skipping pair %d ('%s' -> '%s'): %s",
                    i,
                    source.identifier,
                    target.identifier,
                    e,
                )
                emitted = composer.skip_pair(source)
                records.append(PairRecord(i, source.identifier, target.identifier, emitted, error=str(e)))
            else:
                emitted = composer.add_pair(result.target_to_source, result.aligned)
                records.append(PairRecord(i, source.identifier, target.identifier, emitted, result=result))

            if writer is not None:
                writer(i, emitted)

        merged = composer.merged() if records else scans[0].without_features()
        logger.info(
            "Sequence registration finished in %.2f s (%d pairs, %d skipped).",
            time.time() - start,
            len(records),
            sum(1 for r in records if r.skipped),
        )
        return SequenceResult(pairs=records, global_transforms=composer.history, merged=merged)
