"""
Global Transform Composition

Chains pairwise transforms so that every scan of a sequence is expressed in
the frame of the first scan. Pairs must be added strictly in sequence order.
"""

from typing import List

import numpy as np

from ..point_cloud import PointCloud
from ..utils.logging import setup_logger
from ..utils.transforms import validate_rigid_transform

logger = setup_logger(__name__)


class GlobalTransformComposer:
    """
    Running global transform for a scan sequence.

    For pair i (scan i-1 as source, scan i as target) with relative pose
    P_i = target_to_source:

        G_i = G_{i-1} @ P_i

    G_i maps scan i coordinates into scan 0's frame. The pair's aligned
    output lives in scan i-1's frame, so it is mapped with G_{i-1} before the
    running transform is updated.
    """

    def __init__(self):
        self._transform = np.eye(4)
        self._history: List[np.ndarray] = [np.eye(4)]
        self._emitted: List[PointCloud] = []

    @property
    def transform(self) -> np.ndarray:
        """Global transform of the most recent scan (copy)."""
        return self._transform.copy()

    @property
    def history(self) -> List[np.ndarray]:
        """Global transform of every scan processed so far; scan 0 is identity."""
        return [T.copy() for T in self._history]

    @property
    def emitted(self) -> List[PointCloud]:
        return list(self._emitted)

    @property
    def n_scans(self) -> int:
        return len(self._history)

    def merged(self) -> PointCloud:
        """All emitted clouds concatenated, in the first scan's frame."""
        return PointCloud.concatenate(self._emitted, identifier="merged")

    def add_pair(self, target_to_source: np.ndarray, aligned: PointCloud) -> PointCloud:
        """
        Fold one completed pair into the global frame.

        Args:
            target_to_source: The pair's relative pose (4 x 4).
            aligned: Pair output cloud in the source scan's frame.

        Returns:
            The pair output expressed in the first scan's frame.

        Raises:
            ValueError: If the transform is not a rigid transform; the running
                state is left untouched.
        """
        pair_transform = validate_rigid_transform(target_to_source, atol=1e-5)

        emitted = aligned.transformed(self._transform)
        self._transform = self._transform @ pair_transform
        self._history.append(self._transform.copy())
        self._emitted.append(emitted)

        logger.debug(
            "Scan %d global translation: (%.4f, %.4f, %.4f)",
            self.n_scans - 1,
            *self._transform[:3, 3],
        )
        return emitted

    def skip_pair(self, source: PointCloud) -> PointCloud:
        """
        Record a failed pair with an identity contribution.

        The target scan inherits the source scan's global transform; the
        source cloud is emitted alone so the merged result stays consistent.
        """
        emitted = source.without_features().transformed(self._transform)
        self._history.append(self._transform.copy())
        self._emitted.append(emitted)
        logger.warning("Scan %d registered with identity contribution (pair skipped).", self.n_scans - 1)
        return emitted
