"""
Directory-level registration workflow.

Discovers a numbered scan range, registers it pair by pair and writes one
output cloud per pair plus the global transform of every scan.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .alignment.sequence import SequenceRegistration, SequenceResult
from .point_cloud import PointCloud
from .preprocessing.data_discovery import discover_scans, load_scan_sequence
from .utils.config import AppConfig
from .utils.export import save_transform_stack, write_point_cloud
from .utils.logging import setup_logger

logger = setup_logger(__name__)

GLOBAL_TRANSFORMS_FILE = "global_transforms.txt"


@dataclass
class WorkflowOutput:
    """Files written by one workflow run."""
    result: Optional[SequenceResult] = None
    cloud_files: List[str] = field(default_factory=list)
    transforms_file: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


def run_from_directory(
    scan_dir: Union[str, Path],
    start_index: int,
    end_index: int,
    cfg: Optional[AppConfig] = None,
    *,
    output_dir: Optional[Union[str, Path]] = None,
    use_poses: bool = True,
    output_format: Optional[str] = None,
) -> WorkflowOutput:
    """
    Register scans start_index..end_index (inclusive) found in scan_dir.

    Args:
        scan_dir: Directory holding scanNNN files.
        start_index: First scan index.
        end_index: Last scan index.
        cfg: Application configuration (defaults if None).
        output_dir: Where to write results; overrides cfg.output.output_dir.
        use_poses: Seed each pair from odometry poses when present.
        output_format: Output cloud extension without dot; overrides cfg.output.format.

    Returns:
        WorkflowOutput; ``succeeded`` is False when no scan could be loaded.
    """
    cfg = cfg or AppConfig()
    out_dir = Path(output_dir or cfg.output.output_dir)
    fmt = (output_format or cfg.output.format).lstrip(".")

    entries = discover_scans(
        scan_dir,
        start_index,
        end_index,
        pattern=cfg.paths.scan_pattern,
        cloud_extension=cfg.paths.cloud_extension or None,
        pose_extension=cfg.paths.pose_extension,
    )
    sequence = load_scan_sequence(entries, load_poses=use_poses)
    if len(sequence) == 0:
        logger.error(f"No scans could be loaded from {scan_dir} for indices {start_index}-{end_index}")
        return WorkflowOutput()

    output = WorkflowOutput()

    def _write_pair(index: int, cloud: PointCloud) -> None:
        path = out_dir / f"{index}.{fmt}"
        output.cloud_files.append(write_point_cloud(cloud, path))

    registration = SequenceRegistration.from_config(cfg, use_pose_seed=use_poses)
    poses = sequence.poses if use_poses and sequence.has_poses else None
    output.result = registration.run(sequence.scans, poses, writer=_write_pair)

    if cfg.output.save_global_transforms:
        transforms_path = out_dir / GLOBAL_TRANSFORMS_FILE
        save_transform_stack(output.result.global_transforms, transforms_path)
        output.transforms_file = str(transforms_path)

    skipped = output.result.skipped_pairs
    if skipped:
        logger.warning(f"Pairs skipped with identity contribution: {skipped}")
    logger.info(f"Wrote {len(output.cloud_files)} registered clouds to {out_dir}")
    return output
