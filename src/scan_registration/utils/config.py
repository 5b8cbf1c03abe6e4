"""
Configuration management for scan-registration.

Provides a typed pydantic model and YAML loader with sensible defaults.
The alignment section doubles as the immutable alignment context passed to
every pipeline call.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional, Literal, Tuple, Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
import yaml


# -----------------------
# Typed config structures
# -----------------------


class PathsConfig(BaseModel):
    scan_dir: str = Field(default="data/scans")
    scan_pattern: str = Field(
        default="scan{index:03d}",
        description="File stem pattern for scan and pose files; formatted with index=<int>",
    )
    cloud_extension: str = Field(default=".pcd")
    pose_extension: str = Field(default=".pose")


class AlignmentContext(BaseModel):
    """Immutable parameters threaded through every alignment call."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=30, ge=1, description="Cap on alignment rounds per pair")
    initial_max_correspondence_distance: float = Field(default=0.5, gt=0)
    distance_decrement: float = Field(
        default=0.01,
        ge=0,
        description="Shrink applied to the correspondence distance when successive rounds agree",
    )
    min_correspondence_distance: float = Field(
        default=0.01,
        gt=0,
        description="Floor for the shrinking correspondence distance",
    )
    transformation_epsilon: float = Field(
        default=1e-6,
        gt=0,
        description="Solver stops when the parameter update norm drops below this",
    )
    convergence_translation_epsilon: float = Field(
        default=1e-6,
        gt=0,
        description="Translation change (scan units) below which rounds are considered equal",
    )
    convergence_rotation_epsilon_deg: float = Field(
        default=1e-4,
        gt=0,
        description="Rotation change (degrees) below which rounds are considered equal",
    )
    shrink_translation_epsilon: float = Field(
        default=1e-3,
        gt=0,
        description="Translation change between successive rounds that triggers a distance shrink",
    )
    shrink_rotation_epsilon_deg: float = Field(
        default=0.05,
        gt=0,
        description="Rotation change (degrees) between successive rounds that triggers a distance shrink",
    )
    feature_weights: Tuple[float, float, float, float] = Field(
        default=(1.0, 1.0, 1.0, 1.0),
        description="Per-axis rescale of the (x, y, z, curvature) feature vector",
    )
    reciprocal_correspondences: bool = Field(default=False)
    max_duration_s: Optional[float] = Field(
        default=None,
        description="Optional wall-clock deadline per pair, checked between rounds",
    )

    @property
    def convergence_rotation_epsilon_rad(self) -> float:
        return math.radians(self.convergence_rotation_epsilon_deg)

    @property
    def shrink_rotation_epsilon_rad(self) -> float:
        return math.radians(self.shrink_rotation_epsilon_deg)

    @model_validator(mode="after")
    def _check_distances(self) -> "AlignmentContext":
        if self.min_correspondence_distance > self.initial_max_correspondence_distance:
            raise ValueError(
                "min_correspondence_distance must not exceed initial_max_correspondence_distance"
            )
        if any(w < 0 for w in self.feature_weights):
            raise ValueError("feature_weights must be non-negative")
        return self


class NormalsConfig(BaseModel):
    k_search: int = Field(default=30, ge=1)
    radius_search: Optional[float] = Field(
        default=None,
        description="If set, use all neighbors within this radius instead of k nearest",
    )
    min_neighbors: int = Field(default=4, ge=3)


class SolverConfig(BaseModel):
    method: Literal["gauss_newton", "svd"] = Field(default="gauss_newton")
    max_iterations: int = Field(default=2, ge=1, description="Internal solver steps per alignment round")
    min_correspondences: int = Field(default=6, ge=3)


class DownsampleConfig(BaseModel):
    enabled: bool = Field(default=True)
    leaf_size: float = Field(default=0.05, gt=0)


class SpatialIndexConfig(BaseModel):
    leaf_size: int = Field(default=30, ge=1)
    n_jobs: Optional[int] = Field(
        default=None,
        description="Parallel jobs for per-point neighbor queries (None = 1, -1 = all cores)",
    )


class OutputConfig(BaseModel):
    output_dir: str = Field(default="output")
    format: Literal["pcd", "ply", "las", "laz", "xyz"] = Field(default="pcd")
    save_global_transforms: bool = Field(default=True)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    paths: PathsConfig = Field(default_factory=PathsConfig)
    alignment: AlignmentContext = Field(default_factory=AlignmentContext)
    normals: NormalsConfig = Field(default_factory=NormalsConfig)
    solver: SolverConfig = Field(default_factory=SolverConfig)
    downsample: DownsampleConfig = Field(default_factory=DownsampleConfig)
    spatial_index: SpatialIndexConfig = Field(default_factory=SpatialIndexConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _check_solver_weights(self) -> "AppConfig":
        x, y, z = self.alignment.feature_weights[:3]
        if self.solver.method == "svd" and not (x == y == z):
            raise ValueError("solver method 'svd' requires equal x, y, z feature weights")
        return self


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/scan_registration/utils/config.py
    parents sequence:
      0 -> .../src/scan_registration/utils
      1 -> .../src/scan_registration
      2 -> .../src
      3 -> repo_root
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}")
