"""
Configuration management for rigid-registration.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, List, Any, Dict

from pydantic import BaseModel, Field, ValidationError
import yaml


# -----------------------
# Typed config structures
# -----------------------


class FilterConfig(BaseModel):
    method: Literal[
        "identity",
        "random_sampling",
        "max_points",
        "voxel_grid",
        "surface_normal",
        "sampling_surface_normal",
    ] = Field(default="identity")
    prob: float = Field(default=0.75, gt=0.0, le=1.0, description="Keep probability for random sampling")
    max_points: int = Field(default=50000, ge=1, description="Point budget for 'max_points'")
    voxel_size: float = Field(default=1.0, gt=0.0, description="Voxel edge length for 'voxel_grid'")
    knn: int = Field(default=10, ge=3, description="Neighbours used for 'surface_normal'")
    bin_size: int = Field(default=7, ge=3, description="Maximum points per bin for 'sampling_surface_normal'")
    seed: Optional[int] = Field(default=None, description="Random seed for sampling filters")


class MatcherConfig(BaseModel):
    knn: int = Field(default=1, ge=1)
    max_distance: Optional[float] = Field(
        default=None,
        description="Candidates farther than this are rejected by the matcher (None = accept all)",
    )
    leaf_size: int = Field(default=30, ge=1)
    algorithm: Literal["kd_tree", "ball_tree", "brute"] = Field(default="kd_tree")


class OutlierFilterConfig(BaseModel):
    methods: List[Literal["null", "trimmed", "max_distance", "median"]] = Field(
        default_factory=lambda: ["trimmed"],
        description="Filters whose weights are multiplied together",
    )
    ratio: float = Field(default=0.85, gt=0.0, le=1.0, description="Kept fraction for 'trimmed'")
    max_distance: Optional[float] = Field(default=None, description="Threshold for 'max_distance'")
    factor: float = Field(default=3.0, gt=0.0, description="Median multiple for 'median'")


class CheckerConfig(BaseModel):
    max_iterations: int = Field(default=40, ge=1)
    min_diff_rot_err: float = Field(
        default=0.001,
        description="Mean rotation step (radians) below which ICP is considered converged",
    )
    min_diff_trans_err: float = Field(
        default=0.001,
        description="Mean translation step below which ICP is considered converged",
    )
    smooth_length: int = Field(default=3, ge=1, description="Window of recent steps averaged")
    max_rotation_norm: Optional[float] = Field(default=None, description="Abort when rotation (radians) exceeds this")
    max_translation_norm: Optional[float] = Field(default=None, description="Abort when translation exceeds this")


class CoarseRegistrationConfig(BaseModel):
    method: Literal["none", "centroid", "pca"] = Field(default="none")


class RegistrationConfig(BaseModel):
    reading_filters: List[FilterConfig] = Field(
        default_factory=lambda: [FilterConfig(method="random_sampling")]
    )
    reference_filters: List[FilterConfig] = Field(
        default_factory=lambda: [FilterConfig(method="sampling_surface_normal")]
    )
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    outlier_filter: OutlierFilterConfig = Field(default_factory=OutlierFilterConfig)
    error_minimizer: Literal["point_to_point", "point_to_plane"] = Field(default="point_to_plane")
    checker: CheckerConfig = Field(default_factory=CheckerConfig)
    inspector: Literal["none", "logging", "recording", "plotly"] = Field(default="none")
    coarse: CoarseRegistrationConfig = Field(default_factory=CoarseRegistrationConfig)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    registration: RegistrationConfig = Field(default_factory=RegistrationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/rigid_registration/utils/config.py
    parents sequence:
      0 -> .../src/rigid_registration/utils
      1 -> .../src/rigid_registration
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
