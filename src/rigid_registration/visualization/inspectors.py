"""
Registration Inspectors

Diagnostic hooks notified of intermediate point clouds during ICP: the
recentered reference (label ``"reference"``) and the reading estimate at
the start of every iteration (labels ``"i0"``, ``"i1"``, ...). Inspectors
observe only; clouds are immutable and the returned transform does not
depend on them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import List, Optional, Tuple

import numpy as np
import plotly.graph_objects as go

from ..geometry.point_cloud import PointCloud
from ..utils.logging import setup_logger

logger = setup_logger(__name__)

REFERENCE_LABEL = "reference"


def iteration_label(iteration: int) -> str:
    return f"i{iteration}"


class Inspector(ABC):
    """Side-effect-only observer of intermediate clouds."""

    @abstractmethod
    def inspect(self, cloud: PointCloud, label: str) -> None:
        ...


class NoOpInspector(Inspector):
    def inspect(self, cloud: PointCloud, label: str) -> None:
        return None


class LoggingInspector(Inspector):
    """Logs size and centroid of each inspected cloud."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def inspect(self, cloud: PointCloud, label: str) -> None:
        if cloud.is_empty:
            logger.log(self.level, "[%s] empty cloud", label)
            return
        c = cloud.centroid()
        logger.log(
            self.level,
            "[%s] %d points (normals=%s), centroid=(%.4f, %.4f, %.4f)",
            label, len(cloud), cloud.has_normals, c[0], c[1], c[2],
        )


class RecordingInspector(Inspector):
    """Keeps every inspected cloud, in call order."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, PointCloud]] = []

    def inspect(self, cloud: PointCloud, label: str) -> None:
        self.records.append((label, cloud))

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.records]

    def get(self, label: str) -> Optional[PointCloud]:
        """Most recent cloud recorded under ``label``."""
        for rec_label, cloud in reversed(self.records):
            if rec_label == label:
                return cloud
        return None

    def iterations(self) -> List[Tuple[str, PointCloud]]:
        return [(label, cloud) for label, cloud in self.records if label != REFERENCE_LABEL]

    def clear(self) -> None:
        self.records.clear()


class PlotlyInspector(RecordingInspector):
    """
    Records clouds and renders the ICP progress as an animated plotly figure.

    The reference stays fixed while one frame per iteration shows the moving
    reading estimate.

    Args:
        sample_size: Maximum points per trace (random subsample for rendering).
        seed: Seed for the rendering subsample.
    """

    def __init__(self, sample_size: Optional[int] = 20000, seed: Optional[int] = 0):
        super().__init__()
        self.sample_size = sample_size
        self.seed = seed

    def _downsample(self, points: np.ndarray) -> np.ndarray:
        if not self.sample_size or self.sample_size >= len(points):
            return points
        rng = np.random.default_rng(self.seed)
        indices = rng.choice(len(points), self.sample_size, replace=False)
        return points[indices]

    def _trace(self, cloud: PointCloud, name: str, color: str) -> go.Scatter3d:
        pts = self._downsample(cloud.points)
        return go.Scatter3d(
            x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
            mode='markers',
            marker=dict(size=2, color=color),
            name=name,
        )

    def to_figure(self, title: str = "ICP iterations") -> go.Figure:
        """Build the figure from the recorded clouds.

        Raises:
            ValueError: If no iteration has been recorded.
        """
        steps = self.iterations()
        if not steps:
            raise ValueError("No iterations recorded; run a registration with this inspector first.")
        reference = self.get(REFERENCE_LABEL)

        base = [self._trace(reference, REFERENCE_LABEL, 'blue')] if reference is not None else []
        first_label, first_cloud = steps[0]
        fig = go.Figure(data=base + [self._trace(first_cloud, "reading", 'red')])

        fig.frames = [
            go.Frame(data=base + [self._trace(cloud, "reading", 'red')], name=label)
            for label, cloud in steps
        ]
        fig.update_layout(
            title=title,
            scene=dict(
                xaxis=dict(visible=False), yaxis=dict(visible=False), zaxis=dict(visible=False), aspectmode='data'
            ),
            sliders=[dict(
                steps=[
                    dict(method='animate', label=label,
                         args=[[label], dict(mode='immediate', frame=dict(duration=0, redraw=True))])
                    for label, _ in steps
                ],
                active=0,
            )],
            margin=dict(l=0, r=0, t=40, b=0),
        )
        return fig

    def show(self, title: str = "ICP iterations") -> None:
        self.to_figure(title).show(renderer="browser")

    def write_html(self, path: str, title: str = "ICP iterations") -> None:
        self.to_figure(title).write_html(path)
        logger.info("Wrote ICP inspection figure to %s", path)
