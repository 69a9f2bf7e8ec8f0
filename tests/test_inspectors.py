"""
Tests for registration inspectors.
"""

import logging
from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.append(str(Path(__file__).parent.parent / "src"))

from rigid_registration.geometry import PointCloud
from rigid_registration.utils.logging import configure_logging
from rigid_registration.visualization.inspectors import (
    LoggingInspector,
    PlotlyInspector,
    RecordingInspector,
    iteration_label,
)


def _cloud(n: int = 100, seed: int = 0) -> PointCloud:
    return PointCloud.from_points(np.random.default_rng(seed).normal(size=(n, 3)))


def test_recording_inspector():
    rec = RecordingInspector()
    ref = _cloud(seed=1)
    rec.inspect(ref, "reference")
    rec.inspect(_cloud(seed=2), iteration_label(0))
    rec.inspect(_cloud(seed=3), iteration_label(1))

    assert rec.labels == ["reference", "i0", "i1"]
    assert rec.get("reference") is ref
    assert rec.get("i7") is None
    assert [label for label, _ in rec.iterations()] == ["i0", "i1"]

    rec.clear()
    assert rec.labels == []


def test_plotly_inspector_builds_frames(tmp_path):
    insp = PlotlyInspector(sample_size=50)
    insp.inspect(_cloud(200, seed=1), "reference")
    for i in range(3):
        insp.inspect(_cloud(200, seed=10 + i), iteration_label(i))

    fig = insp.to_figure()

    assert len(fig.frames) == 3
    assert len(fig.data) == 2
    assert len(fig.data[0].x) == 50

    out = tmp_path / "icp.html"
    insp.write_html(str(out))
    assert out.exists()


def test_plotly_inspector_without_iterations():
    with pytest.raises(ValueError, match="No iterations"):
        PlotlyInspector().to_figure()


def test_logging_inspector(caplog):
    configure_logging("DEBUG")
    insp = LoggingInspector(level=logging.INFO)

    with caplog.at_level(logging.INFO, logger="rigid_registration"):
        insp.inspect(_cloud(10), "i0")
        insp.inspect(PointCloud.empty(), "i1")

    assert "[i0] 10 points" in caplog.text
    assert "[i1] empty cloud" in caplog.text


def test_configure_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        configure_logging("LOUD")
