"""
Visualization Module

Inspectors observing intermediate clouds during registration.
"""

from .inspectors import Inspector, NoOpInspector, LoggingInspector, RecordingInspector, PlotlyInspector

__all__ = ["Inspector", "NoOpInspector", "LoggingInspector", "RecordingInspector", "PlotlyInspector"]
