"""
viz — Output-only sinks for the highway ranks
=============================================

Modules
-------
sinks
    :class:`Frame`, :class:`VisualizationSink`, :class:`VisualizationManager`.
pygame_view
    :class:`ChaseView` window and :class:`CameraSink` overhead camera (pygame).
telemetry
    :class:`TelemetrySink` writing a pandas CSV.

``pygame_view`` is not imported here so that headless ranks never load
pygame.
"""

from .sinks import Frame, VisualizationManager, VisualizationSink

__all__ = ["Frame", "VisualizationManager", "VisualizationSink"]
