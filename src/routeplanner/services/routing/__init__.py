"""Route optimization pipeline: matrix, construction, 2-opt and assembly."""

from .service import RequestStage, build_stops, optimize_route

__all__ = ["RequestStage", "build_stops", "optimize_route"]
