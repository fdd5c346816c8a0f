"""
Shortest Path Core - exact shortest paths among polygonal obstacles

Two stages: build a reduced visibility graph ("navigation graph") from the
obstacles plus the query's start/goal, then run A* over it.

Key exports:
- find_path_through: one-shot query
- build_navigation_graph / find_path: the two stages separately
- Navigator: repeated queries against a fixed obstacle set (cached graph)
- ObstacleSet: validated obstacle polygons
"""
from .errors import (
    DegenerateQuery,
    InvalidObstacle,
    NavigationError,
    NoPathExists,
    PointInsideObstacle,
    PointOutsideBoundary,
)
from .geometry import Point, Polygon, Segment
from .obstacles import ObstacleSet, PolygonDraft, VertexRef
from .config import NavigationSettings, load_settings
from .navigation_graph import NavigationGraph, VisibilityGraph, build_navigation_graph, build_visibility_graph, overlay_query_points
from .pathfinder import Path, find_path
from .navigator import DistanceMatrix, Navigator, VisibilityGraphCache, find_path_through, solve, solve_matrix
from .schemas import DistanceMatrixRequest, DistanceMatrixResponse, PathRequest, PathResponse
from .logging_config import configure_logging

__all__ = [
    'Point', 'Segment', 'Polygon',
    'ObstacleSet', 'PolygonDraft', 'VertexRef',
    'NavigationSettings', 'load_settings',
    'NavigationGraph', 'VisibilityGraph', 'build_navigation_graph', 'build_visibility_graph', 'overlay_query_points',
    'Path', 'find_path', 'find_path_through',
    'Navigator', 'VisibilityGraphCache', 'DistanceMatrix', 'solve', 'solve_matrix',
    'PathRequest', 'PathResponse', 'DistanceMatrixRequest', 'DistanceMatrixResponse',
    'configure_logging',
    'NavigationError', 'InvalidObstacle', 'PointInsideObstacle', 'PointOutsideBoundary',
    'NoPathExists', 'DegenerateQuery',
]
