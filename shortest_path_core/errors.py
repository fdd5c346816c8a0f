"""
Typed errors raised by the shortest-path engine.

Every failure is raised at the earliest stage that can detect it:
polygon validation, then start/goal containment, then graph search.
Callers get either a complete Path or one of these.
"""

from __future__ import annotations

from typing import Optional, Tuple


class NavigationError(Exception):
    """Base class for every error the engine raises."""

    kind = "navigation_error"


class InvalidObstacle(NavigationError, ValueError):
    """A supplied polygon is degenerate, zero-area or self-intersecting."""

    kind = "invalid_obstacle"

    def __init__(self, message: str, index: Optional[int] = None):
        if index is not None:
            message = f"obstacle {index}: {message}"
        super().__init__(message)
        self.index = index


class PointInsideObstacle(NavigationError):
    """Start or goal lies strictly inside an obstacle."""

    kind = "point_inside_obstacle"

    def __init__(
        self,
        point: Tuple[float, float],
        obstacle_index: Optional[int] = None,
        role: str = "point",
    ):
        where = f"obstacle {obstacle_index}" if obstacle_index is not None else "an obstacle"
        super().__init__(f"{role} ({point[0]:.6g}, {point[1]:.6g}) is inside {where}")
        self.point = point
        self.obstacle_index = obstacle_index
        self.role = role


class PointOutsideBoundary(PointInsideObstacle):
    """Start or goal lies outside the region the path must stay in."""

    kind = "point_outside_boundary"

    def __init__(self, point: Tuple[float, float], role: str = "point"):
        NavigationError.__init__(
            self, f"{role} ({point[0]:.6g}, {point[1]:.6g}) is outside the boundary"
        )
        self.point = point
        self.obstacle_index = None
        self.role = role


class NoPathExists(NavigationError):
    """Goal is unreachable through the navigation graph."""

    kind = "no_path_exists"


class DegenerateQuery(NavigationError, ValueError):
    """Start or goal is not a usable point (NaN, infinity, unknown node)."""

    kind = "degenerate_query"
