"""
Pydantic request/response models for hosts embedding the engine
(command-line tools, services). Obstacles are ordered vertex lists,
points are [x, y] pairs.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

Coordinate = Tuple[float, float]


# =============================================================================
# Path Query Schemas
# =============================================================================

class PathRequest(BaseModel):
    """One shortest-path query."""
    obstacles: List[List[Coordinate]] = Field(default_factory=list)
    start: Coordinate
    goal: Coordinate
    boundary: Optional[List[Coordinate]] = None  # region the path may not leave


class PathResponse(BaseModel):
    """Either a complete path or the reason there is none."""
    success: bool
    path: List[List[float]] = Field(default_factory=list)
    distance: Optional[float] = None
    error_kind: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Distance Matrix Schemas
# =============================================================================

class DistanceMatrixRequest(BaseModel):
    """Pairwise shortest distances between labelled points."""
    obstacles: List[List[Coordinate]] = Field(default_factory=list)
    points: List[Coordinate]
    labels: Optional[List[str]] = None
    boundary: Optional[List[Coordinate]] = None


class DistanceMatrixResponse(BaseModel):
    success: bool
    labels: List[str] = Field(default_factory=list)
    matrix: List[List[Optional[float]]] = Field(default_factory=list)  # None = unreachable
    excluded: List[str] = Field(default_factory=list)
    error_kind: Optional[str] = None
    error: Optional[str] = None
