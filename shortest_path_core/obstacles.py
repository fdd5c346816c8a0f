"""
Obstacle set: validated polygons plus the vertex/edge enumeration the
navigation graph builder works from.

Polygons are validated on insertion and stored counter-clockwise, so
downstream code can assume one winding. An optional boundary polygon marks
the region a path may not leave.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import InvalidObstacle
from .geometry import (
    EPSILON,
    Location,
    Point,
    Polygon,
    Segment,
    SegmentIntersection,
    as_point,
    distance,
    first_intersection,
    is_finite_point,
    locate_point,
    point_on_segment,
    points_coincide,
    project,
    segment_blocked_by_polygon,
    segment_leaves_polygon,
    segments_intersect,
    signed_area,
)

logger = logging.getLogger(__name__)

PolygonLike = Union[Polygon, Sequence[Sequence[float]]]


@dataclass(frozen=True)
class VertexRef:
    """A polygon vertex with a back-reference to its owner and neighbours."""

    polygon_id: int
    vertex_index: int
    point: Point
    prev: Point
    next: Point


@dataclass(frozen=True)
class EdgeRef:
    polygon_id: int
    edge_index: int
    segment: Segment


# ---------- Validation ----------

def _invalid(message: str, index: Optional[int]) -> InvalidObstacle:
    logger.debug("rejecting obstacle %s: %s", index, message)
    return InvalidObstacle(message, index)


def _distinct_vertices(points: Iterable[Sequence[float]], eps: float) -> List[Point]:
    """Drop consecutive duplicates, including a closing copy of the first point."""
    result: List[Point] = []
    for raw in points:
        p = as_point(raw)
        if result and points_coincide(result[-1], p, eps):
            continue
        result.append(p)
    while len(result) > 1 and points_coincide(result[0], result[-1], eps):
        result.pop()
    return result


def find_self_intersection(vertices: Sequence[Point], eps: float = EPSILON) -> Optional[Tuple[int, int]]:
    """
    Return the indices of the first pair of edges that break simplicity.

    Adjacent edges may only share their common vertex; non-adjacent edges
    may not meet at all.
    """
    n = len(vertices)
    edges = [Segment(vertices[i], vertices[(i + 1) % n]) for i in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            kind = segments_intersect(edges[i], edges[j], eps)
            adjacent = j == i + 1 or (i == 0 and j == n - 1)
            if adjacent:
                if kind is SegmentIntersection.OVERLAPPING:
                    return i, j
            elif kind is not SegmentIntersection.NONE:
                return i, j
    return None


def validate_polygon(
    points: PolygonLike,
    eps: float = EPSILON,
    index: Optional[int] = None,
) -> Polygon:
    """
    Validate raw vertices and return a counter-clockwise Polygon.

    Raises InvalidObstacle for non-finite coordinates, fewer than 3 distinct
    vertices, zero area, or a self-intersecting boundary.
    """
    try:
        raw = [as_point(p) for p in points]
    except (TypeError, ValueError, IndexError) as exc:
        raise _invalid(f"vertices are not coordinate pairs ({exc})", index) from exc

    for p in raw:
        if not is_finite_point(p):
            raise _invalid(f"non-finite vertex ({p.x}, {p.y})", index)

    vertices = _distinct_vertices(raw, eps)
    if len(vertices) < 3:
        raise _invalid(f"needs at least 3 distinct vertices, got {len(vertices)}", index)

    if abs(signed_area(vertices)) <= eps:
        raise _invalid("polygon has zero area", index)

    bad = find_self_intersection(vertices, eps)
    if bad is not None:
        raise _invalid(f"self-intersecting: edges {bad[0]} and {bad[1]} meet", index)

    return Polygon(vertices)


# ---------- Obstacle Set ----------

class ObstacleSet:
    """
    Immutable collection of validated obstacle polygons.

    Obstacles may overlap or touch. Polygon ids are positions in
    ``polygons``; the boundary, when present, comes last.
    """

    def __init__(
        self,
        obstacles: Iterable[PolygonLike] = (),
        boundary: Optional[PolygonLike] = None,
        eps: float = EPSILON,
    ):
        self.eps = eps
        validated = [validate_polygon(poly, eps, index=i) for i, poly in enumerate(obstacles)]
        self.obstacles: Tuple[Polygon, ...] = tuple(validated)
        self.boundary: Optional[Polygon] = None
        if boundary is not None:
            try:
                self.boundary = validate_polygon(boundary, eps)
            except InvalidObstacle as exc:
                raise InvalidObstacle(f"boundary: {exc}") from exc

        self.polygons: Tuple[Polygon, ...] = self.obstacles + (
            (self.boundary,) if self.boundary is not None else ()
        )
        self._vertices = tuple(self._enumerate_vertices())
        self._edges = tuple(self._enumerate_edges())
        self.seams: Tuple[Tuple[int, Segment], ...] = tuple(self._find_seams())
        self._fingerprint: Optional[str] = None
        logger.debug("obstacle set: %s", self)

    def __len__(self) -> int:
        return len(self.obstacles)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(self.obstacles)

    def __repr__(self) -> str:
        suffix = ", bounded" if self.boundary is not None else ""
        seams = f", {len(self.seams)} seams" if self.seams else ""
        return f"ObstacleSet({len(self.obstacles)} obstacles, {len(self._vertices)} vertices{seams}{suffix})"

    @property
    def boundary_id(self) -> Optional[int]:
        return len(self.obstacles) if self.boundary is not None else None

    def is_boundary(self, polygon_id: int) -> bool:
        return self.boundary is not None and polygon_id == len(self.obstacles)

    def polygon(self, polygon_id: int) -> Polygon:
        return self.polygons[polygon_id]

    def _enumerate_vertices(self) -> Iterator[VertexRef]:
        for pid, poly in enumerate(self.polygons):
            for vi, v in enumerate(poly.vertices):
                prev_v, next_v = poly.neighbors(vi)
                yield VertexRef(pid, vi, v, prev_v, next_v)

    def _enumerate_edges(self) -> Iterator[EdgeRef]:
        for pid, poly in enumerate(self.polygons):
            for ei, edge in enumerate(poly.edges()):
                yield EdgeRef(pid, ei, edge)

    def _find_seams(self) -> Iterator[Tuple[int, Segment]]:
        """
        Zero-width gaps of positive length: stretches where an obstacle edge
        lies on another obstacle's edge with the interiors on opposite sides,
        or on a boundary edge with the obstacle inside the region.

        Yields (obstacle id, shared stretch).
        """
        eps = self.eps
        for i, ea in enumerate(self._edges):
            if self.is_boundary(ea.polygon_id):
                continue
            (ax, ay), (bx, by) = ea.segment
            for eb in self._edges[i + 1:]:
                if eb.polygon_id == ea.polygon_id:
                    continue
                if not self.polygons[eb.polygon_id].bounds_overlap(ea.segment, eps):
                    continue
                if segments_intersect(ea.segment, eb.segment, eps) is not SegmentIntersection.OVERLAPPING:
                    continue
                (cx, cy), (dx, dy) = eb.segment
                same_direction = (bx - ax) * (dx - cx) + (by - ay) * (dy - cy) > 0
                # Both stored CCW: obstacles face each other when their edges
                # run opposite ways, an obstacle sits flush inside the boundary
                # when the edges run the same way.
                if same_direction != self.is_boundary(eb.polygon_id):
                    continue
                ts = sorted(min(1.0, max(0.0, project(p, ea.segment))) for p in eb.segment)
                yield ea.polygon_id, Segment(ea.segment.point_at(ts[0]), ea.segment.point_at(ts[1]))

    def vertices(self) -> Tuple[VertexRef, ...]:
        """Every vertex of every polygon (boundary included)."""
        return self._vertices

    def edges(self) -> Tuple[EdgeRef, ...]:
        return self._edges

    def vertex(self, polygon_id: int, vertex_index: int) -> VertexRef:
        poly = self.polygons[polygon_id]
        vi = vertex_index % len(poly)
        prev_v, next_v = poly.neighbors(vi)
        return VertexRef(polygon_id, vi, poly.vertices[vi], prev_v, next_v)

    # ---------- Point queries ----------

    def containing_obstacle(self, p: Sequence[float]) -> Optional[int]:
        """
        Index of the first obstacle strictly containing p, or None.

        A point inside a seam (not at its ends) is sealed in as well and
        reports the seam's obstacle.
        """
        pt = as_point(p)
        for i, poly in enumerate(self.obstacles):
            min_x, min_y, max_x, max_y = poly.bounds
            if not (min_x <= pt.x <= max_x and min_y <= pt.y <= max_y):
                continue
            if locate_point(pt, poly, self.eps) is Location.INSIDE:
                return i
        for i, seam in self.seams:
            if (
                point_on_segment(pt, seam, self.eps)
                and not points_coincide(pt, seam.a, self.eps)
                and not points_coincide(pt, seam.b, self.eps)
            ):
                return i
        return None

    def contains_point(self, p: Sequence[float]) -> bool:
        return self.containing_obstacle(p) is not None

    def outside_boundary(self, p: Sequence[float]) -> bool:
        if self.boundary is None:
            return False
        return locate_point(as_point(p), self.boundary, self.eps) is Location.OUTSIDE

    def in_free_space(self, p: Sequence[float]) -> bool:
        """True if p is reachable space: not inside an obstacle, not outside the boundary."""
        return not self.contains_point(p) and not self.outside_boundary(p)

    # ---------- Segment queries ----------

    def blocking_obstacle(self, segment: Segment) -> Optional[int]:
        """
        Find the first polygon that blocks the segment.
        Returns its polygon id (the boundary id if the segment leaves it),
        or None if the segment is clear.

        Running along a seam blocks, so touching blocks form a solid wall;
        crossing a seam at a single point is already caught as entering one
        of the two interiors.
        """
        for i, poly in enumerate(self.obstacles):
            if segment_blocked_by_polygon(segment, poly, self.eps):
                return i
        for i, seam in self.seams:
            if segments_intersect(segment, seam, self.eps) is SegmentIntersection.OVERLAPPING:
                return i
        if self.boundary is not None and segment_leaves_polygon(segment, self.boundary, self.eps):
            return len(self.obstacles)
        return None

    def segment_blocked(self, segment: Segment) -> bool:
        return self.blocking_obstacle(segment) is not None

    def first_hit(self, segment: Segment) -> Optional[Point]:
        """Closest point to segment.a where the segment meets any polygon boundary."""
        best: Optional[Point] = None
        best_dist = float("inf")
        for poly in self.polygons:
            if poly is not self.boundary and not poly.bounds_overlap(segment, self.eps):
                continue
            hit = first_intersection(segment, poly, self.eps)
            if hit is not None:
                d = distance(segment.a, hit)
                if d < best_dist:
                    best, best_dist = hit, d
        return best

    def fingerprint(self) -> str:
        """Stable hash of the geometry, used as a cache key."""
        if self._fingerprint is None:
            key_data = {
                "eps": self.eps,
                "obstacles": [[list(v) for v in poly.vertices] for poly in self.obstacles],
                "boundary": [list(v) for v in self.boundary.vertices] if self.boundary is not None else None,
            }
            data_str = json.dumps(key_data, sort_keys=True, separators=(",", ":"))
            self._fingerprint = hashlib.sha256(data_str.encode()).hexdigest()[:16]
        return self._fingerprint


# ---------- Incremental drafting ----------

class PolygonDraft:
    """
    Builds an obstacle one vertex at a time, refusing vertices that would
    make the boundary cross or fold back on itself.

    Adding a point that coincides with the first vertex closes the draft.
    """

    def __init__(self, eps: float = EPSILON):
        self.eps = eps
        self.vertices: List[Point] = []
        self.closed = False

    def __len__(self) -> int:
        return len(self.vertices)

    def is_closing(self, p: Sequence[float]) -> bool:
        return len(self.vertices) >= 3 and points_coincide(as_point(p), self.vertices[0], self.eps)

    def can_add(self, p: Sequence[float]) -> bool:
        if self.closed:
            return False
        pt = as_point(p)
        if not is_finite_point(pt):
            return False
        n = len(self.vertices)
        if n == 0:
            return True
        last = self.vertices[-1]
        if points_coincide(pt, last, self.eps):
            return False
        if n == 1:
            return True

        closing = self.is_closing(pt)
        if not closing and any(points_coincide(pt, v, self.eps) for v in self.vertices):
            return False
        new_edge = Segment(last, pt)
        for i in range(n - 1):
            edge = Segment(self.vertices[i], self.vertices[i + 1])
            kind = segments_intersect(new_edge, edge, self.eps)
            shares_vertex = i == n - 2 or (closing and i == 0)
            if shares_vertex:
                if kind is SegmentIntersection.OVERLAPPING:
                    return False
            elif kind is not SegmentIntersection.NONE:
                return False
        if closing and abs(signed_area(self.vertices)) <= self.eps:
            return False
        return True

    def add(self, p: Sequence[float]) -> bool:
        """Append a vertex (or close the draft); False if it was refused."""
        if not self.can_add(p):
            return False
        if self.is_closing(p):
            self.closed = True
        else:
            self.vertices.append(as_point(p))
        return True

    def close(self) -> Polygon:
        """Close the draft and return the validated polygon."""
        if not self.closed:
            if len(self.vertices) < 3 or not self.can_add(self.vertices[0]):
                raise InvalidObstacle("draft cannot be closed without self-intersection")
            self.closed = True
        return validate_polygon(self.vertices, self.eps)
