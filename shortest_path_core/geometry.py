"""
Geometry kernel: points, segments, polygons and the predicates the
visibility graph is built on.

All predicates take an ``eps`` tolerance. Two points closer than ``eps``
coincide, a point within ``eps`` of a segment lies on it, and three points
are collinear when their triangle's smallest altitude is within ``eps``.

INVIOLABLE CONSTRAINT: a segment is blocked only when it passes through a
polygon INTERIOR. Touching vertices and running along edges is allowed.
"""

from __future__ import annotations

import math
from enum import Enum, IntEnum
from typing import Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

EPSILON = 1e-9


class Point(NamedTuple):
    x: float
    y: float


class Segment(NamedTuple):
    a: Point
    b: Point

    @classmethod
    def of(cls, a: Sequence[float], b: Sequence[float], eps: float = EPSILON) -> "Segment":
        """Build a segment, rejecting coincident endpoints."""
        pa, pb = as_point(a), as_point(b)
        if points_coincide(pa, pb, eps):
            raise ValueError(f"degenerate segment at ({pa.x}, {pa.y})")
        return cls(pa, pb)

    @property
    def length(self) -> float:
        return distance(self.a, self.b)

    def point_at(self, t: float) -> Point:
        """Point at parameter t, where t=0 is ``a`` and t=1 is ``b``."""
        return Point(self.a.x + t * (self.b.x - self.a.x), self.a.y + t * (self.b.y - self.a.y))


class Orientation(Enum):
    CLOCKWISE = -1
    COLLINEAR = 0
    COUNTERCLOCKWISE = 1


class SegmentIntersection(IntEnum):
    """How two closed segments meet. NONE is falsy."""

    NONE = 0
    TOUCHING = 1  # an endpoint of one lies on the other
    CROSSING = 2  # single interior point of both
    OVERLAPPING = 3  # collinear, shared part of positive length


class Location(Enum):
    OUTSIDE = 0
    BOUNDARY = 1
    INSIDE = 2


def as_point(p: Sequence[float]) -> Point:
    if isinstance(p, Point):
        return p
    return Point(float(p[0]), float(p[1]))


# ---------- Basic Geometry Utilities ----------

def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def points_coincide(a: Point, b: Point, eps: float = EPSILON) -> bool:
    return distance(a, b) <= eps


def is_finite_point(p: Sequence[float]) -> bool:
    return math.isfinite(p[0]) and math.isfinite(p[1])


def cross(o: Point, a: Point, b: Point) -> float:
    """
    2D cross product (OA x OB).
    >0: counter-clockwise, <0: clockwise, =0: collinear
    """
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def orientation(a: Point, b: Point, c: Point, eps: float = EPSILON) -> Orientation:
    """
    Turn direction of the ordered triple a -> b -> c.

    The triple is COLLINEAR when twice its area is within eps times its
    longest side, i.e. when its smallest altitude is within eps. The test only
    depends on the unordered triple, so every permutation agrees on whether
    the points are collinear.
    """
    value = cross(a, b, c)
    longest = max(distance(a, b), distance(b, c), distance(c, a))
    if longest == 0.0 or abs(value) <= eps * longest:
        return Orientation.COLLINEAR
    return Orientation.COUNTERCLOCKWISE if value > 0 else Orientation.CLOCKWISE


def project(p: Point, segment: Segment) -> float:
    """Parameter of the orthogonal projection of p onto the segment's line."""
    a, b = segment
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return 0.0
    return ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq


def distance_to_segment(p: Point, segment: Segment) -> float:
    (ax, ay), (bx, by) = segment
    t = min(1.0, max(0.0, project(p, segment)))
    return math.hypot(ax + t * (bx - ax) - p[0], ay + t * (by - ay) - p[1])


def point_on_segment(p: Point, segment: Segment, eps: float = EPSILON) -> bool:
    """True if p lies on the closed segment (within eps)."""
    return distance_to_segment(p, segment) <= eps


def segments_intersect(s1: Segment, s2: Segment, eps: float = EPSILON) -> SegmentIntersection:
    """
    Classify how two closed segments meet.

    Touching at a vertex is legal for visibility, crossing through is not, so
    the caller needs to tell the cases apart rather than get a bool.
    """
    p1, p2 = s1
    q1, q2 = s2
    o1 = orientation(p1, p2, q1, eps)
    o2 = orientation(p1, p2, q2, eps)
    o3 = orientation(q1, q2, p1, eps)
    o4 = orientation(q1, q2, p2, eps)

    collinear = Orientation.COLLINEAR
    if o1 is collinear and o2 is collinear and o3 is collinear and o4 is collinear:
        return _collinear_overlap(s1, s2, eps)

    if collinear not in (o1, o2, o3, o4) and o1 is not o2 and o3 is not o4:
        return SegmentIntersection.CROSSING

    if (
        point_on_segment(q1, s1, eps)
        or point_on_segment(q2, s1, eps)
        or point_on_segment(p1, s2, eps)
        or point_on_segment(p2, s2, eps)
    ):
        return SegmentIntersection.TOUCHING
    return SegmentIntersection.NONE


def _collinear_overlap(s1: Segment, s2: Segment, eps: float) -> SegmentIntersection:
    """Overlap of two segments already known to share a line."""
    length = distance(s1[0], s1[1])
    if length == 0.0:
        return SegmentIntersection.TOUCHING if point_on_segment(s1[0], s2, eps) else SegmentIntersection.NONE
    t1 = project(s2[0], s1)
    t2 = project(s2[1], s1)
    lo = max(0.0, min(t1, t2))
    hi = min(1.0, max(t1, t2))
    shared = (hi - lo) * length
    if shared > eps:
        return SegmentIntersection.OVERLAPPING
    if shared >= -eps:
        return SegmentIntersection.TOUCHING
    return SegmentIntersection.NONE


def intersection_point(s1: Segment, s2: Segment, eps: float = EPSILON) -> Optional[Point]:
    """
    A point shared by both segments, or None.

    For collinear overlaps this is the shared point closest to s1.a.
    """
    kind = segments_intersect(s1, s2, eps)
    if kind is SegmentIntersection.NONE:
        return None

    p1, p2 = s1
    q1, q2 = s2
    if kind is SegmentIntersection.OVERLAPPING or (
        kind is SegmentIntersection.TOUCHING
        and orientation(p1, p2, q1, eps) is Orientation.COLLINEAR
        and orientation(p1, p2, q2, eps) is Orientation.COLLINEAR
    ):
        ts = [project(q, s1) for q in (q1, q2)]
        lo = max(0.0, min(ts))
        return Segment(p1, p2).point_at(lo)

    denom = (p2[0] - p1[0]) * (q2[1] - q1[1]) - (p2[1] - p1[1]) * (q2[0] - q1[0])
    if denom == 0.0:
        for candidate in (p1, p2, q1, q2):
            if point_on_segment(candidate, s1, eps) and point_on_segment(candidate, s2, eps):
                return Point(candidate[0], candidate[1])
        return None
    t = ((q1[0] - p1[0]) * (q2[1] - q1[1]) - (q1[1] - p1[1]) * (q2[0] - q1[0])) / denom
    return Segment(p1, p2).point_at(min(1.0, max(0.0, t)))


# ---------- Polygons ----------

def signed_area(vertices: Sequence[Point]) -> float:
    """Shoelace area; positive for counter-clockwise vertex order."""
    if len(vertices) < 3:
        return 0.0
    arr = np.asarray(vertices, dtype=float)
    x, y = arr[:, 0], arr[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


class Polygon:
    """
    Closed polygon, vertices stored counter-clockwise.

    Construction does not validate simplicity; use
    ``obstacles.validate_polygon`` for untrusted input.
    """

    __slots__ = ("vertices", "bounds", "_area")

    def __init__(self, vertices: Iterable[Sequence[float]]):
        pts = [as_point(v) for v in vertices]
        area = signed_area(pts)
        if area < 0:
            pts.reverse()
            area = -area
        self.vertices: Tuple[Point, ...] = tuple(pts)
        self._area = area
        if pts:
            arr = np.asarray(pts, dtype=float)
            lo, hi = arr.min(axis=0), arr.max(axis=0)
            self.bounds = (float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1]))
        else:
            self.bounds = (0.0, 0.0, 0.0, 0.0)

    def __len__(self) -> int:
        return len(self.vertices)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.vertices)

    def __getitem__(self, index: int) -> Point:
        return self.vertices[index % len(self.vertices)]

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Polygon) and self.vertices == other.vertices

    def __hash__(self) -> int:
        return hash(self.vertices)

    def __repr__(self) -> str:
        return f"Polygon({list(self.vertices)!r})"

    @property
    def area(self) -> float:
        return self._area

    def edges(self) -> Iterator[Segment]:
        """Boundary edges, the last one closing back to the first vertex."""
        n = len(self.vertices)
        for i in range(n):
            yield Segment(self.vertices[i], self.vertices[(i + 1) % n])

    def neighbors(self, index: int) -> Tuple[Point, Point]:
        """(previous, next) vertices around vertex ``index``."""
        n = len(self.vertices)
        return self.vertices[(index - 1) % n], self.vertices[(index + 1) % n]

    def vertex_turn(self, index: int, eps: float = EPSILON) -> Orientation:
        """
        COUNTERCLOCKWISE for convex vertices, CLOCKWISE for reflex ones,
        COLLINEAR for straight ones.
        """
        prev_v, next_v = self.neighbors(index)
        return orientation(prev_v, self.vertices[index], next_v, eps)

    def bounds_overlap(self, segment: Segment, eps: float = EPSILON) -> bool:
        min_x, min_y, max_x, max_y = self.bounds
        (ax, ay), (bx, by) = segment
        return not (
            max(ax, bx) < min_x - eps
            or min(ax, bx) > max_x + eps
            or max(ay, by) < min_y - eps
            or min(ay, by) > max_y + eps
        )


def locate_point(p: Point, polygon: Polygon, eps: float = EPSILON) -> Location:
    """
    Classify p against a polygon: on the boundary (within eps), strictly
    inside, or outside. Interior uses ray casting.
    """
    for edge in polygon.edges():
        if point_on_segment(p, edge, eps):
            return Location.BOUNDARY

    x, y = p
    vertices = polygon.vertices
    n = len(vertices)
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = vertices[i]
        xj, yj = vertices[j]
        if ((yi > y) != (yj > y)) and (x < (xj - xi) * (y - yi) / (yj - yi) + xi):
            inside = not inside
        j = i
    return Location.INSIDE if inside else Location.OUTSIDE


def point_in_polygon(p: Point, polygon: Polygon, eps: float = EPSILON) -> bool:
    """Boundary-inclusive containment test."""
    return locate_point(p, polygon, eps) is not Location.OUTSIDE


def _piece_midpoints(segment: Segment, polygon: Polygon, eps: float) -> Iterator[Point]:
    """
    Split the segment at every polygon vertex lying on it and yield the
    midpoint of each piece.

    Once proper crossings are ruled out, each piece touches the boundary at
    most at its ends (or lies on it entirely), so its midpoint decides where
    the whole piece lies.
    """
    length = segment.length
    ts = [0.0, 1.0]
    for v in polygon.vertices:
        if point_on_segment(v, segment, eps):
            ts.append(min(1.0, max(0.0, project(v, segment))))
    ts.sort()
    for t0, t1 in zip(ts, ts[1:]):
        if (t1 - t0) * length <= eps:
            continue
        yield segment.point_at((t0 + t1) / 2.0)


def _crosses_any_edge(segment: Segment, polygon: Polygon, eps: float) -> bool:
    for edge in polygon.edges():
        if segments_intersect(segment, edge, eps) is SegmentIntersection.CROSSING:
            return True
    return False


def segment_blocked_by_polygon(segment: Segment, polygon: Polygon, eps: float = EPSILON) -> bool:
    """
    True if the segment passes through the polygon's interior.

    A tangent line that touches the polygon at a vertex, or a segment running
    along an edge, is NOT blocked.
    """
    if not polygon.bounds_overlap(segment, eps):
        return False
    if _crosses_any_edge(segment, polygon, eps):
        return True
    for mid in _piece_midpoints(segment, polygon, eps):
        if locate_point(mid, polygon, eps) is Location.INSIDE:
            return True
    return False


def segment_leaves_polygon(segment: Segment, polygon: Polygon, eps: float = EPSILON) -> bool:
    """True if some part of the segment lies strictly outside the polygon."""
    if _crosses_any_edge(segment, polygon, eps):
        return True
    for mid in _piece_midpoints(segment, polygon, eps):
        if locate_point(mid, polygon, eps) is Location.OUTSIDE:
            return True
    return False


def first_intersection(segment: Segment, polygon: Polygon, eps: float = EPSILON) -> Optional[Point]:
    """Boundary point of the polygon closest to segment.a, or None."""
    closest: Optional[Point] = None
    closest_dist = math.inf
    for edge in polygon.edges():
        hit = intersection_point(segment, edge, eps)
        if hit is None:
            continue
        d = distance(segment.a, hit)
        if d < closest_dist:
            closest, closest_dist = hit, d
    return closest


def path_length(path: Sequence[Point]) -> float:
    """Calculate total length of a path."""
    if len(path) < 2:
        return 0.0
    total = 0.0
    for i in range(len(path) - 1):
        total += distance(path[i], path[i + 1])
    return total


def same_side(line: Segment, p: Point, q: Point, eps: float = EPSILON) -> bool:
    """True unless p and q lie strictly on opposite sides of the line."""
    op = orientation(line.a, line.b, p, eps)
    oq = orientation(line.a, line.b, q, eps)
    return not (
        (op is Orientation.CLOCKWISE and oq is Orientation.COUNTERCLOCKWISE)
        or (op is Orientation.COUNTERCLOCKWISE and oq is Orientation.CLOCKWISE)
    )


__all__: List[str] = [
    "EPSILON",
    "Point",
    "Segment",
    "Polygon",
    "Orientation",
    "SegmentIntersection",
    "Location",
    "as_point",
    "distance",
    "points_coincide",
    "is_finite_point",
    "cross",
    "orientation",
    "project",
    "distance_to_segment",
    "point_on_segment",
    "segments_intersect",
    "intersection_point",
    "signed_area",
    "locate_point",
    "point_in_polygon",
    "segment_blocked_by_polygon",
    "segment_leaves_polygon",
    "first_intersection",
    "path_length",
    "same_side",
]
