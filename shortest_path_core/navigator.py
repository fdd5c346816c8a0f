"""
Query façade: builds the navigation graph and runs A* per request.

- find_path_through(): stateless one-shot query.
- Navigator: bound to one obstacle set, reuses the obstacle-only
  visibility graph across queries through a VisibilityGraphCache.
- solve() / solve_matrix(): pydantic request/response entry points.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import NavigationSettings, load_settings
from .errors import DegenerateQuery, NavigationError, NoPathExists, PointInsideObstacle
from .geometry import Point, Segment, as_point, points_coincide
from .navigation_graph import (
    NavigationGraph,
    VisibilityGraph,
    build_navigation_graph,
    build_visibility_graph,
    overlay_query_points,
    require_query_point,
)
from .obstacles import ObstacleSet, PolygonLike, VertexRef
from .pathfinder import Path, find_path
from .schemas import DistanceMatrixRequest, DistanceMatrixResponse, PathRequest, PathResponse

logger = logging.getLogger(__name__)

ObstaclesLike = Union[ObstacleSet, Iterable[PolygonLike]]
Endpoint = Union[VertexRef, Sequence[float]]


def as_obstacle_set(
    obstacles: ObstaclesLike,
    settings: NavigationSettings,
    boundary: Optional[PolygonLike] = None,
) -> ObstacleSet:
    if isinstance(obstacles, ObstacleSet):
        if boundary is not None:
            raise ValueError("pass the boundary when constructing the ObstacleSet")
        return obstacles
    return ObstacleSet(obstacles, boundary=boundary, eps=settings.epsilon)


def find_path_through(
    obstacles: ObstaclesLike,
    start: Sequence[float],
    goal: Sequence[float],
    settings: Optional[NavigationSettings] = None,
) -> Path:
    """
    Shortest path from start to goal around the obstacles.

    Builds a fresh navigation graph; nothing survives the call.
    """
    settings = settings or load_settings()
    obstacle_set = as_obstacle_set(obstacles, settings)

    start_pt = require_query_point(obstacle_set, start, "start")
    goal_pt = require_query_point(obstacle_set, goal, "goal")
    if points_coincide(start_pt, goal_pt, obstacle_set.eps):
        return Path((start_pt,), 0.0)

    graph = overlay_query_points(obstacle_set, start_pt, goal_pt, settings)
    return find_path(graph, start_pt, goal_pt)


# ---------- Cache ----------

class VisibilityGraphCache:
    """
    Bounded LRU of obstacle-only visibility graphs keyed by obstacle-set
    fingerprint.

    Population runs under a single lock, so each key is built at most once
    even when queries race. Cached graphs are immutable and read without
    the lock.
    """

    def __init__(self, max_entries: int = 8):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, VisibilityGraph]" = OrderedDict()
        self._lock = threading.Lock()
        self.builds = 0

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def key(obstacles: ObstacleSet, settings: NavigationSettings) -> str:
        mode = "reduced" if settings.reduced_graph else "full"
        return f"{obstacles.fingerprint()}:{mode}"

    def get_or_build(self, obstacles: ObstacleSet, settings: NavigationSettings) -> VisibilityGraph:
        key = self.key(obstacles, settings)
        with self._lock:
            graph = self._entries.get(key)
            if graph is not None:
                self._entries.move_to_end(key)
                return graph

            graph = build_visibility_graph(obstacles, settings)
            self.builds += 1
            logger.info("built visibility graph %s: %r", key, graph)
            if self.max_entries > 0:
                self._entries[key] = graph
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("evicted visibility graph %s", evicted)
            return graph

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ---------- Navigator ----------

@dataclass
class DistanceMatrix:
    """Pairwise shortest distances; ``inf`` where no path exists."""

    labels: List[str]
    distances: np.ndarray
    paths: Dict[Tuple[int, int], Path] = field(default_factory=dict)
    excluded: List[str] = field(default_factory=list)

    def index(self, label: str) -> int:
        return self.labels.index(label)

    def distance(self, from_label: str, to_label: str) -> float:
        return float(self.distances[self.index(from_label), self.index(to_label)])

    def path(self, from_label: str, to_label: str) -> Optional[Path]:
        return self.paths.get((self.index(from_label), self.index(to_label)))

    def as_rows(self) -> List[List[Optional[float]]]:
        return [[float(d) if np.isfinite(d) else None for d in row] for row in self.distances]


class Navigator:
    """
    Shortest-path queries against one fixed obstacle set.

    The obstacle-only graph is built once (per cache entry) and every query
    adds its start and goal through its own overlay, so concurrent queries
    on one Navigator are safe.
    """

    def __init__(
        self,
        obstacles: ObstaclesLike = (),
        boundary: Optional[PolygonLike] = None,
        settings: Optional[NavigationSettings] = None,
        cache: Optional[VisibilityGraphCache] = None,
    ):
        self.settings = settings or load_settings()
        self.obstacles = as_obstacle_set(obstacles, self.settings, boundary)
        self.cache = cache if cache is not None else VisibilityGraphCache(self.settings.cache_size)

    def __repr__(self) -> str:
        return f"Navigator({self.obstacles!r})"

    @property
    def visibility_graph(self) -> VisibilityGraph:
        return self.cache.get_or_build(self.obstacles, self.settings)

    def resolve(self, endpoint: Endpoint) -> Point:
        """Endpoint as a point; obstacle vertices may be given as VertexRef."""
        if isinstance(endpoint, VertexRef):
            return self.obstacles.vertex(endpoint.polygon_id, endpoint.vertex_index).point
        return as_point(endpoint)

    def build_graph(self, start: Endpoint, goal: Endpoint) -> NavigationGraph:
        return build_navigation_graph(
            self.obstacles,
            self.resolve(start),
            self.resolve(goal),
            self.settings,
            base=self.visibility_graph,
        )

    def find_path(self, start: Endpoint, goal: Endpoint) -> Path:
        start_pt = require_query_point(self.obstacles, self.resolve(start), "start")
        goal_pt = require_query_point(self.obstacles, self.resolve(goal), "goal")
        return self._path_between(start_pt, goal_pt)

    def _path_between(self, start_pt: Point, goal_pt: Point) -> Path:
        if points_coincide(start_pt, goal_pt, self.obstacles.eps):
            return Path((start_pt,), 0.0)
        graph = overlay_query_points(self.obstacles, start_pt, goal_pt, self.settings, base=self.visibility_graph)
        return find_path(graph, start_pt, goal_pt)

    def line_of_sight(self, a: Endpoint, b: Endpoint) -> bool:
        """True if the straight segment a-b stays in free space."""
        pa, pb = self.resolve(a), self.resolve(b)
        if points_coincide(pa, pb, self.obstacles.eps):
            return self.obstacles.in_free_space(pa)
        return not self.obstacles.segment_blocked(Segment(pa, pb))

    def first_obstruction(self, a: Endpoint, b: Endpoint) -> Optional[Point]:
        """First point along a->b where it meets an obstacle boundary, if it is blocked."""
        pa, pb = self.resolve(a), self.resolve(b)
        if points_coincide(pa, pb, self.obstacles.eps):
            return None
        segment = Segment(pa, pb)
        if not self.obstacles.segment_blocked(segment):
            return None
        return self.obstacles.first_hit(segment)

    def distance_matrix(
        self,
        points: Sequence[Endpoint],
        labels: Optional[Sequence[str]] = None,
    ) -> DistanceMatrix:
        """
        Shortest distances between all pairs of points.

        Points inside an obstacle, or with non-finite coordinates, are excluded
        (their rows stay ``inf``) rather than failing the whole matrix.
        """
        labels = list(labels) if labels is not None else [f"P{i}" for i in range(len(points))]
        if len(labels) != len(points):
            raise ValueError(f"expected {len(points)} labels, got {len(labels)}")

        n = len(points)
        distances = np.full((n, n), np.inf)
        paths: Dict[Tuple[int, int], Path] = {}
        excluded: List[str] = []
        valid: List[Tuple[int, Point]] = []

        for i, p in enumerate(points):
            try:
                pt = require_query_point(self.obstacles, self.resolve(p), labels[i])
            except (PointInsideObstacle, DegenerateQuery) as exc:
                logger.warning("excluding %s from distance matrix: %s", labels[i], exc)
                excluded.append(labels[i])
                continue
            distances[i, i] = 0.0
            valid.append((i, pt))

        for a in range(len(valid)):
            i, pi = valid[a]
            for b in range(a + 1, len(valid)):
                j, pj = valid[b]
                try:
                    path = self._path_between(pi, pj)
                except NoPathExists:
                    continue
                distances[i, j] = distances[j, i] = path.length
                paths[(i, j)] = path
                paths[(j, i)] = path.reversed()

        return DistanceMatrix(labels, distances, paths, excluded)


# ---------- Request handling ----------

def solve(request: PathRequest, settings: Optional[NavigationSettings] = None) -> PathResponse:
    """Answer a PathRequest; engine errors become success=False responses."""
    settings = settings or load_settings()
    try:
        obstacle_set = ObstacleSet(request.obstacles, boundary=request.boundary, eps=settings.epsilon)
        path = find_path_through(obstacle_set, request.start, request.goal, settings)
    except NavigationError as exc:
        logger.info("path request failed (%s): %s", exc.kind, exc)
        return PathResponse(success=False, error_kind=exc.kind, error=str(exc))
    return PathResponse(success=True, path=path.to_list(), distance=path.length)


def solve_matrix(
    request: DistanceMatrixRequest,
    settings: Optional[NavigationSettings] = None,
) -> DistanceMatrixResponse:
    settings = settings or load_settings()
    try:
        navigator = Navigator(request.obstacles, boundary=request.boundary, settings=settings)
        matrix = navigator.distance_matrix(request.points, request.labels)
    except NavigationError as exc:
        logger.info("distance matrix request failed (%s): %s", exc.kind, exc)
        return DistanceMatrixResponse(success=False, error_kind=exc.kind, error=str(exc))
    return DistanceMatrixResponse(
        success=True,
        labels=matrix.labels,
        matrix=matrix.as_rows(),
        excluded=matrix.excluded,
    )
